"""Pure scoring and ranking functions.

Nothing here touches a session: the orchestrator passes in plain data and gets
plain data back. Resolution can be reached from two triggers (everyone chose,
or the deadline elapsed) and must produce the same result either way.
"""

from typing import Dict, Iterable, List, Mapping, Optional

from .errors import InternalDataError


def score_round(
    scoring: Mapping[str, Mapping[str, int]],
    situation_id: str,
    choices: Mapping[str, str],
    participant_ids: Iterable[str],
) -> Dict[str, int]:
    """Round score per participant.

    A participant scores the table entry for their recorded skill, or 0 when
    they did not choose or chose a skill the situation does not list.
    """
    row = scoring.get(situation_id)
    if row is None:
        raise InternalDataError(f'No scoring row for situation {situation_id}')
    scores = {}
    for pid in participant_ids:
        skill_id = choices.get(pid)
        scores[pid] = int(row.get(skill_id, 0)) if skill_id is not None else 0
    return scores


def team_round_scores(
    team_members: Mapping[str, Iterable[str]],
    round_scores: Mapping[str, int],
) -> Dict[str, int]:
    return {
        team_id: sum(round_scores.get(pid, 0) for pid in members)
        for team_id, members in team_members.items()
    }


def round_leaders(unit_scores: Mapping[str, int]) -> List[str]:
    """Units at the highest round score, provided that score is positive."""
    if not unit_scores:
        return []
    best = max(unit_scores.values())
    if best <= 0:
        return []
    return [unit_id for unit_id, score in unit_scores.items() if score == best]


def final_score(score: int, trail_position: int, trail_bonus: int) -> int:
    return score + trail_position * trail_bonus


def pick_winners(final_scores: Mapping[str, int]) -> List[str]:
    # Ties at the top all win
    if not final_scores:
        return []
    best = max(final_scores.values())
    return [unit_id for unit_id, score in final_scores.items() if score == best]


def aggregate_skill_usage(
    skill_usage: Mapping[str, Mapping[str, int]],
    skill_ids: Iterable[str],
    team_members: Optional[Mapping[str, Iterable[str]]] = None,
) -> Dict[str, Dict[str, int]]:
    """Skill usage per scoring unit.

    Without teams this is a copy of the per-participant counters, zero-filled
    for every known skill. With teams each team gets the sum over its members.
    """
    skill_ids = list(skill_ids)
    if team_members is None:
        return {
            pid: {sid: int(counts.get(sid, 0)) for sid in skill_ids}
            for pid, counts in skill_usage.items()
        }
    totals = {}
    for team_id, members in team_members.items():
        totals[team_id] = {sid: 0 for sid in skill_ids}
        for pid in members:
            counts = skill_usage.get(pid) or {}
            for sid in skill_ids:
                totals[team_id][sid] += int(counts.get(sid, 0))
    return totals
