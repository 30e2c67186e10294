"""Membership changes for a single session: join, team assignment, leave.

These functions mutate the session they are given and nothing else. The
caller holds the session lock and decides what to broadcast.
"""

from dataclasses import dataclass
from typing import Optional

from skilltrail.models import GameMode, Participant, Session, SessionStatus, Team
from .errors import AlreadyStarted, RoomFull, TeamsFull


SOLO_DUEL_PLAYERS = 2


@dataclass(frozen=True)
class TeamLimits:
    max_teams: int = 5
    max_team_size: int = 6


@dataclass
class Departure:
    participant: Participant
    new_leader_id: Optional[str] = None
    dropped_choice: bool = False


def _team_slot_id(index: int) -> str:
    return f'team{index}'


def pick_team(session: Session, limits: TeamLimits) -> str:
    """Team id a newcomer should join, creating the team if needed.

    Smallest existing team with room wins, lowest team number on ties; when all
    existing teams are full the next unused slot is opened.
    """
    best_id = None
    best_size = None
    for index in range(1, limits.max_teams + 1):
        team = session.teams.get(_team_slot_id(index))
        if team is None or len(team.member_ids) >= limits.max_team_size:
            continue
        if best_size is None or len(team.member_ids) < best_size:
            best_id, best_size = team.id, len(team.member_ids)
    if best_id is not None:
        return best_id
    for index in range(1, limits.max_teams + 1):
        team_id = _team_slot_id(index)
        if team_id not in session.teams:
            session.teams[team_id] = Team(id=team_id, name=f'Team {index}')
            return team_id
    raise TeamsFull()


def _add_member(session: Session, team_id: str, participant_id: str) -> None:
    session.teams[team_id].member_ids.append(participant_id)
    session.participants[participant_id].team_id = team_id


def has_team_capacity(session: Session, limits: TeamLimits) -> bool:
    if len(session.teams) < limits.max_teams:
        return True
    return any(len(t.member_ids) < limits.max_team_size for t in session.teams.values())


def assign_to_team(session: Session, participant_id: str, limits: TeamLimits) -> str:
    team_id = pick_team(session, limits)
    _add_member(session, team_id, participant_id)
    return team_id


def join(session: Session, participant: Participant, limits: TeamLimits) -> Optional[str]:
    """Add a participant; returns the assigned team id in team mode."""
    if session.status != SessionStatus.WAITING:
        raise AlreadyStarted('Cannot join a room whose game has already started or finished')
    if session.mode == GameMode.SOLO_DUEL and len(session.participants) >= SOLO_DUEL_PLAYERS:
        raise RoomFull()
    # Checked up front so a full room leaves nothing behind
    if session.is_team_mode and not has_team_capacity(session, limits):
        raise TeamsFull()
    session.participants[participant.id] = participant
    if session.leader_id is None:
        session.leader_id = participant.id
    if session.is_team_mode:
        return assign_to_team(session, participant.id, limits)
    return None


def promote_leader(session: Session) -> Optional[str]:
    # Earliest remaining by join order; dict order is join order
    session.leader_id = next(iter(session.participants), None)
    return session.leader_id


def leave(session: Session, participant_id: str) -> Optional[Departure]:
    """Remove a participant; None when they are already gone."""
    participant = session.participants.pop(participant_id, None)
    if participant is None:
        return None
    if participant.team_id and participant.team_id in session.teams:
        team = session.teams[participant.team_id]
        # The emptied team itself stays registered
        team.member_ids = [pid for pid in team.member_ids if pid != participant_id]
    dropped = False
    if session.round is not None and participant_id in session.round.choices:
        del session.round.choices[participant_id]
        dropped = True
    departure = Departure(participant=participant, dropped_choice=dropped)
    if session.leader_id == participant_id:
        departure.new_leader_id = promote_leader(session)
    return departure
