import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional

from skilltrail.models import GameMode, RoundState, Session, SessionStatus
from . import scoring
from .errors import AlreadyStarted, InsufficientPlayers, InternalDataError, NotLeader
from .roster import SOLO_DUEL_PLAYERS
from .rules import Rules
from .settings import GameSettings


DEADLINE_TIMER = 'deadline'
NEXT_ROUND_TIMER = 'next_round'


class RoundOrchestrator:
    """Drives a session from the first round to game over.

    Public methods expect the caller to hold ``session.lock``. Deferred
    callbacks (round deadline, pause before the next round) look the session
    up again, take the lock themselves and re-check the round they were
    scheduled for, so a callback that lost a race does nothing.
    """

    def __init__(
        self,
        registry,
        rules: Rules,
        broadcaster,
        scheduler,
        settings: GameSettings = None,
        logger: logging.Logger = None,
        rng: random.Random = None,
        clock: Callable[[], float] = time.time,
        on_listing_changed: Callable[[], None] = None,
    ):
        self.registry = registry
        self.rules = rules
        self.broadcaster = broadcaster
        self.scheduler = scheduler
        self.settings = settings or GameSettings()
        self.logger = logger or logging.getLogger(__name__)
        self.rng = rng or random.Random()
        self.clock = clock
        self.on_listing_changed = on_listing_changed or (lambda: None)

    @property
    def round_duration(self) -> float:
        if self.settings.round_duration_sec:
            return float(self.settings.round_duration_sec)
        return float(self.rules.seconds_per_round)

    # ---- payload helpers ----

    def _standings(self, session: Session) -> Dict[str, Any]:
        return {
            'mode': session.mode.value,
            'players': session.players_payload(),
            'teams': session.teams_payload(),
        }

    def _cancel_timer(self, session: Session, name: str) -> None:
        handle = session.timers.pop(name, None)
        if handle is not None:
            handle.cancel()

    def cancel_timers(self, session: Session) -> None:
        for handle in session.timers.values():
            handle.cancel()
        session.timers.clear()

    # ---- game start ----

    def start(self, session: Session, initiator_id: str) -> None:
        if session.leader_id != initiator_id:
            raise NotLeader()
        if session.status != SessionStatus.WAITING:
            raise AlreadyStarted()
        count = len(session.participants)
        if session.mode == GameMode.SOLO_DUEL:
            if count != SOLO_DUEL_PLAYERS:
                raise InsufficientPlayers(f'1v1 mode requires exactly {SOLO_DUEL_PLAYERS} players')
        elif count < self.settings.min_players_team:
            raise InsufficientPlayers(f'At least {self.settings.min_players_team} players (in teams) are required to start')

        for participant in session.participants.values():
            participant.score = 0
            participant.trail_position = 0
        for team in session.teams.values():
            team.score = 0
            team.trail_position = 0

        order = [s.id for s in self.rules.situations]
        self.rng.shuffle(order)
        session.situation_order = order
        session.max_rounds = self.rules.number_of_rounds
        session.skill_usage = {
            pid: {skill_id: 0 for skill_id in self.rules.skill_ids}
            for pid in session.participants
        }
        session.status = SessionStatus.ACTIVE
        session.round_number = 1
        session.round = None
        session.is_public = False
        self.logger.info(
            f"[start] room={session.id} mode={session.mode.value} players={count} by={initiator_id}"
        )
        self.on_listing_changed()
        self.broadcaster.to_room(session.id, 'gameStarted', {
            'room': dict(self._standings(session), max_rounds=session.max_rounds),
        })
        self.begin_round(session)

    # ---- rounds ----

    def begin_round(self, session: Session) -> None:
        if session.status != SessionStatus.ACTIVE:
            return
        round_number = session.round_number
        index = round_number - 1
        if round_number > session.max_rounds:
            self.finalize(session)
            return
        if index >= len(session.situation_order):
            self.logger.error(
                f"[round-error] room={session.id} round={round_number} situation pool exhausted "
                f"after {len(session.situation_order)} situations"
            )
            self.finalize(session)
            return
        situation_id = session.situation_order[index]
        situation = self.rules.situation(situation_id)
        if situation is None:
            self.logger.error(
                f"[round-error] room={session.id} round={round_number} unknown situation={situation_id}"
            )
            self.finalize(session)
            return

        duration = self.round_duration
        self._cancel_timer(session, DEADLINE_TIMER)
        self._cancel_timer(session, NEXT_ROUND_TIMER)
        session.round = RoundState(
            round_number=round_number,
            situation_id=situation.id,
            situation_text=situation.text,
            deadline=self.clock() + duration,
        )
        session.timers[DEADLINE_TIMER] = self.scheduler.call_later(
            duration, self.on_deadline, session.id, round_number,
            name=f'deadline:{session.id}:{round_number}',
        )
        self.logger.info(
            f"[round-start] room={session.id} round={round_number}/{session.max_rounds} situation={situation.id}"
        )
        payload = {
            'round': round_number,
            'max_rounds': session.max_rounds,
            'situation_id': situation.id,
            'situation_text': situation.text,
            'available_skills': [s.to_dict() for s in self.rules.skills],
            'deadline': session.round.deadline,
        }
        payload.update(self._standings(session))
        self.broadcaster.to_room(session.id, 'newRound', payload)

    def record_choice(self, session: Session, participant_id: str, skill_id: Any) -> bool:
        """Store a participant's skill for the current round.

        Returns False, without emitting anything, when the choice is ignored:
        no round running, unknown participant or skill, or a repeat choice.
        """
        current = session.round
        if session.status != SessionStatus.ACTIVE or current is None or current.resolved:
            self.logger.debug(f"[choice-ignored] room={session.id} player={participant_id} no open round")
            return False
        if participant_id not in session.participants:
            return False
        if not self.rules.has_skill(skill_id):
            self.logger.warning(f"[choice-ignored] room={session.id} player={participant_id} unknown skill={skill_id!r}")
            return False
        if participant_id in current.choices:
            return False

        current.choices[participant_id] = skill_id
        self.logger.info(
            f"[choice] room={session.id} round={current.round_number} player={participant_id} "
            f"skill={skill_id} ({len(current.choices)}/{len(session.participants)})"
        )
        self.broadcaster.to_participant(participant_id, 'choiceRegistered', {
            'round': current.round_number,
            'skill_id': skill_id,
        })
        self.broadcaster.to_room(session.id, 'playerChoiceUpdate', {
            'round': current.round_number,
            'player_id': participant_id,
            'choices_made': len(current.choices),
            'player_count': len(session.participants),
        }, skip=participant_id)
        self.check_completion(session)
        return True

    def check_completion(self, session: Session) -> bool:
        """Resolve early once every present participant has chosen."""
        current = session.round
        if session.status != SessionStatus.ACTIVE or current is None or current.resolved:
            return False
        if not session.participants or len(current.choices) < len(session.participants):
            return False
        self._cancel_timer(session, DEADLINE_TIMER)
        return self.resolve_round(session, current.round_number, trigger='all-chosen')

    def on_deadline(self, room_id: str, round_number: int) -> None:
        session = self.registry.find(room_id)
        if session is None:
            return
        with session.lock:
            # The room may have been retired between the lookup and the lock
            if self.registry.find(room_id) is not session:
                return
            self.resolve_round(session, round_number, trigger='deadline')

    def resolve_round(self, session: Session, round_number: int, trigger: str = 'deadline') -> bool:
        """Score the round exactly once.

        Both completion triggers land here. Whichever arrives first marks the
        round resolved; any later or stale trigger returns False untouched.
        """
        current = session.round
        if (
            session.status != SessionStatus.ACTIVE
            or current is None
            or current.round_number != round_number
            or current.resolved
        ):
            self.logger.info(f"[resolve-skip] room={session.id} round={round_number} trigger={trigger}")
            return False
        current.resolved = True
        self._cancel_timer(session, DEADLINE_TIMER)

        present = list(session.participants)
        try:
            scores = scoring.score_round(self.rules.scoring, current.situation_id, current.choices, present)
        except InternalDataError as exc:
            self.logger.error(f"[resolve-error] room={session.id} round={round_number} {exc.message}")
            self.finalize(session)
            return True
        current.round_scores = scores

        for pid in present:
            participant = session.participants[pid]
            participant.score += scores[pid]
            skill_id = current.choices.get(pid)
            if skill_id is not None:
                usage = session.skill_usage.setdefault(pid, {})
                usage[skill_id] = usage.get(skill_id, 0) + 1

        results = {}
        if session.is_team_mode:
            members = {tid: list(team.member_ids) for tid, team in session.teams.items()}
            unit_scores = scoring.team_round_scores(members, scores)
            leaders = scoring.round_leaders(unit_scores)
            for tid, team in session.teams.items():
                team.score += unit_scores[tid]
                if tid in leaders:
                    team.trail_position = min(team.trail_position + 1, session.max_rounds)
                results[tid] = {
                    'choice': None,
                    'choices': {pid: current.choices.get(pid) for pid in members[tid]},
                    'score': unit_scores[tid],
                    'total_score': team.score,
                    'advanced_trail': tid in leaders,
                }
        else:
            leaders = scoring.round_leaders(scores)
            for pid in present:
                participant = session.participants[pid]
                if pid in leaders:
                    participant.trail_position = min(participant.trail_position + 1, session.max_rounds)
                results[pid] = {
                    'choice': current.choices.get(pid),
                    'score': scores[pid],
                    'total_score': participant.score,
                    'advanced_trail': pid in leaders,
                }

        self.logger.info(
            f"[resolve] room={session.id} round={round_number} trigger={trigger} "
            f"choices={len(current.choices)}/{len(present)} leaders={leaders}"
        )
        payload = {'round': round_number, 'results': results}
        payload.update(self._standings(session))
        self.broadcaster.to_room(session.id, 'roundEnd', payload)

        session.round_number += 1
        if session.round_number > session.max_rounds:
            self.finalize(session)
        else:
            session.timers[NEXT_ROUND_TIMER] = self.scheduler.call_later(
                self.settings.inter_round_pause_sec, self.on_pause_elapsed, session.id, session.round_number,
                name=f'next-round:{session.id}:{session.round_number}',
            )
        return True

    def on_pause_elapsed(self, room_id: str, round_number: int) -> None:
        session = self.registry.find(room_id)
        if session is None:
            return
        with session.lock:
            if self.registry.find(room_id) is not session:
                return
            if session.status != SessionStatus.ACTIVE or session.round_number != round_number:
                return
            if session.round is not None and session.round.round_number >= round_number:
                return
            session.timers.pop(NEXT_ROUND_TIMER, None)
            self.begin_round(session)

    # ---- game over ----

    def finalize(self, session: Session) -> None:
        if session.status != SessionStatus.ACTIVE:
            return
        session.status = SessionStatus.FINISHED
        self.cancel_timers(session)
        bonus = self.rules.trail_bonus

        final_scores: Dict[str, Dict[str, Any]] = {}
        team_members: Optional[Dict[str, List[str]]] = None
        if session.is_team_mode:
            team_members = {}
            for tid, team in session.teams.items():
                # Emptied teams stay registered but take no part in the ranking
                if not team.member_ids:
                    continue
                team_members[tid] = list(team.member_ids)
                final_scores[tid] = {
                    'id': tid,
                    'name': team.name,
                    'score': team.score,
                    'trail_position': team.trail_position,
                    'final_score': scoring.final_score(team.score, team.trail_position, bonus),
                }
        else:
            for pid, participant in session.participants.items():
                final_scores[pid] = {
                    'id': pid,
                    'name': participant.name,
                    'score': participant.score,
                    'trail_position': participant.trail_position,
                    'final_score': scoring.final_score(participant.score, participant.trail_position, bonus),
                    'avatar': participant.avatar,
                }

        winners = scoring.pick_winners({uid: entry['final_score'] for uid, entry in final_scores.items()})
        names = [final_scores[uid]['name'] for uid in winners]
        if len(names) == 1:
            message = f'Game over! {names[0]} wins!'
        elif names:
            message = f"Game over! Tie between {' and '.join(names)}!"
        else:
            message = 'Game over! No clear winner.'

        usage = {pid: session.skill_usage.get(pid, {}) for pid in session.participants}
        skill_usage = scoring.aggregate_skill_usage(usage, self.rules.skill_ids, team_members)

        session.round = None
        session.is_public = True
        self.logger.info(f"[finalize] room={session.id} winners={winners}")
        self.broadcaster.to_room(session.id, 'gameOver', {
            'message': message,
            'final_scores': final_scores,
            'winners': winners,
            'skill_usage': skill_usage,
            'skill_names': self.rules.skill_names,
            'mode': session.mode.value,
        })
        self.on_listing_changed()
