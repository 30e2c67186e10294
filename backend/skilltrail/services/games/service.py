import logging
import random
import time
from typing import Any, Callable, List, Optional

from skilltrail.models import ChatMessage, GameMode, Participant, Session, SessionStatus
from . import roster
from .errors import NameRequired, ValidationError
from .orchestrator import RoundOrchestrator
from .registry import SessionRegistry
from .roster import Departure
from .rules import Rules
from .settings import GameSettings


CLEANUP_TIMER = 'cleanup'


class GameService:
    """Entry point for every inbound game event.

    Looks the session up, holds its lock for the whole handler and delegates
    membership changes to the roster functions and round flow to the
    orchestrator. Raises GameError subclasses for the transport to report.
    """

    def __init__(
        self,
        rules: Rules,
        broadcaster,
        scheduler,
        settings: GameSettings = None,
        logger: logging.Logger = None,
        rng: random.Random = None,
        clock: Callable[[], float] = time.time,
    ):
        self.rules = rules
        self.broadcaster = broadcaster
        self.scheduler = scheduler
        self.settings = settings or GameSettings()
        self.logger = logger or logging.getLogger(__name__)
        self.registry = SessionRegistry(chat_capacity=self.settings.chat_capacity)
        self.orchestrator = RoundOrchestrator(
            self.registry,
            rules,
            broadcaster,
            scheduler,
            settings=self.settings,
            logger=self.logger,
            rng=rng,
            clock=clock,
            on_listing_changed=self.publish_room_list,
        )

    # ---- listing ----

    def room_list(self) -> List[dict]:
        return self.registry.list_public()

    def publish_room_list(self) -> None:
        self.broadcaster.to_lobby('roomListUpdate', self.registry.list_public())

    # ---- membership ----

    def _clean_name(self, name: Any) -> str:
        name = name.strip() if isinstance(name, str) else ''
        if not name:
            raise NameRequired()
        return name

    def _require_unseated(self, participant_id: str) -> None:
        if self.registry.room_of(participant_id):
            raise ValidationError('Leave your current room first')

    def _enter(self, session: Session, participant: Participant) -> Optional[str]:
        team_id = roster.join(session, participant, self.settings.team_limits)
        self.registry.bind(participant.id, session.id)
        self.broadcaster.subscribe(participant.id, session.id)
        self.logger.info(
            f"[join] room={session.id} player={participant.id} name={participant.name!r} team={team_id}"
        )
        self.broadcaster.to_participant(participant.id, 'joinedRoom', session.to_dict())
        return team_id

    def create_room(
        self,
        participant_id: str,
        name: str,
        room_name: Optional[str] = None,
        mode: GameMode = GameMode.TEAM,
        avatar: Optional[str] = None,
    ) -> Session:
        name = self._clean_name(name)
        self._require_unseated(participant_id)
        session = self.registry.create((room_name or '').strip() or f"{name}'s room", GameMode(mode))
        with session.lock:
            self._enter(session, Participant(id=participant_id, name=name, avatar=avatar))
        self.logger.info(f"[create] room={session.id} mode={session.mode.value} leader={participant_id}")
        self.publish_room_list()
        return session

    def join_room(self, participant_id: str, room_id: str, name: str, avatar: Optional[str] = None) -> Session:
        name = self._clean_name(name)
        session = self.registry.get(room_id)
        self._require_unseated(participant_id)
        with session.lock:
            # The room may have emptied and been dropped while we waited
            session = self.registry.get(room_id)
            participant = Participant(id=participant_id, name=name, avatar=avatar)
            self._enter(session, participant)
            self.broadcaster.to_room(session.id, 'playerJoined', {
                'room_id': session.id,
                'player_id': participant_id,
                'player_name': name,
                'players': session.players_payload(),
                'teams': session.teams_payload(),
                'mode': session.mode.value,
            }, skip=participant_id)
        self.publish_room_list()
        return session

    def leave_room(self, participant_id: str, disconnected: bool = False) -> Optional[Departure]:
        """Remove a participant from whatever room they are in.

        Safe to call repeatedly: a participant who already left yields None.
        A disconnected socket has already dropped its Socket.IO rooms, so its
        subscriptions are left alone.
        """
        room_id = self.registry.unbind(participant_id)
        session = self.registry.find(room_id)
        if session is None:
            return None
        with session.lock:
            departure = roster.leave(session, participant_id)
            if departure is None:
                return None
            if not disconnected:
                self.broadcaster.unsubscribe(participant_id, session.id)
            self.logger.info(
                f"[leave] room={session.id} player={participant_id} disconnected={disconnected} "
                f"remaining={len(session.participants)}"
            )
            if not session.participants:
                linger = disconnected and session.status == SessionStatus.FINISHED
                self._retire(session, linger=linger)
            else:
                self.broadcaster.to_room(session.id, 'playerLeft', {
                    'room_id': session.id,
                    'player_id': participant_id,
                    'player_name': departure.participant.name,
                    'players': session.players_payload(),
                    'teams': session.teams_payload(),
                    'mode': session.mode.value,
                }, skip=participant_id)
                if departure.new_leader_id:
                    leader = session.participants[departure.new_leader_id]
                    self.logger.info(f"[leader] room={session.id} leader={leader.id}")
                    self.broadcaster.to_room(session.id, 'newLeader', {
                        'room_id': session.id,
                        'leader_id': leader.id,
                        'leader_name': leader.name,
                    })
                if session.status == SessionStatus.ACTIVE:
                    self.orchestrator.check_completion(session)
        self.publish_room_list()
        return departure

    def disconnect(self, participant_id: str) -> Optional[Departure]:
        return self.leave_room(participant_id, disconnected=True)

    def _retire(self, session: Session, linger: bool = False) -> None:
        if linger and self.settings.finished_room_linger_sec > 0:
            self.logger.info(f"[linger] room={session.id} for={self.settings.finished_room_linger_sec}s")
            session.timers[CLEANUP_TIMER] = self.scheduler.call_later(
                self.settings.finished_room_linger_sec, self._on_linger_elapsed, session.id,
                name=f'cleanup:{session.id}',
            )
            return
        self.orchestrator.cancel_timers(session)
        self.registry.delete(session.id)
        self.logger.info(f"[delete] room={session.id}")

    def _on_linger_elapsed(self, room_id: str) -> None:
        session = self.registry.find(room_id)
        if session is None:
            return
        with session.lock:
            session.timers.pop(CLEANUP_TIMER, None)
            if session.participants:
                return
            self._retire(session)
        self.publish_room_list()

    # ---- game flow ----

    def start_game(self, participant_id: str, room_id: Optional[str] = None) -> Session:
        session = self.registry.get(room_id or self.registry.room_of(participant_id))
        with session.lock:
            self.orchestrator.start(session, participant_id)
        return session

    def choose_skill(self, participant_id: str, skill_id: Any) -> bool:
        session = self.registry.find(self.registry.room_of(participant_id))
        if session is None:
            return False
        with session.lock:
            return self.orchestrator.record_choice(session, participant_id, skill_id)

    def send_message(self, participant_id: str, text: Any) -> Optional[ChatMessage]:
        session = self.registry.find(self.registry.room_of(participant_id))
        if session is None:
            return None
        text = text.strip() if isinstance(text, str) else ''
        if not text or len(text) > self.settings.max_message_length:
            raise ValidationError(f'Messages must be 1 to {self.settings.max_message_length} characters')
        with session.lock:
            sender = session.participants.get(participant_id)
            if sender is None:
                return None
            message = ChatMessage(
                room_id=session.id,
                sender_id=participant_id,
                sender=sender.name,
                text=text,
                team_id=sender.team_id,
            )
            session.chat.append(message)
            self.broadcaster.to_room(session.id, 'newMessage', message.to_dict())
        return message
