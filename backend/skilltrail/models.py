import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional


class GameMode(str, Enum):
    SOLO_DUEL = '1v1'
    TEAM = 'team'


class SessionStatus(str, Enum):
    WAITING = 'waiting'
    ACTIVE = 'active'
    FINISHED = 'finished'


@dataclass
class Participant:
    id: str
    name: str
    avatar: Optional[str] = None
    score: int = 0
    trail_position: int = 0
    team_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'score': self.score,
            'trail_position': self.trail_position,
            'team_id': self.team_id,
            'avatar': self.avatar,
        }


@dataclass
class Team:
    id: str
    name: str
    member_ids: List[str] = field(default_factory=list)
    score: int = 0
    trail_position: int = 0

    def to_dict(self, participants: Dict[str, Participant]) -> Dict[str, Any]:
        # Team views carry member names only, avatars stay on the player list
        return {
            'id': self.id,
            'name': self.name,
            'score': self.score,
            'trail_position': self.trail_position,
            'members': [
                {'id': pid, 'name': participants[pid].name}
                for pid in self.member_ids
                if pid in participants
            ],
        }


@dataclass
class ChatMessage:
    room_id: str
    sender_id: str
    sender: str
    text: str
    team_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'room_id': self.room_id,
            'sender_id': self.sender_id,
            'sender': self.sender,
            'text': self.text,
            'team_id': self.team_id,
            'timestamp': self.timestamp,
        }


@dataclass
class RoundState:
    round_number: int
    situation_id: str
    situation_text: str
    deadline: float
    choices: Dict[str, str] = field(default_factory=dict)
    round_scores: Dict[str, int] = field(default_factory=dict)
    # Set by the first trigger that resolves the round; every later trigger is a no-op
    resolved: bool = False


@dataclass
class Session:
    id: str
    name: str
    mode: GameMode = GameMode.TEAM
    participants: Dict[str, Participant] = field(default_factory=dict)  # join order
    teams: Dict[str, Team] = field(default_factory=dict)
    status: SessionStatus = SessionStatus.WAITING
    leader_id: Optional[str] = None
    chat: Deque[ChatMessage] = field(default_factory=lambda: deque(maxlen=100))
    is_public: bool = True
    round_number: int = 0
    max_rounds: int = 0
    situation_order: List[str] = field(default_factory=list)
    skill_usage: Dict[str, Dict[str, int]] = field(default_factory=dict)
    round: Optional[RoundState] = None
    timers: Dict[str, Any] = field(default_factory=dict, repr=False)
    lock: Any = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def is_team_mode(self) -> bool:
        return self.mode == GameMode.TEAM

    def players_payload(self) -> Dict[str, Dict[str, Any]]:
        return {pid: p.to_dict() for pid, p in self.participants.items()}

    def teams_payload(self) -> Optional[Dict[str, Dict[str, Any]]]:
        if not self.is_team_mode:
            return None
        return {tid: t.to_dict(self.participants) for tid, t in self.teams.items()}

    def summary(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'player_count': len(self.participants),
            'status': self.status.value,
            'mode': self.mode.value,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'mode': self.mode.value,
            'status': self.status.value,
            'leader_id': self.leader_id,
            'is_public': self.is_public,
            'players': self.players_payload(),
            'teams': self.teams_payload(),
            'chat': [m.to_dict() for m in self.chat],
        }
