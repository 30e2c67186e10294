import random
import string
import threading
import time
from collections import deque
from typing import Dict, List, Optional

from skilltrail.models import GameMode, Session
from .errors import RoomNotFound


def generate_room_id(length: int = 5) -> str:
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))
    return f"room_{int(time.time() * 1000)}_{suffix}"


class SessionRegistry:
    """In-memory table of live sessions, plus which room each participant is in."""

    def __init__(self, chat_capacity: int = 100):
        self.chat_capacity = chat_capacity
        self._sessions: Dict[str, Session] = {}
        self._locations: Dict[str, str] = {}
        self._lock = threading.Lock()

    def create(self, name: str, mode: GameMode) -> Session:
        with self._lock:
            room_id = generate_room_id()
            while room_id in self._sessions:
                room_id = generate_room_id()
            session = Session(id=room_id, name=name, mode=mode, chat=deque(maxlen=self.chat_capacity))
            self._sessions[room_id] = session
            return session

    def find(self, room_id: Optional[str]) -> Optional[Session]:
        if not room_id:
            return None
        with self._lock:
            return self._sessions.get(room_id)

    def get(self, room_id: Optional[str]) -> Session:
        session = self.find(room_id)
        if session is None:
            raise RoomNotFound()
        return session

    def delete(self, room_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.pop(room_id, None)
            if session is not None:
                for pid in [p for p, rid in self._locations.items() if rid == room_id]:
                    del self._locations[pid]
            return session

    def list_public(self) -> List[dict]:
        with self._lock:
            sessions = list(self._sessions.values())
        return [s.summary() for s in sessions if s.is_public]

    def bind(self, participant_id: str, room_id: str) -> None:
        with self._lock:
            self._locations[participant_id] = room_id

    def unbind(self, participant_id: str) -> Optional[str]:
        with self._lock:
            return self._locations.pop(participant_id, None)

    def room_of(self, participant_id: str) -> Optional[str]:
        with self._lock:
            return self._locations.get(participant_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

