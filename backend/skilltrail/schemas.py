"""Inbound Socket.IO payloads.

Each client event carries one JSON object; these models describe and validate
them before anything reaches the game service.
"""

from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaValidationError

from skilltrail.models import GameMode
from skilltrail.services.games.errors import NameRequired, ValidationError


class InboundEvent(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)


class CreateRoomEvent(InboundEvent):
    name: str = Field(min_length=1)
    room_name: Optional[str] = None
    mode: GameMode = GameMode.TEAM
    avatar: Optional[str] = None

    @field_validator('room_name', 'avatar')
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class JoinRoomEvent(InboundEvent):
    room_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    avatar: Optional[str] = None

    @field_validator('avatar')
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class StartGameEvent(InboundEvent):
    room_id: Optional[str] = None


class ChooseSkillEvent(InboundEvent):
    skill_id: str = Field(min_length=1)


class SendMessageEvent(InboundEvent):
    text: str = Field(min_length=1)


E = TypeVar('E', bound=InboundEvent)


def parse_event(model: Type[E], data: Any) -> E:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError('Event payload must be an object')
    try:
        return model.model_validate(data)
    except SchemaValidationError as exc:
        fields = sorted({str(err['loc'][0]) for err in exc.errors() if err.get('loc')})
        if 'name' in fields:
            raise NameRequired() from exc
        raise ValidationError(f"Invalid {', '.join(fields) or 'payload'}") from exc


INBOUND_EVENTS: Dict[str, Type[InboundEvent]] = {
    'createRoom': CreateRoomEvent,
    'joinRoom': JoinRoomEvent,
    'startGame': StartGameEvent,
    'chooseSkill': ChooseSkillEvent,
    'sendMessage': SendMessageEvent,
}


def describe_events() -> Dict[str, Any]:
    return {name: model.model_json_schema() for name, model in INBOUND_EVENTS.items()}
