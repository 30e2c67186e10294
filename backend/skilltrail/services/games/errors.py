"""Error taxonomy for game operations.

Every error knows who should see it (the requester or the whole room), so
the socket layer can turn a raised error into a single emit without guessing.
Validation, permission and capacity failures never mutate state.
"""

from typing import Any, Dict


REQUESTER = 'requester'
ROOM = 'room'


class GameError(Exception):
    code = 'game_error'
    audience = REQUESTER
    default_message = 'Something went wrong'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {'message': self.message, 'code': self.code}


class ValidationError(GameError):
    code = 'invalid'
    default_message = 'Invalid request'


class NameRequired(ValidationError):
    code = 'name_required'
    default_message = 'Player name is required'


class AlreadyStarted(ValidationError):
    code = 'already_started'
    default_message = 'The game has already started or finished'


class PermissionDenied(GameError):
    code = 'forbidden'
    default_message = 'You are not allowed to do that'


class NotLeader(PermissionDenied):
    code = 'not_leader'
    default_message = 'Only the room leader can start the game'


class CapacityError(GameError):
    code = 'capacity'
    default_message = 'The room cannot take that many players'


class RoomFull(CapacityError):
    code = 'room_full'
    default_message = 'This 1v1 room is already full'


class TeamsFull(CapacityError):
    code = 'teams_full'
    default_message = 'Could not join a team, the room may be full'


class InsufficientPlayers(CapacityError):
    code = 'insufficient_players'
    audience = ROOM


class NotFoundError(GameError):
    code = 'not_found'
    default_message = 'Not found'


class RoomNotFound(NotFoundError):
    code = 'room_not_found'
    default_message = 'Room not found'


class InternalDataError(GameError):
    """Static game data is inconsistent with what a running game needs."""
    code = 'internal'
    default_message = 'Internal error in game data'


class RulesError(InternalDataError):
    code = 'rules'
    default_message = 'Invalid rules file'
