from flask import current_app, request
from flask_socketio import emit, join_room

from skilltrail import socketio
from skilltrail.schemas import (
    ChooseSkillEvent,
    CreateRoomEvent,
    JoinRoomEvent,
    SendMessageEvent,
    StartGameEvent,
    parse_event,
)
from skilltrail.services.games.broadcast import LOBBY_ROOM
from skilltrail.services.games.errors import ROOM, GameError, ValidationError
from skilltrail.services.games.service import GameService


def _service() -> GameService:
    return current_app.extensions['skilltrail']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _report(exc: GameError, event: str, room_id: str = None) -> None:
    """Send an error to the requester, or to the whole room when it concerns everyone."""
    current_app.logger.info(f"[{event}] sid={_get_sid()} code={exc.code} message={exc.message!r}")
    if exc.audience == ROOM and room_id:
        socketio.emit(event, exc.to_dict(), to=room_id, namespace=request.namespace)
    else:
        emit(event, exc.to_dict())


def handle_connect(auth=None):
    # Everyone starts in the lobby and receives room list updates there
    join_room(LOBBY_ROOM)
    emit('roomListUpdate', _service().room_list())


def handle_disconnect(reason=None):
    _service().disconnect(_get_sid())


def handle_request_room_list(data=None):
    emit('roomListUpdate', _service().room_list())


def handle_create_room(data=None):
    try:
        event = parse_event(CreateRoomEvent, data)
        _service().create_room(_get_sid(), event.name, event.room_name, event.mode, event.avatar)
    except GameError as exc:
        _report(exc, 'joinError')


def handle_join_room(data=None):
    try:
        event = parse_event(JoinRoomEvent, data)
        _service().join_room(_get_sid(), event.room_id, event.name, event.avatar)
    except GameError as exc:
        _report(exc, 'joinError')


def handle_start_game(data=None):
    service = _service()
    room_id = None
    try:
        event = parse_event(StartGameEvent, data)
        room_id = event.room_id or service.registry.room_of(_get_sid())
        service.start_game(_get_sid(), room_id)
    except GameError as exc:
        _report(exc, 'gameError', room_id)


def handle_choose_skill(data=None):
    # Bad or late choices are dropped without telling anyone
    try:
        event = parse_event(ChooseSkillEvent, data)
    except ValidationError:
        return
    _service().choose_skill(_get_sid(), event.skill_id)


def handle_send_message(data=None):
    try:
        event = parse_event(SendMessageEvent, data)
        _service().send_message(_get_sid(), event.text)
    except GameError as exc:
        _report(exc, 'gameError')


def handle_leave_room(data=None):
    _service().leave_room(_get_sid())


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers on the game namespace."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('requestRoomList', handle_request_room_list, namespace=namespace)
    socketio.on_event('createRoom', handle_create_room, namespace=namespace)
    socketio.on_event('joinRoom', handle_join_room, namespace=namespace)
    socketio.on_event('startGame', handle_start_game, namespace=namespace)
    socketio.on_event('chooseSkill', handle_choose_skill, namespace=namespace)
    socketio.on_event('sendMessage', handle_send_message, namespace=namespace)
    socketio.on_event('leaveRoom', handle_leave_room, namespace=namespace)
