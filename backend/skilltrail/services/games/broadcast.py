from typing import Any, Optional


LOBBY_ROOM = 'lobby'


class SocketIOBroadcaster:
    """Publishes game events over Flask-SocketIO rooms.

    Every game room is a Socket.IO room named after the session id. Sockets
    that are connected but not in a game sit in the `lobby` room and receive
    room list updates there. A participant's own sid doubles as a private
    channel.
    """

    def __init__(self, socketio, namespace: str = '/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def to_room(self, room_id: str, event: str, payload: Any, skip: Optional[str] = None) -> None:
        self.socketio.emit(event, payload, to=room_id, skip_sid=skip, namespace=self.namespace)

    def to_participant(self, participant_id: str, event: str, payload: Any) -> None:
        self.socketio.emit(event, payload, to=participant_id, namespace=self.namespace)

    def to_lobby(self, event: str, payload: Any) -> None:
        self.socketio.emit(event, payload, to=LOBBY_ROOM, namespace=self.namespace)

    def subscribe(self, participant_id: str, room_id: str) -> None:
        server = self.socketio.server
        server.leave_room(participant_id, LOBBY_ROOM, namespace=self.namespace)
        server.enter_room(participant_id, room_id, namespace=self.namespace)

    def unsubscribe(self, participant_id: str, room_id: str) -> None:
        server = self.socketio.server
        server.leave_room(participant_id, room_id, namespace=self.namespace)
        server.enter_room(participant_id, LOBBY_ROOM, namespace=self.namespace)
