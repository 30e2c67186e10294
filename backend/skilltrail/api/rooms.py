from flask import Blueprint, current_app, jsonify

from skilltrail.schemas import describe_events
from skilltrail.services.games.errors import RoomNotFound

rooms = Blueprint('rooms', __name__)


def _service():
    return current_app.extensions['skilltrail']


@rooms.route('/rooms', methods=['GET'])
def list_rooms():
    """
    Returns the public room list, the same data pushed as roomListUpdate.
    """
    return jsonify(_service().room_list())


@rooms.route('/rooms/<string:room_id>', methods=['GET'])
def get_room(room_id):
    try:
        session = _service().registry.get(room_id)
    except RoomNotFound as exc:
        return jsonify({'error': exc.message}), 404
    if not session.is_public:
        return jsonify({'error': 'Room is private while a game is running'}), 403
    return jsonify(session.summary())


@rooms.route('/rules', methods=['GET'])
def get_rules():
    return jsonify(_service().rules.summary())


@rooms.route('/events', methods=['GET'])
def get_event_schemas():
    """
    Returns the JSON schema of every inbound Socket.IO event payload.
    """
    return jsonify(describe_events())
