NS = '/ws'


def _received(sio_client):
    return sio_client.get_received(NS)


def _named(events, name):
    return [e['args'][0] for e in events if e['name'] == name]


def _duel(sio_factory):
    """Alice creates a 1v1 room and Bob joins it; both inboxes are flushed."""
    alice = sio_factory()
    alice.emit('createRoom', {'name': 'Alice', 'mode': '1v1'}, namespace=NS)
    room = _named(_received(alice), 'joinedRoom')[0]
    bob = sio_factory()
    bob.emit('joinRoom', {'room_id': room['id'], 'name': 'Bob'}, namespace=NS)
    _received(alice)
    _received(bob)
    return alice, bob, room


def test_connect_receives_room_list(sio_factory):
    player = sio_factory()
    assert player.is_connected(NS)
    assert _named(_received(player), 'roomListUpdate') == [[]]

    player.emit('requestRoomList', namespace=NS)
    assert _named(_received(player), 'roomListUpdate') == [[]]


def test_create_room_requires_name(sio_factory):
    player = sio_factory()
    _received(player)
    player.emit('createRoom', {'name': '   '}, namespace=NS)
    [error] = _named(_received(player), 'joinError')
    assert error['code'] == 'name_required'


def test_create_room_rejects_unknown_mode(sio_factory):
    player = sio_factory()
    _received(player)
    player.emit('createRoom', {'name': 'Alice', 'mode': 'free-for-all'}, namespace=NS)
    [error] = _named(_received(player), 'joinError')
    assert error['code'] == 'invalid'


def test_join_unknown_room(sio_factory):
    player = sio_factory()
    _received(player)
    player.emit('joinRoom', {'room_id': 'room_missing', 'name': 'Bob'}, namespace=NS)
    [error] = _named(_received(player), 'joinError')
    assert error == {'message': 'Room not found', 'code': 'room_not_found'}


def test_lobby_sees_new_rooms(sio_factory):
    watcher = sio_factory()
    _received(watcher)
    alice = sio_factory()
    alice.emit('createRoom', {'name': 'Alice', 'room_name': 'Evening game'}, namespace=NS)
    listing = _named(_received(watcher), 'roomListUpdate')[-1]
    assert [r['name'] for r in listing] == ['Evening game']
    # The creator left the lobby for the room
    alice_events = _received(alice)
    assert _named(alice_events, 'joinedRoom')[0]['leader_id'] is not None


def test_join_is_announced_to_room(sio_factory):
    alice = sio_factory()
    alice.emit('createRoom', {'name': 'Alice'}, namespace=NS)
    room = _named(_received(alice), 'joinedRoom')[0]
    bob = sio_factory()
    bob.emit('joinRoom', {'room_id': room['id'], 'name': 'Bob'}, namespace=NS)

    [announce] = _named(_received(alice), 'playerJoined')
    assert announce['player_name'] == 'Bob'
    bob_events = _received(bob)
    assert _named(bob_events, 'playerJoined') == []
    assert len(_named(bob_events, 'joinedRoom')[0]['players']) == 2


def test_only_leader_can_start(sio_factory):
    alice, bob, room = _duel(sio_factory)
    bob.emit('startGame', {'room_id': room['id']}, namespace=NS)
    [error] = _named(_received(bob), 'gameError')
    assert error['code'] == 'not_leader'
    assert _named(_received(alice), 'gameError') == []


def test_insufficient_players_is_reported_to_room(sio_factory):
    alice = sio_factory()
    alice.emit('createRoom', {'name': 'Alice', 'mode': '1v1'}, namespace=NS)
    _received(alice)
    alice.emit('startGame', {}, namespace=NS)
    [error] = _named(_received(alice), 'gameError')
    assert error['code'] == 'insufficient_players'


def test_full_round_over_sockets(sio_factory, scheduler):
    alice, bob, room = _duel(sio_factory)
    alice.emit('startGame', {'room_id': room['id']}, namespace=NS)

    alice_events = _received(alice)
    bob_events = _received(bob)
    assert len(_named(alice_events, 'gameStarted')) == 1
    assert len(_named(bob_events, 'gameStarted')) == 1
    [new_round] = _named(bob_events, 'newRound')
    assert new_round['round'] == 1
    skills = [s['id'] for s in new_round['available_skills']]
    assert len(skills) == 8

    alice.emit('chooseSkill', {'skill_id': skills[0]}, namespace=NS)
    assert _named(_received(alice), 'choiceRegistered') == [{'round': 1, 'skill_id': skills[0]}]
    [update] = _named(_received(bob), 'playerChoiceUpdate')
    assert update['choices_made'] == 1
    assert 'skill_id' not in update

    bob.emit('chooseSkill', {'skill_id': skills[1]}, namespace=NS)
    [alice_end] = _named(_received(alice), 'roundEnd')
    [bob_end] = _named(_received(bob), 'roundEnd')
    assert alice_end == bob_end
    assert alice_end['round'] == 1
    assert {r['choice'] for r in alice_end['results'].values()} == {skills[0], skills[1]}

    scheduler.fire_next('next-round')
    [second] = _named(_received(alice), 'newRound')
    assert second['round'] == 2


def test_bad_choice_payload_is_ignored(sio_factory):
    alice, bob, room = _duel(sio_factory)
    alice.emit('startGame', {}, namespace=NS)
    _received(alice)
    alice.emit('chooseSkill', {'skill': 'typo'}, namespace=NS)
    alice.emit('chooseSkill', 'not-an-object', namespace=NS)
    alice.emit('chooseSkill', {'skill_id': 'not-a-skill'}, namespace=NS)
    assert _received(alice) == []


def test_chat_reaches_everyone_in_room(sio_factory):
    alice, bob, room = _duel(sio_factory)
    bob.emit('sendMessage', {'text': 'good luck'}, namespace=NS)
    [message] = _named(_received(alice), 'newMessage')
    assert message['text'] == 'good luck'
    assert message['sender'] == 'Bob'
    assert _named(_received(bob), 'newMessage') == [message]

    bob.emit('sendMessage', {'text': ''}, namespace=NS)
    [error] = _named(_received(bob), 'gameError')
    assert error['code'] == 'invalid'


def test_disconnect_leaves_room(sio_factory):
    alice, bob, room = _duel(sio_factory)
    alice.disconnect(namespace=NS)
    bob_events = _received(bob)
    [left] = _named(bob_events, 'playerLeft')
    assert left['player_name'] == 'Alice'
    [leader] = _named(bob_events, 'newLeader')
    assert leader['leader_name'] == 'Bob'


def test_leave_room_returns_to_lobby(sio_factory):
    alice, bob, room = _duel(sio_factory)
    bob.emit('leaveRoom', namespace=NS)
    bob_events = _received(bob)
    # Back in the lobby, so the refreshed listing arrives
    assert _named(bob_events, 'roomListUpdate')[-1][0]['player_count'] == 1
    assert _named(bob_events, 'playerLeft') == []
    assert len(_named(_received(alice), 'playerLeft')) == 1
