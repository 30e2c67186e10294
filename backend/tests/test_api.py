def _create_room(sio_factory, name='Alice', **extra):
    player = sio_factory()
    player.emit('createRoom', dict(extra, name=name), namespace='/ws')
    joined = [e for e in player.get_received('/ws') if e['name'] == 'joinedRoom']
    assert joined, 'room was not created'
    return player, joined[0]['args'][0]


def test_index_and_health(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()
    res = client.get('/health')
    assert res.get_json() == {'status': 'ok'}


def test_rooms_lists_public_rooms(client, sio_factory):
    assert client.get('/api/rooms').get_json() == []
    _, room = _create_room(sio_factory, room_name='Open table')
    rooms = client.get('/api/rooms').get_json()
    assert rooms == [{
        'id': room['id'],
        'name': 'Open table',
        'player_count': 1,
        'status': 'waiting',
        'mode': 'team',
    }]


def test_room_detail(client, sio_factory):
    _, room = _create_room(sio_factory, mode='1v1')
    res = client.get(f"/api/rooms/{room['id']}")
    assert res.status_code == 200
    assert res.get_json()['mode'] == '1v1'


def test_room_detail_unknown(client):
    res = client.get('/api/rooms/room_missing')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'Room not found'}


def test_running_game_is_private(client, sio_factory):
    alice, room = _create_room(sio_factory, mode='1v1')
    bob = sio_factory()
    bob.emit('joinRoom', {'room_id': room['id'], 'name': 'Bob'}, namespace='/ws')
    alice.emit('startGame', {'room_id': room['id']}, namespace='/ws')

    res = client.get(f"/api/rooms/{room['id']}")
    assert res.status_code == 403
    assert client.get('/api/rooms').get_json() == []


def test_rules_summary(client):
    rules = client.get('/api/rules').get_json()
    assert rules['number_of_rounds'] == 10
    assert rules['seconds_per_round'] == 60
    assert rules['trail_bonus'] == 10
    assert len(rules['skills']) == 8
    assert {'id', 'name', 'description'} <= set(rules['skills'][0])
    assert rules['situation_count'] == 12


def test_event_schemas(client):
    events = client.get('/api/events').get_json()
    assert set(events) == {'createRoom', 'joinRoom', 'startGame', 'chooseSkill', 'sendMessage'}
    assert 'name' in events['createRoom']['required']
    assert set(events['joinRoom']['required']) == {'room_id', 'name'}


def test_rules_check_command(flask_app, tmp_path):
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['rules-check'])
    assert result.exit_code == 0
    assert 'OK' in result.output

    broken = tmp_path / 'rules.json'
    broken.write_text('{"skills": []}', encoding='utf-8')
    result = runner.invoke(args=['rules-check', '--path', str(broken)])
    assert result.exit_code != 0
    assert 'at least one skill' in result.output
