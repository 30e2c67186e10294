import logging
import os
import random
import sys
from collections import defaultdict

import pytest

# Ensure the backend root (containing the `skilltrail` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config  # noqa: E402
from skilltrail import create_app, socketio  # noqa: E402
from skilltrail.services.games.rules import parse_rules  # noqa: E402
from skilltrail.services.games.scheduler import TimerHandle  # noqa: E402
from skilltrail.services.games.service import GameService  # noqa: E402
from skilltrail.services.games.settings import GameSettings  # noqa: E402


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    INTER_ROUND_PAUSE_SEC = 7
    FINISHED_ROOM_LINGER_SEC = 60
    LOG_LEVEL = 'DEBUG'


class ManualScheduler:
    """Deferred callbacks that only run when a test fires them."""

    def __init__(self):
        self.calls = []

    def call_later(self, delay, callback, *args, name='timer'):
        handle = TimerHandle(name, delay)
        self.calls.append((handle, callback, args))
        return handle

    def pending(self, prefix=''):
        return [h for h, _, _ in self.calls if h.pending and h.name.startswith(prefix)]

    def fire(self, handle, force=False):
        """Run one callback. `force` runs it even if cancelled, like a timer that lost the race."""
        for h, callback, args in self.calls:
            if h is handle:
                if h.cancelled and not force:
                    return False
                h.fired = True
                callback(*args)
                return True
        raise AssertionError(f'unknown timer {handle.name}')

    def fire_next(self, prefix=''):
        pending = self.pending(prefix)
        assert pending, f'no pending timer matching {prefix!r}'
        return self.fire(pending[0])


class RecordingBroadcaster:
    """Keeps every emitted event so tests can assert on what each audience saw."""

    def __init__(self):
        self.events = []
        self.subscriptions = defaultdict(set)

    def to_room(self, room_id, event, payload, skip=None):
        self.events.append({'to': room_id, 'event': event, 'payload': payload, 'skip': skip})

    def to_participant(self, participant_id, event, payload):
        self.events.append({'to': participant_id, 'event': event, 'payload': payload, 'skip': None})

    def to_lobby(self, event, payload):
        self.events.append({'to': 'lobby', 'event': event, 'payload': payload, 'skip': None})

    def subscribe(self, participant_id, room_id):
        self.subscriptions[room_id].add(participant_id)

    def unsubscribe(self, participant_id, room_id):
        self.subscriptions[room_id].discard(participant_id)

    def named(self, event):
        return [e for e in self.events if e['event'] == event]

    def payloads(self, event):
        return [e['payload'] for e in self.named(event)]

    def clear(self):
        self.events.clear()


RULES_DOC = {
    'params': {'number_of_rounds': 3, 'seconds_per_round': 30, 'trail_bonus': 10},
    'skills': [
        {'id': 'skillA', 'name': 'Skill A', 'description': 'first'},
        {'id': 'skillB', 'name': 'Skill B', 'description': 'second'},
        {'id': 'skillC', 'name': 'Skill C', 'description': 'worthless'},
    ],
    'situations': [
        {'id': 's1', 'text': 'Situation one'},
        {'id': 's2', 'text': 'Situation two'},
        {'id': 's3', 'text': 'Situation three'},
        {'id': 's4', 'text': 'Situation four'},
    ],
    # Every situation scores the same so results do not depend on the shuffle
    'scoring': {
        sid: {'skillA': 5, 'skillB': 2, 'skillC': 0}
        for sid in ('s1', 's2', 's3', 's4')
    },
}


@pytest.fixture()
def rules():
    return parse_rules(RULES_DOC)


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture()
def service(rules, broadcaster, scheduler):
    return GameService(
        rules=rules,
        broadcaster=broadcaster,
        scheduler=scheduler,
        settings=GameSettings(),
        logger=logging.getLogger('skilltrail.tests'),
        rng=random.Random(1234),
        clock=lambda: 1000.0,
    )


@pytest.fixture()
def duel(service):
    """A waiting 1v1 room with p1 (leader) and p2."""
    session = service.create_room('p1', 'Alice', mode='1v1')
    service.join_room('p2', session.id, 'Bob')
    return session


@pytest.fixture()
def flask_app(scheduler):
    application = create_app(TestConfig, scheduler=scheduler, rng=random.Random(7))
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws',
        )
        clients.append(test_client)
        return test_client

    yield make
    for test_client in clients:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except Exception:
            pass
