import heapq
import itertools
import random

import pytest

from dancefloor.config import Config
from dancefloor.game.engine import RoomEngine
from dancefloor.game.store import RoomStore
from dancefloor.game.timers import TimerHandle
from dancefloor.realtime.registry import ConnectionRegistry
from dancefloor.server import create_app


class ManualScheduler:
    """Timers driven by an explicit clock instead of wall time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self._seq = itertools.count()
        self._queue = []

    def clock(self) -> float:
        return self.now

    def call_later(self, delay, callback, *args):
        handle = TimerHandle(delay, callback, args)
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            self.now = due
            handle.run()
        self.now = target

    def pending(self):
        return [h for _, _, h in self._queue if not h.cancelled]


class RecordingTransport:
    """In-memory stand-in for the Socket.IO transport."""

    def __init__(self):
        self.registry = ConnectionRegistry()
        self.inbox = {}
        self.disconnected = []

    def session(self, sid):
        return self.registry.get(sid)

    def bind(self, sid, room_code, name):
        self.registry.bind(sid, room_code, name)

    def unbind(self, sid, room_code):
        self.registry.unbind(sid, room_code)

    def broadcast(self, room_code, event, payload=None):
        for sid in self.registry.members(room_code):
            self.unicast(sid, event, payload)

    def unicast(self, sid, event, payload=None):
        self.inbox.setdefault(sid, []).append((event, payload))

    def disconnect_and_remove(self, sid, room_code):
        self.unbind(sid, room_code)
        self.disconnected.append(sid)

    def events(self, sid, name):
        return [payload for event, payload in self.inbox.get(sid, []) if event == name]

    def last(self, sid, name):
        found = self.events(sid, name)
        return found[-1] if found else None

    def clear(self):
        self.inbox.clear()


class FirstPlayerImpostor(random.Random):
    """Always picks index 0, so the earliest active player is the impostor."""

    def randrange(self, *args, **kwargs):
        return 0


ENGINE_CONFIG = {
    "DANCE_DURATION_SEC": 30,
    "VOTE_DURATION_SEC": 20,
    "LEAD_IN_SEC": 5,
    "START_OFFSET_SEC": 10,
    "RECONNECT_GRACE_SEC": 60,
    "MIN_PLAYERS": 2,
}


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def store():
    return RoomStore(rng=random.Random(4821))


@pytest.fixture()
def engine(store, transport, scheduler):
    return RoomEngine(
        store,
        transport,
        scheduler,
        config=ENGINE_CONFIG,
        rng=FirstPlayerImpostor(1),
        clock=scheduler.clock,
    )


@pytest.fixture()
def lobby(engine):
    """Alice hosts, Bob has joined; returns the room code."""
    room = engine.create_room("sid-alice", "Alice")
    engine.join_room("sid-bob", room.code, "Bob")
    return room.code


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SOCKETIO_ASYNC_MODE = "threading"
    TRUST_PROXY_HEADERS = False
    STATIC_DIR = ""


@pytest.fixture()
def app_and_socketio(scheduler):
    return create_app(TestConfig, scheduler=scheduler, rng=FirstPlayerImpostor(2))


@pytest.fixture()
def flask_app(app_and_socketio):
    return app_and_socketio[0]


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(app_and_socketio):
    app, socketio = app_and_socketio
    clients = []

    def _make():
        c = socketio.test_client(app)
        clients.append(c)
        return c

    yield _make

    for c in clients:
        try:
            c.disconnect()
        except Exception:
            pass
