import random

import pytest

from dancefloor.game.errors import RoomsExhausted
from dancefloor.game.store import RoomStore


def test_codes_are_four_digit_and_unique():
    store = RoomStore(rng=random.Random(1))
    codes = {store.create(f"sid-{i}", 30, 20).code for i in range(200)}
    assert len(codes) == 200
    assert all(len(c) == 4 and 1000 <= int(c) <= 9999 for c in codes)


def test_get_and_delete():
    store = RoomStore()
    room = store.create("sid-a", 30, 20)
    assert store.get(room.code) is room
    assert store.get("nope") is None
    assert store.delete(room.code) is True
    assert store.delete(room.code) is False
    assert store.get(room.code) is None
    assert len(store) == 0


def test_code_is_reusable_only_after_delete():
    store = RoomStore(code_min=1000, code_max=1001)
    first = store.create("sid-a", 30, 20)
    second = store.create("sid-b", 30, 20)
    assert {first.code, second.code} == {"1000", "1001"}

    with pytest.raises(RoomsExhausted):
        store.create("sid-c", 30, 20)

    store.delete(first.code)
    third = store.create("sid-c", 30, 20)
    assert third.code == first.code
    assert sorted(r.code for r in store.list()) == ["1000", "1001"]


def test_new_rooms_start_in_lobby_with_given_durations():
    room = RoomStore().create("sid-a", 12, 8)
    assert room.phase == "lobby"
    assert room.host_id == "sid-a"
    assert (room.dance_duration_sec, room.vote_duration_sec) == (12, 8)
    assert room.votes == {}
