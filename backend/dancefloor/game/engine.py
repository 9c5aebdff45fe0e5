from __future__ import annotations

import logging
import math
import random
import time
from contextlib import ExitStack, contextmanager
from typing import Any, Callable, Iterator, Mapping, Protocol, Sequence

from ..config import Config
from .errors import AlreadyActed, InvalidInput, InvalidPhase, NotInRoom, RoomNotFound, Unauthorized
from .models import Player, Room
from .scoring import apply_points, tally_votes
from .store import RoomStore
from .timers import TimerHandle
from .tracks import IMPOSTOR_TRACKS, NORMAL_TRACKS, pick_track
from .views import player_list, roster


logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class Transport(Protocol):
    def session(self, sid: str) -> Any: ...
    def bind(self, sid: str, room_code: str, name: str) -> None: ...
    def unbind(self, sid: str, room_code: str) -> None: ...
    def broadcast(self, room_code: str, event: str, payload: Any = None) -> None: ...
    def unicast(self, sid: str, event: str, payload: Any = None) -> None: ...
    def disconnect_and_remove(self, sid: str, room_code: str) -> None: ...


def _defaults() -> dict[str, Any]:
    return {k: getattr(Config, k) for k in dir(Config) if k.isupper()}


def clean_name(raw: Any, max_len: int = 16) -> str:
    if not isinstance(raw, str):
        raise InvalidInput("invalid name")
    n = raw.strip()
    if not n or len(n) > max_len:
        raise InvalidInput("invalid name")
    if "<" in n or ">" in n:
        raise InvalidInput("invalid name")
    if any(ord(ch) < 32 for ch in n):
        raise InvalidInput("invalid name")
    return n


def parse_seconds(raw: Any, upper: float) -> float:
    if isinstance(raw, bool):
        raise InvalidInput("duration must be a number")
    if isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            raise InvalidInput("duration must be a number") from None
    elif isinstance(raw, (int, float)):
        value = float(raw)
    else:
        raise InvalidInput("duration must be a number")

    if not math.isfinite(value) or value <= 0 or value > upper:
        raise InvalidInput("duration out of range")
    return value


class RoomEngine:
    """Owns every mutation of every room.

    Each public operation takes the room's lock, validates against the
    current state, and then either applies its whole effect or raises a
    :class:`~dancefloor.game.errors.GameError` without touching anything.
    Timer callbacks take the same lock and re-check that the room, round and
    phase they were armed for still exist before acting.
    """

    def __init__(
        self,
        store: RoomStore,
        transport: Transport,
        scheduler: Scheduler,
        config: Mapping[str, Any] | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        normal_tracks: Sequence[str] = NORMAL_TRACKS,
        impostor_tracks: Sequence[str] = IMPOSTOR_TRACKS,
    ) -> None:
        self.store = store
        self.transport = transport
        self.scheduler = scheduler
        self.rng = rng or random.Random()
        self.clock = clock
        self.normal_tracks = list(normal_tracks)
        self.impostor_tracks = list(impostor_tracks)

        conf = _defaults()
        conf.update({k: v for k, v in (config or {}).items() if k in conf})
        self.min_players = max(2, int(conf["MIN_PLAYERS"]))
        self.name_max_len = int(conf["NAME_MAX_LEN"])
        self.dance_duration_sec = float(conf["DANCE_DURATION_SEC"])
        self.vote_duration_sec = float(conf["VOTE_DURATION_SEC"])
        self.lead_in_sec = float(conf["LEAD_IN_SEC"])
        self.start_offset_sec = conf["START_OFFSET_SEC"]
        self.max_phase_duration_sec = float(conf["MAX_PHASE_DURATION_SEC"])
        self.grace_sec = float(conf["RECONNECT_GRACE_SEC"])

    # ------------------------------------------------------------------
    # Room membership
    # ------------------------------------------------------------------

    def create_room(self, sid: str, name: Any) -> Room:
        name = clean_name(name, self.name_max_len)
        # Allocate first so a full code space leaves the caller where they were.
        room = self.store.create(sid, self.dance_duration_sec, self.vote_duration_sec)
        self._leave_current(sid)

        with room.lock:
            room.players.append(Player(id=sid, name=name))
            self.transport.bind(sid, room.code, name)
            logger.info("room %s created by %s", room.code, name)

            self.transport.unicast(sid, "roomCreated", {"roomCode": room.code, "isHost": True})
            self._broadcast_players(room)
        return room

    def join_room(self, sid: str, code: Any, name: Any) -> Room:
        code = str(code or "").strip()
        name = clean_name(name, self.name_max_len)

        session = self.transport.session(sid)
        previous = session.room_code if session is not None and session.room_code != code else None

        # Both rooms stay locked across the switch, so a target deleted in the
        # meantime is noticed before the caller leaves where they are.
        with self._holding(code, previous), self._locked(code) as room:
            if previous is not None:
                self._leave_current(sid)

            current = room.find_player(sid)
            if current is not None:
                self.transport.unicast(sid, "roomJoined", {"roomCode": code, "isHost": sid == room.host_id})
                return room

            returning = room.find_disconnected(name)
            if returning is not None:
                self._reinstate(room, returning, sid)
                logger.info("%s reconnected to room %s", name, code)
            else:
                room.players.append(Player(id=sid, name=name))
                logger.info("%s joined room %s", name, code)

            self.transport.bind(sid, code, name)
            self.transport.unicast(sid, "roomJoined", {"roomCode": code, "isHost": sid == room.host_id})
            self._broadcast_players(room)
            self.transport.broadcast(code, "playerJoined", name)
            return room

    def leave_room(self, sid: str) -> None:
        code = self._membership(sid)
        try:
            with self._locked(code) as room:
                self.transport.unbind(sid, code)
                player = room.find_player(sid)
                if player is not None:
                    logger.info("%s left room %s", player.name, code)
                    self._drop_player(room, player)
        except RoomNotFound:
            self.transport.unbind(sid, code)

    def kick_player(self, sid: str, target_id: Any) -> None:
        code = self._membership(sid)
        with self._locked(code) as room:
            if sid != room.host_id:
                raise Unauthorized("only the host can kick")
            target = room.find_player(str(target_id or ""))
            if target is None:
                raise InvalidInput("unknown player")
            if target.id == room.host_id:
                raise InvalidInput("host cannot kick themselves")

            # A vote the target already cast stays in room.votes and is scored.
            self._remove_player(room, target)
            if not target.disconnected:
                self.transport.unicast(target.id, "kicked", {"roomCode": code})
                self.transport.disconnect_and_remove(target.id, code)

            logger.info("%s kicked from room %s", target.name, code)
            self._broadcast_players(room)

    # ------------------------------------------------------------------
    # Round lifecycle
    # ------------------------------------------------------------------

    def start_game(self, sid: str) -> None:
        code = self._membership(sid)
        with self._locked(code) as room:
            if sid != room.host_id:
                raise Unauthorized("only the host can start")
            if room.in_progress:
                raise InvalidPhase("round already running")
            active = room.active_players()
            if len(active) < self.min_players:
                raise InvalidPhase("not enough players")

            impostor = active[self.rng.randrange(len(active))]
            normal_track = pick_track(self.normal_tracks, self.rng)
            impostor_track = pick_track(self.impostor_tracks, self.rng)

            room.round_no += 1
            room.phase = "dancing"
            room.impostor_id = impostor.id
            room.normal_track = normal_track
            room.impostor_track = impostor_track
            room.votes = {}
            room.round_vote_duration_sec = room.vote_duration_sec
            room.start_time_ms = int((self.clock() + self.lead_in_sec) * 1000)

            snapshot = roster(room)
            for p in active:
                is_impostor = p.id == impostor.id
                self.transport.unicast(
                    p.id,
                    "gameStart",
                    {
                        "songUrl": impostor_track if is_impostor else normal_track,
                        "startTime": room.start_time_ms,
                        "startOffset": self.start_offset_sec,
                        "players": snapshot,
                        "isImpostor": is_impostor,
                    },
                )

            logger.info("room %s round %d started with %d players", code, room.round_no, len(active))
            self._arm_phase_timer(room, room.dance_duration_sec + self.lead_in_sec, self._begin_voting)
            self._broadcast_players(room)

    def dance_move(self, sid: str) -> None:
        code = self._membership(sid)
        with self._locked(code) as room:
            if room.phase != "dancing":
                raise InvalidPhase("not dancing")
            self.transport.broadcast(code, "playerDance", sid)

    def vote(self, sid: str, target_id: Any) -> None:
        code = self._membership(sid)
        with self._locked(code) as room:
            if room.phase != "voting":
                raise InvalidPhase("voting is not open")
            voter = room.find_player(sid)
            if voter is None or voter.disconnected:
                raise NotInRoom(sid)
            if sid in room.votes:
                raise AlreadyActed("already voted")

            target_id = str(target_id or "")
            if target_id == sid:
                raise InvalidInput("cannot vote for yourself")
            if room.find_player(target_id) is None:
                raise InvalidInput("unknown player")

            room.votes[sid] = target_id

    def update_settings(self, sid: str, dance_time: Any, vote_time: Any) -> None:
        code = self._membership(sid)
        with self._locked(code) as room:
            if sid != room.host_id:
                raise Unauthorized("only the host can change settings")
            dance = parse_seconds(dance_time, self.max_phase_duration_sec)
            vote = parse_seconds(vote_time, self.max_phase_duration_sec)

            room.dance_duration_sec = dance
            room.vote_duration_sec = vote
            logger.info("room %s settings: dance=%ss vote=%ss", code, dance, vote)
            self._broadcast_players(room)

    def _begin_voting(self, code: str, round_no: int) -> None:
        try:
            with self._locked(code) as room:
                if room.round_no != round_no or room.phase != "dancing":
                    return
                room.phase = "voting"
                room.phase_timer = None

                for p in room.active_players():
                    self.transport.unicast(p.id, "votePhase", {"players": roster(room, exclude_id=p.id)})

                self._arm_phase_timer(room, room.round_vote_duration_sec or room.vote_duration_sec, self._reveal)
                self._broadcast_players(room)
        except RoomNotFound:
            logger.debug("dance timer fired for deleted room %s", code)

    def _reveal(self, code: str, round_no: int) -> None:
        try:
            with self._locked(code) as room:
                if room.round_no != round_no or room.phase != "voting":
                    return
                points = tally_votes(room.impostor_id, room.votes)
                apply_points(room.players, points)
                room.phase = "revealed"
                room.phase_timer = None

                self.transport.broadcast(
                    code,
                    "reveal",
                    {"impostorId": room.impostor_id, "scores": roster(room)},
                )
                logger.info("room %s round %d revealed, impostor=%s", code, round_no, room.impostor_id)
                self._broadcast_players(room)
        except RoomNotFound:
            logger.debug("vote timer fired for deleted room %s", code)

    # ------------------------------------------------------------------
    # Session continuity
    # ------------------------------------------------------------------

    def disconnect(self, sid: str) -> None:
        session = self.transport.session(sid)
        if session is None:
            return
        code = session.room_code
        self.transport.unbind(sid, code)

        try:
            with self._locked(code) as room:
                player = room.find_player(sid)
                if player is None or player.disconnected:
                    return
                player.disconnected = True
                player.disconnect_seq += 1
                player.removal_timer = self.scheduler.call_later(
                    self.grace_sec, self._expire_player, code, player, player.disconnect_seq
                )
                logger.info("%s disconnected from room %s", player.name, code)
                self._broadcast_players(room)
        except RoomNotFound:
            logger.debug("disconnect for deleted room %s", code)

    def _expire_player(self, code: str, player: Player, seq: int) -> None:
        try:
            with self._locked(code) as room:
                if not any(p is player for p in room.players):
                    return
                if not player.disconnected or player.removal_timer is None:
                    return
                if player.disconnect_seq != seq:
                    # Armed for an earlier disconnect that a reconnect already ended.
                    return
                player.removal_timer = None
                logger.info("%s timed out of room %s", player.name, code)
                self._drop_player(room, player)
        except RoomNotFound:
            logger.debug("grace timer fired for deleted room %s", code)

    def _reinstate(self, room: Room, player: Player, sid: str) -> None:
        if player.removal_timer is not None:
            player.removal_timer.cancel()
            player.removal_timer = None

        old_id = player.id
        player.id = sid
        player.disconnected = False

        # Migrate stateful references to the new connection id.
        if room.host_id == old_id:
            room.host_id = sid
        if room.impostor_id == old_id:
            room.impostor_id = sid
        if room.votes:
            room.votes = {
                (sid if voter == old_id else voter): (sid if accused == old_id else accused)
                for voter, accused in room.votes.items()
            }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _locked(self, code: str) -> Iterator[Room]:
        room = self.store.get(code)
        if room is None:
            raise RoomNotFound(code)
        with room.lock:
            # The room may have been deleted while we waited for the lock.
            if self.store.get(code) is not room:
                raise RoomNotFound(code)
            yield room

    @contextmanager
    def _holding(self, *codes: str | None) -> Iterator[None]:
        # Sorted order keeps two connections swapping rooms from deadlocking.
        with ExitStack() as stack:
            for code in sorted({c for c in codes if c}):
                room = self.store.get(code)
                if room is not None:
                    stack.enter_context(room.lock)
            yield

    def _membership(self, sid: str) -> str:
        session = self.transport.session(sid)
        if session is None:
            raise NotInRoom(sid)
        return session.room_code

    def _leave_current(self, sid: str) -> None:
        if self.transport.session(sid) is not None:
            self.leave_room(sid)

    def _arm_phase_timer(self, room: Room, delay: float, callback: Callable[[str, int], None]) -> None:
        if room.phase_timer is not None:
            room.phase_timer.cancel()
        room.phase_timer = self.scheduler.call_later(delay, callback, room.code, room.round_no)

    def _remove_player(self, room: Room, player: Player) -> None:
        if player.removal_timer is not None:
            player.removal_timer.cancel()
            player.removal_timer = None
        room.players = [p for p in room.players if p is not player]

    def _drop_player(self, room: Room, player: Player) -> None:
        self._remove_player(room, player)
        if not room.players:
            self._destroy(room)
            return

        if room.host_id == player.id:
            active = room.active_players()
            successor = active[0] if active else room.players[0]
            room.host_id = successor.id
            logger.info("host of room %s migrated to %s", room.code, successor.name)

        self._broadcast_players(room)

    def _destroy(self, room: Room) -> None:
        if room.phase_timer is not None:
            room.phase_timer.cancel()
            room.phase_timer = None
        for p in room.players:
            if p.removal_timer is not None:
                p.removal_timer.cancel()
                p.removal_timer = None
        self.store.delete(room.code)
        logger.info("room %s is empty, deleted", room.code)

    def _broadcast_players(self, room: Room) -> None:
        self.transport.broadcast(room.code, "playerList", player_list(room))
