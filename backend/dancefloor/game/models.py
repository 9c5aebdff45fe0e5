from __future__ import annotations

from dataclasses import dataclass, field
from threading import RLock
from typing import Literal

from .timers import TimerHandle


Phase = Literal["lobby", "dancing", "voting", "revealed"]


@dataclass
class Player:
    id: str
    name: str
    score: int = 0
    disconnected: bool = False
    # Armed only while disconnected.
    removal_timer: TimerHandle | None = field(default=None, repr=False, compare=False)
    # Bumped on every disconnect; a grace timer only acts on its own one.
    disconnect_seq: int = field(default=0, repr=False, compare=False)


@dataclass
class Room:
    code: str
    host_id: str
    dance_duration_sec: float = 30.0
    vote_duration_sec: float = 20.0
    phase: Phase = "lobby"
    round_no: int = 0
    players: list[Player] = field(default_factory=list)
    # Per-round state
    impostor_id: str | None = None
    normal_track: str | None = None
    impostor_track: str | None = None
    start_time_ms: int | None = None
    round_vote_duration_sec: float | None = None
    votes: dict[str, str] = field(default_factory=dict)
    phase_timer: TimerHandle | None = field(default=None, repr=False, compare=False)
    lock: RLock = field(default_factory=RLock, repr=False, compare=False)

    @property
    def in_progress(self) -> bool:
        return self.phase in ("dancing", "voting")

    def find_player(self, player_id: str) -> Player | None:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def find_disconnected(self, name: str) -> Player | None:
        for p in self.players:
            if p.disconnected and p.name == name:
                return p
        return None

    def active_players(self) -> list[Player]:
        return [p for p in self.players if not p.disconnected]
