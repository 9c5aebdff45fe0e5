from __future__ import annotations

from dataclasses import dataclass
from threading import RLock


@dataclass(frozen=True)
class Session:
    room_code: str
    name: str


class ConnectionRegistry:
    """Which room (and under what name) each live connection belongs to."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._sessions: dict[str, Session] = {}

    def bind(self, sid: str, room_code: str, name: str) -> None:
        with self._lock:
            self._sessions[sid] = Session(room_code=room_code, name=name)

    def unbind(self, sid: str, room_code: str | None = None) -> Session | None:
        with self._lock:
            session = self._sessions.get(sid)
            if session is None:
                return None
            if room_code is not None and session.room_code != room_code:
                return None
            del self._sessions[sid]
            return session

    def get(self, sid: str) -> Session | None:
        with self._lock:
            return self._sessions.get(sid)

    def members(self, room_code: str) -> list[str]:
        with self._lock:
            return [sid for sid, s in self._sessions.items() if s.room_code == room_code]
