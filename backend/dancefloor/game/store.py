from __future__ import annotations

import logging
import random
from threading import RLock

from .errors import RoomsExhausted
from .models import Room


logger = logging.getLogger(__name__)


class RoomStore:
    """Process-wide mapping of room code to :class:`Room`.

    Codes are drawn from a fixed-width decimal range and are only handed out
    again after the room holding them has been deleted.
    """

    def __init__(
        self,
        code_min: int = 1000,
        code_max: int = 9999,
        rng: random.Random | None = None,
    ) -> None:
        if code_min > code_max:
            raise ValueError("code_min must not exceed code_max")
        self.code_min = code_min
        self.code_max = code_max
        self._rng = rng or random.Random()
        self._lock = RLock()
        self._rooms: dict[str, Room] = {}

    def create(self, host_id: str, dance_duration_sec: float, vote_duration_sec: float) -> Room:
        with self._lock:
            capacity = self.code_max - self.code_min + 1
            if len(self._rooms) >= capacity:
                logger.warning("room code space exhausted (%d rooms)", len(self._rooms))
                raise RoomsExhausted("no free room codes")

            code = self._new_code()
            while code in self._rooms:
                code = self._new_code()

            room = Room(
                code=code,
                host_id=host_id,
                dance_duration_sec=dance_duration_sec,
                vote_duration_sec=vote_duration_sec,
            )
            self._rooms[code] = room
            return room

    def get(self, code: str) -> Room | None:
        with self._lock:
            return self._rooms.get(code)

    def delete(self, code: str) -> bool:
        with self._lock:
            if code in self._rooms:
                del self._rooms[code]
                return True
            return False

    def list(self) -> list[Room]:
        with self._lock:
            return list(self._rooms.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def _new_code(self) -> str:
        return str(self._rng.randint(self.code_min, self.code_max))
