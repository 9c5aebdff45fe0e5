from __future__ import annotations

import random
from typing import Sequence


NORMAL_TRACKS: list[str] = [
    "/music/happy1.mp3",
    "/music/happy2.mp3",
    "/music/happy3.mp3",
]

IMPOSTOR_TRACKS: list[str] = [
    "/music/sad1.mp3",
    "/music/sad2.mp3",
    "/music/sad3.mp3",
]


def pick_track(tracks: Sequence[str], rng: random.Random | None = None) -> str:
    if not tracks:
        raise ValueError("track catalog is empty")
    return (rng or random).choice(list(tracks))
