from __future__ import annotations

from typing import Iterable, Mapping

from .models import Player


def tally_votes(impostor_id: str | None, votes: Mapping[str, str]) -> dict[str, int]:
    """Return the points each player earned from one round of votes.

    +1 to each voter who accused the impostor; +1 to the impostor for every
    other accusation. The impostor's own vote never counts, and players who
    did not vote contribute nothing.
    """
    points: dict[str, int] = {}
    if impostor_id is None:
        return points

    for voter_id, accused_id in votes.items():
        if voter_id == impostor_id:
            continue
        winner = voter_id if accused_id == impostor_id else impostor_id
        points[winner] = points.get(winner, 0) + 1
    return points


def apply_points(players: Iterable[Player], points: Mapping[str, int]) -> None:
    # Points owed to players who already left the room are dropped.
    for p in players:
        p.score += points.get(p.id, 0)
