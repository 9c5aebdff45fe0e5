from __future__ import annotations

from .models import Player, Room


def roster_entry(p: Player) -> dict:
    return {"id": p.id, "username": p.name, "score": p.score}


def roster(room: Room, exclude_id: str | None = None) -> list[dict]:
    return [roster_entry(p) for p in room.players if p.id != exclude_id]


def player_list(room: Room) -> dict:
    players = []
    for p in room.players:
        d = roster_entry(p)
        d["disconnected"] = p.disconnected
        players.append(d)

    return {
        "players": players,
        "hostId": room.host_id,
        "gameInProgress": room.in_progress,
        "phase": room.phase,
        "settings": {
            "danceTime": room.dance_duration_sec,
            "voteTime": room.vote_duration_sec,
        },
    }


def room_public_state(room: Room) -> dict:
    # Never exposes the impostor or the votes of a running round.
    payload = player_list(room)
    payload["code"] = room.code
    payload["round"] = room.round_no
    payload["startTime"] = room.start_time_ms if room.in_progress else None
    return payload
