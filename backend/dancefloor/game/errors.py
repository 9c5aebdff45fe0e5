"""Rejections raised by the room engine.

Only :class:`RoomNotFound` is reported back to the client; the socket layer
drops every other :class:`GameError` after logging it.
"""

from __future__ import annotations


class GameError(Exception):
    code = "game_error"


class RoomNotFound(GameError):
    code = "room_not_found"


class NotInRoom(GameError):
    code = "not_in_room"


class Unauthorized(GameError):
    code = "only_host"


class InvalidPhase(GameError):
    code = "invalid_phase"


class InvalidInput(GameError):
    code = "invalid_input"


class AlreadyActed(GameError):
    code = "already_acted"


class RoomsExhausted(GameError):
    code = "no_free_codes"
