from __future__ import annotations

import logging
from typing import Any, Callable

from flask import request
from flask_socketio import SocketIO, emit

from ..game.engine import RoomEngine
from ..game.errors import GameError, RoomNotFound


logger = logging.getLogger(__name__)


def _field(data: Any, *keys: str) -> Any:
    # Clients may send a bare value instead of an object for single-field events.
    if isinstance(data, dict):
        for key in keys:
            if key in data:
                return data[key]
        return None
    return data


def register_socketio_handlers(socketio: SocketIO, engine: RoomEngine) -> None:
    def _dispatch(action: str, fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(request.sid, *args)
        except RoomNotFound:
            emit("error", {"error": "room_not_found", "message": "Room not found"})
        except GameError as exc:
            logger.debug("%s from %s rejected: %s (%s)", action, request.sid, exc.code, exc)

    @socketio.on("connect")
    def on_connect(auth=None):
        logger.info("new connection: %s", request.sid)

    @socketio.on("createRoom")
    def create_room(data=None):
        _dispatch("createRoom", engine.create_room, _field(data, "username", "name"))

    @socketio.on("joinRoom")
    def join_room(data=None):
        payload = data if isinstance(data, dict) else {}
        room_code = payload.get("roomCode", "")
        name = payload.get("username", payload.get("name", ""))
        _dispatch("joinRoom", engine.join_room, room_code, name)

    @socketio.on("leaveRoom")
    def leave_room(data=None):
        _dispatch("leaveRoom", engine.leave_room)

    @socketio.on("startGame")
    def start_game(data=None):
        _dispatch("startGame", engine.start_game)

    @socketio.on("danceMove")
    def dance_move(data=None):
        _dispatch("danceMove", engine.dance_move)

    @socketio.on("vote")
    def vote(data=None):
        _dispatch("vote", engine.vote, _field(data, "targetId", "votedId"))

    @socketio.on("updateSettings")
    def update_settings(data=None):
        payload = data if isinstance(data, dict) else {}
        _dispatch("updateSettings", engine.update_settings, payload.get("danceTime"), payload.get("voteTime"))

    @socketio.on("kickPlayer")
    def kick_player(data=None):
        _dispatch("kickPlayer", engine.kick_player, _field(data, "playerId", "id"))

    @socketio.on("disconnect")
    def on_disconnect(reason=None):
        engine.disconnect(request.sid)
