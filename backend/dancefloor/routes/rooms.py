from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from ..game.views import room_public_state

bp = Blueprint("rooms", __name__)


@bp.get("/rooms/<code>")
def get_room(code: str):
    engine = current_app.extensions["dancefloor"]
    room = engine.store.get(code)
    if not room:
        return jsonify({"error": "room_not_found"}), 404
    with room.lock:
        return jsonify(room_public_state(room))
