from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    engine = current_app.extensions["dancefloor"]
    return jsonify({"ok": True, "rooms": len(engine.store)})
