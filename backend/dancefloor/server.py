from __future__ import annotations

import random
import sys
from pathlib import Path

from flask import Flask, send_from_directory
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .game.engine import RoomEngine, Scheduler
from .game.store import RoomStore
from .game.timers import BackgroundScheduler
from .realtime.handlers import register_socketio_handlers
from .realtime.transport import SocketIOTransport
from .routes.health import bp as health_bp
from .routes.rooms import bp as rooms_bp


def _pick_async_mode(configured: str) -> str:
    if configured:
        return configured
    # Default choice:
    # - Windows: threading (eventlet has known compatibility issues on newer Python)
    # - Python >= 3.13: threading (safer default)
    # - Otherwise: eventlet
    if sys.platform.startswith("win") or sys.version_info >= (3, 13):
        return "threading"
    return "eventlet"


def create_app(
    config_class: type = Config,
    scheduler: Scheduler | None = None,
    rng: random.Random | None = None,
) -> tuple[Flask, SocketIO]:
    app = Flask(__name__, static_folder=None)
    app.config.from_object(config_class)

    static_setting = app.config.get("STATIC_DIR", "")
    static_dir = Path(static_setting).resolve() if static_setting else None

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=_pick_async_mode(app.config.get("SOCKETIO_ASYNC_MODE", "")),
    )

    store = RoomStore(
        code_min=app.config["ROOM_CODE_MIN"],
        code_max=app.config["ROOM_CODE_MAX"],
    )
    engine = RoomEngine(
        store,
        SocketIOTransport(socketio),
        scheduler or BackgroundScheduler(socketio),
        config=app.config,
        rng=rng,
    )
    app.extensions["dancefloor"] = engine

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(rooms_bp, url_prefix="/api")

    register_socketio_handlers(socketio, engine)

    if static_dir is not None and static_dir.is_dir():
        @app.get("/")
        def index():
            return send_from_directory(static_dir, "index.html")

        @app.get("/<path:path>")
        def static_proxy(path: str):
            file_path = static_dir / path
            if file_path.exists() and file_path.is_file():
                return send_from_directory(static_dir, path)
            return send_from_directory(static_dir, "index.html")

    app.logger.info("dancefloor ready (async_mode=%s)", socketio.async_mode)
    return app, socketio
