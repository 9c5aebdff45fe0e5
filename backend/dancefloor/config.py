import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Socket.IO server ("" picks eventlet or threading automatically)
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Optional directory with the built client, served at /
    STATIC_DIR = os.environ.get("STATIC_DIR", "")

    # Rooms
    ROOM_CODE_MIN = int(os.environ.get("ROOM_CODE_MIN", "1000"))
    ROOM_CODE_MAX = int(os.environ.get("ROOM_CODE_MAX", "9999"))
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "2"))
    NAME_MAX_LEN = int(os.environ.get("NAME_MAX_LEN", "16"))

    # Game (seconds)
    DANCE_DURATION_SEC = float(os.environ.get("DANCE_DURATION_SEC", "30"))
    VOTE_DURATION_SEC = float(os.environ.get("VOTE_DURATION_SEC", "20"))
    LEAD_IN_SEC = float(os.environ.get("LEAD_IN_SEC", "5"))
    START_OFFSET_SEC = int(os.environ.get("START_OFFSET_SEC", "10"))
    MAX_PHASE_DURATION_SEC = float(os.environ.get("MAX_PHASE_DURATION_SEC", "600"))

    # Session continuity
    RECONNECT_GRACE_SEC = float(os.environ.get("RECONNECT_GRACE_SEC", "60"))
