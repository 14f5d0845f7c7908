import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # Dev server bind address
    HOST = os.environ.get("HOST", "0.0.0.0")
    PORT = int(os.environ.get("PORT", "8787"))

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Relational backup of room state
    DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///gamenight.db")

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_JSON = os.environ.get("LOG_JSON", "0") == "1"

    # Liveness (seconds). LIVENESS_INTERVAL_SEC=0 disables the background sweep.
    LIVENESS_INTERVAL_SEC = int(os.environ.get("LIVENESS_INTERVAL_SEC", "30"))
    DISCONNECT_GRACE_SEC = int(os.environ.get("DISCONNECT_GRACE_SEC", "30"))
    REMOVE_AFTER_SEC = int(os.environ.get("REMOVE_AFTER_SEC", "60"))
    RECONNECT_GRACE_SEC = int(os.environ.get("RECONNECT_GRACE_SEC", "60"))
    ROOM_TTL_SEC = int(os.environ.get("ROOM_TTL_SEC", str(24 * 60 * 60)))

    # Socket.IO async mode; empty picks eventlet or threading by platform.
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()
