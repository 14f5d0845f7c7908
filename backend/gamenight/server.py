from __future__ import annotations

import os
import sys
from typing import Any, Mapping

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .game import service
from .game.coordinator import LivenessSettings
from .logs import configure_logging
from .realtime.handlers import register_socketio_handlers
from .routes.health import bp as health_bp
from .routes.parties import bp as parties_bp
from .storage.backup import BackupStore
from .storage.snapshots import SnapshotStore


def _async_mode(app: Flask) -> str:
    configured = str(app.config.get("SOCKETIO_ASYNC_MODE") or os.environ.get("SOCKETIO_ASYNC_MODE", "")).strip()
    if configured:
        return configured
    # Default choice:
    # - Windows: threading (eventlet has known compatibility issues on newer Python)
    # - Python >= 3.13: threading (safer default)
    # - Otherwise: eventlet
    if sys.platform.startswith("win") or sys.version_info >= (3, 13):
        return "threading"
    return "eventlet"


def create_app(config: Mapping[str, Any] | None = None) -> tuple[Flask, SocketIO]:
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"), json_output=app.config.get("LOG_JSON", False))

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}, r"/game/*": {"origins": cors_origins}})

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=_async_mode(app),
    )

    backup = BackupStore(app.config["DATABASE_URL"]) if app.config.get("DATABASE_URL") else None
    service.configure(
        snapshots=SnapshotStore(),
        backup=backup,
        settings=LivenessSettings.from_config(app.config),
    )

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(parties_bp)

    register_socketio_handlers(socketio, liveness_interval_sec=app.config.get("LIVENESS_INTERVAL_SEC", 30))

    return app, socketio
