# backend/stockledger/__init__.py
from __future__ import annotations

import os
from typing import Any, Mapping

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: Mapping[str, Any] | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions; the engine is opened lazily per app and
    # sessions are removed at app-context teardown.
    db.init_app(app)
    migrate.init_app(app, db, directory=os.path.join(os.path.dirname(app.root_path), "migrations"))

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.tenants import tenants_bp
    from .routes.materials import materials_bp
    from .routes.analytics import analytics_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(tenants_bp)
    app.register_blueprint(materials_bp)
    app.register_blueprint(analytics_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def shutdown_app(app: Flask) -> None:
    """Release the app's sessions and pooled connections."""
    with app.app_context():
        db.session.remove()
        db.engine.dispose()
