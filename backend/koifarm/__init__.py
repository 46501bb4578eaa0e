# backend/koifarm/__init__.py
"""
Koi farm back office: sales order workflow and member CRM service.

Run locally from the backend directory:
    python -m flask --app koifarm system init-db
    python -m flask --app koifarm run
"""
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        # Tests swap the database before the extensions bind to it
        app.config.update(config_overrides)

    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.members import members_bp
    from .routes.sales import sales_bp

    for blueprint in (system_bp, products_bp, members_bp, sales_bp):
        app.register_blueprint(blueprint)

    allowed_origins = frozenset(app.config["CORS_ORIGINS"])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,OPTIONS"
        return response

    from .cli import register_commands
    register_commands(app)

    return app
