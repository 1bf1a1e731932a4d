# backend/stockledger/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    """App factory; test_config overrides Config before extensions bind."""
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", logging.INFO))

    db.init_app(app)
    migrate.init_app(app, db)

    # Models must be imported before Alembic autogenerate looks at metadata
    from . import models  # noqa: F401

    from .routes.admin import admin_bp
    from .routes.inventory import inventory_bp
    from .routes.orders import orders_bp
    from .routes.products import products_bp
    from .routes.serials import serials_bp
    from .routes.system import system_bp

    for bp in (system_bp, products_bp, inventory_bp, serials_bp, orders_bp, admin_bp):
        app.register_blueprint(bp)

    from .cli import register_commands
    register_commands(app)

    return app
