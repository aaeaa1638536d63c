# backend/bookkeeper/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .gateway import SqlAlchemyGateway
    from .services.ledger_service import SaleLedger

    gateway = SqlAlchemyGateway(db, retry_attempts=app.config["STORAGE_RETRY_ATTEMPTS"])
    app.extensions["sale_ledger"] = SaleLedger(gateway)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.customers import customers_bp
    from .routes.items import items_bp
    from .routes.sale_builder import draft_bp
    from .routes.sales import sales_bp
    from .routes.payments import payments_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(draft_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(payments_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
