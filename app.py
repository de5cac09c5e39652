"""Top-up storefront Flask application."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from flask import Flask

from cli import register_cli
from config import StorefrontConfig
from routes import admin, api
from services import PollerRegistry, ReceiptStorage
from shop.config import AppConfig, load_env
from shop.db.session import build_engine, make_session_factory
from shop.services.catalog_service import CatalogService
from shop.services.order_service import OrderService
from shop.services.payment_service import PaymentMethodService
from shop.services.remote_order_store import RestOrderStore
from shop.services.session_store import JsonFileSessionStore


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _order_store(settings: AppConfig, session_factory):
    if settings.order_store_url:
        return RestOrderStore(settings.order_store_url, settings.order_store_key)
    return OrderService(session_factory)


def create_app(
    config: Optional[StorefrontConfig] = None,
    settings: Optional[AppConfig] = None,
    session_factory=None,
    orders=None,
) -> Flask:
    config = config or StorefrontConfig.load()
    settings = settings or load_env(config.settings_file)
    _configure_logging(settings.log_level)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["STOREFRONT_CONFIG"] = config
    app.config["SHOP_SETTINGS"] = settings

    if session_factory is None:
        session_factory = make_session_factory(build_engine(settings.database_url))
    orders = orders or _order_store(settings, session_factory)
    sessions_dir = Path(config.sessions_dir)

    components = {
        "session_factory": session_factory,
        "catalog": CatalogService(session_factory),
        "payments": PaymentMethodService(session_factory),
        "orders": orders,
        "receipts": ReceiptStorage(config.receipts_dir, base_url="/api/receipts"),
        "pollers": PollerRegistry(orders, interval=settings.order_poll_interval),
        "session_store_factory": lambda client_id: JsonFileSessionStore(sessions_dir / f"{client_id}.json"),
    }
    app.extensions["storefront_components"] = components

    app.register_blueprint(api.api_bp)
    app.register_blueprint(admin.admin_bp)
    register_cli(app)

    return app


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=6055, debug=False)


if __name__ == "__main__":
    main()
