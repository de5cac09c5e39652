from io import BytesIO

import pytest
from PIL import Image
from werkzeug.datastructures import FileStorage

from app import create_app
from config import StorefrontConfig
from shop.config import PLACE_ORDER, AppConfig
from shop.db.session import build_engine, make_session_factory
from shop.services.cart_service import CartService
from shop.services.catalog_service import CatalogService
from shop.services.menu_import import import_menu
from shop.services.order_service import OrderService
from shop.services.payment_service import PaymentMethodService
from shop.services.session_store import MemorySessionStore


MENU = {
    "categories": [
        {"id": "moba", "name": "MOBA", "sort_order": 1},
        {"id": "rpg", "name": "RPG", "sort_order": 2},
        {"id": "cards", "name": "Gift Cards", "sort_order": 3},
    ],
    "products": [
        {
            "id": "mlbb",
            "name": "Mobile Legends",
            "base_price": 100,
            "category_id": "moba",
            "popular": True,
            "variations": [
                {"id": "86", "name": "86 Diamonds", "price": 100},
                {"id": "172", "name": "172 Diamonds", "price": 200},
            ],
            "custom_fields": [
                {"key": "user_id", "label": "User ID", "placeholder": "1234567", "required": True},
                {"key": "zone_id", "label": "Zone ID", "placeholder": "1234", "required": True},
            ],
        },
        {
            "id": "genshin",
            "name": "Genshin Impact",
            "base_price": 50,
            "category_id": "rpg",
            "variations": [{"id": "60", "name": "60 Genesis Crystals", "price": 50}],
            "add_ons": [{"id": "welkin", "name": "Welkin Moon", "price": 25}],
            "custom_fields": [
                {"key": "uid", "label": "UID", "required": True},
                {"key": "server", "label": "Server", "required": False},
            ],
        },
        {
            "id": "gift-card",
            "name": "Gift Card",
            "base_price": 200,
            "category_id": "cards",
        },
        {
            "id": "promo-pack",
            "name": "Promo Pack",
            "base_price": 100,
            "category_id": "cards",
            "is_on_discount": True,
            "discount_percentage": 10,
        },
        {
            "id": "big-pack",
            "name": "Big Pack",
            "base_price": "499.99",
            "category_id": "cards",
        },
    ],
    "payment_methods": [
        {"id": "gcash", "name": "GCash", "account_number": "09171234567", "account_name": "Shop Owner", "sort_order": 1},
        {
            "id": "maya",
            "name": "Maya",
            "account_number": "09181234567",
            "account_name": "Shop Owner",
            "max_order_amount": 500,
            "sort_order": 2,
        },
    ],
}


@pytest.fixture
def session_factory():
    return make_session_factory(build_engine("sqlite://"))


@pytest.fixture
def catalog(session_factory):
    return CatalogService(session_factory)


@pytest.fixture
def payments(session_factory):
    return PaymentMethodService(session_factory)


@pytest.fixture
def orders(session_factory):
    return OrderService(session_factory)


@pytest.fixture
def seeded(catalog, payments):
    import_menu(MENU, catalog, payments)
    return catalog


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def cart(store):
    return CartService(store)


@pytest.fixture
def settings():
    return AppConfig(
        database_url="sqlite://",
        secret_key="test",
        log_level="WARNING",
        currency="PHP",
        order_option=PLACE_ORDER,
        messenger_url="https://m.me/Rnold77",
        order_poll_interval=0,
        site_name="Test Shop",
        support_url="",
    )


@pytest.fixture
def storefront_config(tmp_path, monkeypatch):
    monkeypatch.setenv("STOREFRONT_ADMIN_USER", "admin")
    monkeypatch.setenv("STOREFRONT_ADMIN_PASS", "secret")
    return StorefrontConfig.load(root=tmp_path)


@pytest.fixture
def app(storefront_config, settings, session_factory, seeded):
    app = create_app(storefront_config, settings, session_factory=session_factory)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def make_image_bytes(fmt="PNG", size=(8, 8)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def receipt_file():
    def _make(filename="receipt.png", data=None, content_type="image/png"):
        payload = make_image_bytes() if data is None else data
        return FileStorage(stream=BytesIO(payload), filename=filename, content_type=content_type)

    return _make


@pytest.fixture
def image_bytes():
    return make_image_bytes()
