"""Customer JSON API: menu, cart, checkout and order status."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional
from uuid import uuid4

from flask import Blueprint, current_app, g, jsonify, request, send_from_directory, session

from shop.errors import (
    CheckoutValidationError,
    OrderInProgressError,
    OrderStoreError,
    OrderSubmissionError,
    ReceiptUploadError,
)
from shop.models.cart_item import AddOn, Variation
from shop.services.cart_service import CartService
from shop.services.catalog_service import DEFAULT_VIEW, BrowseState
from shop.services.checkout_service import CheckoutService
from shop.services.logging import log_event
from shop.services.session_store import SessionFileCorrupt
from shop.utils.money import D


api_bp = Blueprint("storefront_api", __name__, url_prefix="/api")

CLIENT_ID_KEY = "storefront_client"
_CLIENT_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def _components() -> Dict[str, Any]:
    return current_app.extensions["storefront_components"]


def _settings():
    return current_app.config["SHOP_SETTINGS"]


def _client_id() -> str:
    client_id = session.get(CLIENT_ID_KEY)
    if not client_id or not _CLIENT_ID_RE.match(str(client_id)):
        client_id = uuid4().hex
        session[CLIENT_ID_KEY] = client_id
        session.permanent = True
    return client_id


def _store():
    if "storefront_store" not in g:
        g.storefront_store = _components()["session_store_factory"](_client_id())
    return g.storefront_store


def _cart() -> CartService:
    return CartService(_store())


def _browse() -> BrowseState:
    return BrowseState(_store())


def _checkout() -> CheckoutService:
    settings = _settings()
    components = _components()
    return CheckoutService(
        _store(),
        cart=_cart(),
        payments=components["payments"],
        orders=components["orders"],
        images=components["receipts"],
        order_option=settings.order_option,
        messenger_url=settings.messenger_url,
        currency=settings.currency,
    )


def _poller():
    return _components()["pollers"].get(_client_id(), _store())


def _payload() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


@api_bp.errorhandler(SessionFileCorrupt)
def handle_unreadable_session(exc):
    # the next request starts a fresh session under a new client id
    log_event("error", "session.unreadable", client_id=session.pop(CLIENT_ID_KEY, None), error=str(exc))
    return jsonify({"error": "Your session could not be read and was reset. Please reload the page."}), 500


@api_bp.get("/store")
def store_info():
    settings = _settings()
    return jsonify(
        {
            "site_name": settings.site_name,
            "currency": settings.currency,
            "order_option": settings.order_option,
            "support_url": settings.support_url,
        }
    )


# --- menu -------------------------------------------------------------------


@api_bp.get("/menu")
def menu():
    catalog = _components()["catalog"]
    browse = _browse()
    everything = catalog.list_products()
    category = browse.reconcile_category(catalog.has_popular_items(), len(everything))
    products = catalog.list_products(query=browse.search(), category=category)
    return jsonify(
        {
            "categories": catalog.list_categories(),
            "products": products,
            "category": category,
            "search": browse.search(),
            "has_popular": catalog.has_popular_items(),
            "view": browse.reconcile_view(_cart().get_total_items()),
        }
    )


@api_bp.get("/view")
def get_view():
    return jsonify({"view": _browse().reconcile_view(_cart().get_total_items())})


@api_bp.put("/view")
def set_view():
    view = str(_payload().get("view", "")).strip()
    browse = _browse()
    try:
        browse.set_view(view)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"view": browse.reconcile_view(_cart().get_total_items())})


@api_bp.put("/menu/category")
def select_category():
    category = str(_payload().get("category", "")).strip()
    browse = _browse()
    browse.select_category(category)
    return jsonify({"category": browse.category(), "search": browse.search()})


@api_bp.put("/menu/search")
def set_search():
    query = str(_payload().get("query", ""))
    browse = _browse()
    browse.set_search(query)
    return jsonify({"category": browse.category(), "search": browse.search()})


# --- cart -------------------------------------------------------------------


def _pick_variation(product: Dict, variation_id: Optional[str]) -> Optional[Variation]:
    variations = product.get("variations") or []
    if not variations:
        return None
    if not variation_id:
        return Variation.from_dict(variations[0])
    for v in variations:
        if str(v.get("id")) == str(variation_id):
            return Variation.from_dict(v)
    raise ValueError("Unknown package for this product.")


def _pick_add_ons(product: Dict, requested: List[Dict]) -> List[AddOn]:
    offered = product.get("add_ons") or []
    picked = []
    for entry in requested or []:
        ref = str(entry.get("id") or entry.get("name") or "")
        match = next((a for a in offered if ref in (str(a.get("id", "")), str(a.get("name", "")))), None)
        if match is None:
            raise ValueError(f"Unknown add-on: {ref}")
        quantity = int(entry.get("quantity", 1))
        if quantity <= 0:
            continue
        picked.append(AddOn(name=str(match["name"]), quantity=quantity, price=D(match.get("price"))))
    return picked


@api_bp.get("/cart")
def get_cart():
    return jsonify(_cart().as_dict())


@api_bp.post("/cart/items")
def add_cart_item():
    payload = _payload()
    product_id = str(payload.get("product_id", "")).strip()
    product = _components()["catalog"].get_product(product_id) if product_id else {}
    if not product:
        return jsonify({"error": "Product not found."}), 404
    if not product.get("available", True):
        return jsonify({"error": "This product is currently unavailable."}), 400

    cart = _cart()
    try:
        variation = _pick_variation(product, payload.get("variation_id"))
        add_ons = _pick_add_ons(product, payload.get("add_ons") or [])
        item = cart.add_to_cart(product, int(payload.get("quantity", 1)), variation, add_ons)
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"item": item.to_dict(), "cart": cart.as_dict()}), 201


@api_bp.patch("/cart/items/<item_id>")
def update_cart_item(item_id: str):
    try:
        quantity = int(_payload().get("quantity"))
    except (TypeError, ValueError):
        return jsonify({"error": "quantity must be a number"}), 400
    cart = _cart()
    cart.update_quantity(item_id, quantity)
    return jsonify(cart.as_dict())


@api_bp.delete("/cart/items/<item_id>")
def remove_cart_item(item_id: str):
    cart = _cart()
    cart.remove_from_cart(item_id)
    return jsonify(cart.as_dict())


@api_bp.delete("/cart")
def clear_cart():
    cart = _cart()
    cart.clear_cart()
    return jsonify(cart.as_dict())


# --- checkout ---------------------------------------------------------------


@api_bp.get("/checkout")
def checkout_state():
    return jsonify(_checkout().state())


@api_bp.put("/checkout/fields")
def set_checkout_fields():
    payload = _payload()
    form = _checkout().form()
    try:
        if "product_id" in payload:
            form.set_field_value(str(payload["product_id"]), int(payload.get("index", 0)), str(payload.get("value", "")))
        for key, value in (payload.get("values") or {}).items():
            form.set_value(str(key), "" if value is None else str(value))
    except KeyError as exc:
        return jsonify({"error": f"Unknown field: {exc.args[0]}"}), 400
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(form.to_dict())


@api_bp.put("/checkout/bulk/selection")
def set_bulk_selection():
    payload = _payload()
    form = _checkout().form()
    try:
        form.toggle_bulk_product(str(payload.get("product_id", "")), bool(payload.get("selected", True)))
    except KeyError as exc:
        return jsonify({"error": str(exc.args[0])}), 400
    return jsonify(form.to_dict())


@api_bp.put("/checkout/bulk/values")
def set_bulk_value():
    payload = _payload()
    form = _checkout().form()
    try:
        form.set_bulk_value(int(payload.get("index")), str(payload.get("value", "")))
    except (TypeError, ValueError):
        return jsonify({"error": "index must be a number"}), 400
    except KeyError as exc:
        return jsonify({"error": str(exc.args[0])}), 400
    return jsonify(form.to_dict())


@api_bp.put("/checkout/payment-method")
def select_payment_method():
    checkout = _checkout()
    try:
        method = checkout.select_payment_method(str(_payload().get("payment_method_id", "")))
    except CheckoutValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"payment_method": dict(checkout.payment_details(method), id=method["id"])})


@api_bp.post("/checkout/receipt")
def upload_receipt():
    if "receipt" not in request.files:
        return jsonify({"error": "No receipt image was uploaded."}), 400
    checkout = _checkout()
    try:
        url = checkout.upload_receipt(request.files["receipt"])
    except ReceiptUploadError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"status": "ok", "receipt_url": url})


@api_bp.delete("/checkout/receipt")
def remove_receipt():
    _checkout().remove_receipt()
    return jsonify({"status": "ok"})


@api_bp.post("/checkout/message")
def copy_order_message():
    try:
        message = _checkout().copy_order_message()
    except CheckoutValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"message": message})


@api_bp.post("/checkout/messenger")
def send_via_messenger():
    try:
        url = _checkout().submit_via_messenger()
    except CheckoutValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"url": url})


@api_bp.post("/checkout/orders")
def place_order():
    checkout = _checkout()
    try:
        order = checkout.place_order()
    except OrderInProgressError as exc:
        return jsonify({"error": "You already have an order in progress.", "order_id": exc.order_id, "status": exc.status}), 409
    except CheckoutValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except OrderSubmissionError as exc:
        return jsonify({"error": str(exc)}), 502
    except OrderStoreError:
        return jsonify({"error": "Could not check your previous order. Please try again.", "retryable": True}), 503
    poller = _poller()
    poller.open(order["id"])
    return jsonify({"order": order, "tracking": poller.snapshot()}), 201


# --- order status -----------------------------------------------------------


@api_bp.post("/orders/current/open")
def open_order_status():
    poller = _poller()
    order_id = str(_payload().get("order_id") or "").strip() or None
    poller.open(order_id)
    return jsonify(poller.snapshot())


@api_bp.get("/orders/current/poll")
def poll_order_status():
    poller = _poller()
    fetched = poller.tick()
    return jsonify(dict(poller.snapshot(), fetched=fetched))


@api_bp.post("/orders/current/close")
def close_order_status():
    poller = _poller()
    completed = poller.close()
    if completed:
        _checkout().complete_order()
        _browse().set_view(DEFAULT_VIEW)
        log_event("info", "order.completed", order_id=poller.order_id)
    _components()["pollers"].release(_client_id())
    return jsonify({"completed": completed, "view": _browse().reconcile_view(_cart().get_total_items())})


@api_bp.get("/receipts/<bucket>/<path:filename>")
def receipt_file(bucket: str, filename: str):
    storage = _components()["receipts"]
    try:
        directory = storage.bucket_dir(bucket)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 404
    return send_from_directory(directory, filename)
