"""Staff API: sign-in, order review and store settings."""

from __future__ import annotations

import json

from flask import Blueprint, current_app, jsonify, request, session

from shop.config import ALLOWED_HOT_KEYS, refresh_non_sensitive, requires_restart
from shop.errors import OrderStoreError
from shop.services.logging import log_event
from shop.services.menu_import import import_menu


admin_bp = Blueprint("storefront_admin", __name__, url_prefix="/admin")

SETTING_KEYS = ALLOWED_HOT_KEYS | {"ORDER_POLL_INTERVAL"}


def _components() -> dict:
    return current_app.extensions["storefront_components"]


def _config():
    return current_app.config["STOREFRONT_CONFIG"]


@admin_bp.errorhandler(OrderStoreError)
def handle_order_store_error(exc):
    log_event("error", "admin.order_store_failed", error=str(exc))
    return jsonify({"error": "The order store is unavailable. Please try again."}), 502


def _is_authenticated() -> bool:
    return bool(session.get("storefront_admin"))


def _form_or_json(name: str) -> str:
    payload = request.get_json(silent=True) or {}
    return str(payload.get(name) or request.form.get(name, "")).strip()


@admin_bp.before_request
def guard_private_routes():
    if request.endpoint and request.endpoint.startswith("storefront_admin."):
        if request.endpoint != "storefront_admin.login" and not _is_authenticated():
            return jsonify({"error": "Please sign in."}), 401
    return None


@admin_bp.post("/login")
def login():
    username = _form_or_json("username")
    password = _form_or_json("password")
    cfg = _config()
    if username == cfg.admin_username and password == cfg.admin_password:
        session["storefront_admin"] = True
        return jsonify({"status": "ok"})
    log_event("warning", "admin.login_failed", username=username)
    return jsonify({"error": "Wrong username or password."}), 401


@admin_bp.post("/logout")
def logout():
    session.pop("storefront_admin", None)
    return jsonify({"status": "ok"})


@admin_bp.get("/orders")
def list_orders():
    orders = _components()["orders"]
    try:
        result = orders.list_orders(
            status=request.args.get("status") or None,
            page=int(request.args.get("page", 1)),
            page_size=int(request.args.get("page_size", 20)),
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(result)


@admin_bp.get("/orders/<order_id>")
def get_order(order_id: str):
    order = _components()["orders"].fetch_order_by_id(order_id)
    if order is None:
        return jsonify({"error": "Order not found."}), 404
    return jsonify({"order": order})


@admin_bp.put("/orders/<order_id>/status")
def update_order_status(order_id: str):
    status = _form_or_json("status")
    try:
        order = _components()["orders"].update_status(order_id, status)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    if order is None:
        return jsonify({"error": "Order not found."}), 404
    return jsonify({"order": order})


@admin_bp.post("/menu/import")
def import_menu_document():
    payload = request.get_json(silent=True) or {}
    components = _components()
    try:
        counts = import_menu(payload, components["catalog"], components["payments"])
    except (KeyError, ValueError) as exc:
        return jsonify({"error": f"Menu import failed: {exc}"}), 400
    log_event("info", "menu.imported", **counts)
    return jsonify({"status": "ok", "imported": counts})


@admin_bp.get("/settings")
def get_settings():
    settings_file = _config().settings_file
    try:
        settings = json.loads(settings_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        return jsonify({"error": f"Could not read settings: {exc}"}), 500
    return jsonify({"status": "ok", "settings": settings})


@admin_bp.post("/settings")
def update_settings():
    settings_file = _config().settings_file
    payload = request.get_json(silent=True) or {}
    incoming = {k: v for k, v in (payload.get("settings") or {}).items() if k in SETTING_KEYS}
    if not incoming:
        return jsonify({"error": "No settings provided."}), 400

    try:
        current = json.loads(settings_file.read_text(encoding="utf-8")) if settings_file.exists() else {}
    except (OSError, ValueError):
        current = {}
    try:
        refreshed = refresh_non_sensitive(incoming, current_app.config["SHOP_SETTINGS"])
        if "ORDER_POLL_INTERVAL" in incoming:
            float(incoming["ORDER_POLL_INTERVAL"])
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400

    changed = [k for k, v in incoming.items() if current.get(k) != v]
    current.update(incoming)
    settings_file.write_text(json.dumps(current, indent=2, ensure_ascii=False), encoding="utf-8")
    current_app.config["SHOP_SETTINGS"] = refreshed
    restart = requires_restart(changed) or any(k not in ALLOWED_HOT_KEYS for k in changed)
    log_event("info", "settings.updated", keys=changed, requires_restart=restart)
    return jsonify({"status": "ok", "settings": current, "requires_restart": restart})


@admin_bp.post("/change-password")
def change_password():
    payload = request.get_json(silent=True) or {}
    current_password = str(payload.get("current_password", "")).strip()
    new_password = str(payload.get("new_password", "")).strip()
    confirm_password = str(payload.get("confirm_password", "")).strip()

    if not current_password or not new_password or not confirm_password:
        return jsonify({"error": "Please fill in every field."}), 400
    config = _config()
    if current_password != config.admin_password:
        return jsonify({"error": "Current password is wrong."}), 401
    if new_password != confirm_password:
        return jsonify({"error": "The new passwords do not match."}), 400
    if len(new_password) < 6:
        return jsonify({"error": "The new password needs at least 6 characters."}), 400

    config.admin_credentials_file.write_text(
        json.dumps({"username": config.admin_username, "password": new_password}, indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    config.admin_password = new_password
    return jsonify({"status": "ok"})
