from io import BytesIO


def _add_gift_card(client, quantity=1):
    return client.post("/api/cart/items", json={"product_id": "gift-card", "quantity": quantity})


def _fill_and_pay(client):
    client.put("/api/checkout/fields", json={"values": {"default_ign": "Player1"}})
    return client.put("/api/checkout/payment-method", json={"payment_method_id": "gcash"})


def _admin(app):
    admin = app.test_client()
    assert admin.post("/admin/login", json={"username": "admin", "password": "secret"}).status_code == 200
    return admin


def test_menu_filters_by_category_and_search(client):
    body = client.get("/api/menu").get_json()
    assert body["category"] == "all"
    assert len(body["products"]) == 5

    client.put("/api/menu/category", json={"category": "popular"})
    assert [p["id"] for p in client.get("/api/menu").get_json()["products"]] == ["mlbb"]

    client.put("/api/menu/search", json={"query": "genshin"})
    body = client.get("/api/menu").get_json()
    assert body["category"] == "all"
    assert [p["id"] for p in body["products"]] == ["genshin"]


def test_cart_prices_come_from_the_catalog(client):
    resp = client.post(
        "/api/cart/items",
        json={"product_id": "genshin", "variation_id": "60", "add_ons": [{"id": "welkin", "quantity": 2}], "price": 1},
    )
    assert resp.status_code == 201
    item = resp.get_json()["item"]
    assert item["total_price"] == "100.00"

    cart = client.patch(f"/api/cart/items/{item['id']}", json={"quantity": 3}).get_json()
    assert cart["total_items"] == 3
    assert cart["total_price"] == "300.00"

    cart = client.delete(f"/api/cart/items/{item['id']}").get_json()
    assert cart["items"] == []


def test_unknown_product_and_bad_quantity(client):
    assert client.post("/api/cart/items", json={"product_id": "nope"}).status_code == 404
    assert _add_gift_card(client, quantity=0).status_code == 400


def test_checkout_view_falls_back_to_menu_without_items(client):
    client.put("/api/view", json={"view": "checkout"})
    assert client.get("/api/view").get_json()["view"] == "menu"

    _add_gift_card(client)
    client.put("/api/view", json={"view": "checkout"})
    assert client.get("/api/view").get_json()["view"] == "checkout"


def test_place_order_track_and_finish(app, client):
    _add_gift_card(client)
    assert _fill_and_pay(client).status_code == 200

    resp = client.post("/api/checkout/orders")
    assert resp.status_code == 201
    order = resp.get_json()["order"]
    assert order["customer_info"] == {"Payment Method": "GCash", "IGN": "Player1"}
    assert order["total_price"] == 200
    assert resp.get_json()["tracking"]["status_text"] == "Processing"

    again = client.post("/api/checkout/orders")
    assert again.status_code == 409
    assert again.get_json()["order_id"] == order["id"]

    admin = _admin(app)
    assert admin.put(f"/admin/orders/{order['id']}/status", json={"status": "approved"}).status_code == 200

    poll = client.get("/api/orders/current/poll").get_json()
    assert poll["status"] == "approved"
    assert poll["polling"] is False
    assert client.get("/api/orders/current/poll").get_json()["fetched"] is False

    done = client.post("/api/orders/current/close").get_json()
    assert done == {"completed": True, "view": "menu"}
    assert client.get("/api/cart").get_json()["items"] == []
    assert client.get("/api/checkout").get_json()["payment_method"] is None


def test_reopening_status_after_reload(client):
    _add_gift_card(client)
    _fill_and_pay(client)
    order_id = client.post("/api/checkout/orders").get_json()["order"]["id"]

    snapshot = client.post("/api/orders/current/open", json={}).get_json()
    assert snapshot["order_id"] == order_id
    assert snapshot["customer_info"]["fields"][1] == {"label": "IGN", "value": "Player1"}


def test_receipt_upload_and_removal(client, image_bytes):
    _add_gift_card(client)
    resp = client.post(
        "/api/checkout/receipt",
        data={"receipt": (BytesIO(image_bytes), "receipt.png")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    url = resp.get_json()["receipt_url"]
    assert client.get(url).status_code == 200
    assert client.get("/api/checkout").get_json()["receipt_preview"].startswith("data:image/png")

    bad = client.post(
        "/api/checkout/receipt",
        data={"receipt": (BytesIO(b"plain text"), "receipt.png")},
        content_type="multipart/form-data",
    )
    assert bad.status_code == 400
    assert client.get("/api/checkout").get_json()["receipt_url"] is None

    assert client.delete("/api/checkout/receipt").get_json() == {"status": "ok"}


def test_messenger_mode_flow(app, client):
    app.config["SHOP_SETTINGS"].order_option = "order_via_messenger"
    _add_gift_card(client)
    _fill_and_pay(client)

    assert client.post("/api/checkout/messenger").status_code == 400
    message = client.post("/api/checkout/message").get_json()["message"]
    assert message.startswith("IGN: Player1")

    url = client.post("/api/checkout/messenger").get_json()["url"]
    assert url.startswith("https://m.me/Rnold77?text=IGN%3A%20Player1")
    assert client.post("/api/checkout/orders").status_code == 400


def test_admin_requires_login(app, client):
    assert client.get("/admin/orders").status_code == 401
    assert client.post("/admin/login", json={"username": "admin", "password": "wrong"}).status_code == 401

    admin = _admin(app)
    assert admin.get("/admin/orders").get_json()["total"] == 0
    assert admin.put("/admin/orders/missing/status", json={"status": "approved"}).status_code == 404
    assert admin.put("/admin/orders/missing/status", json={"status": "lost"}).status_code == 400


def test_settings_update_applies_hot_keys(app):
    admin = _admin(app)
    resp = admin.post("/admin/settings", json={"settings": {"SITE_NAME": "Diamond Hub", "ORDER_POLL_INTERVAL": 5}})
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["requires_restart"] is True
    assert app.config["SHOP_SETTINGS"].site_name == "Diamond Hub"
    assert app.test_client().get("/api/store").get_json()["site_name"] == "Diamond Hub"

    bad = admin.post("/admin/settings", json={"settings": {"ORDER_OPTION": "fax"}})
    assert bad.status_code == 400


def test_menu_import_with_malformed_price_is_rejected(app):
    admin = _admin(app)
    resp = admin.post(
        "/admin/menu/import",
        json={"products": [{"id": "bad", "name": "Bad", "base_price": "12,50", "category_id": "cards"}]},
    )

    assert resp.status_code == 400
    assert "invalid amount" in resp.get_json()["error"]


def test_negative_bulk_slot_is_a_bad_request(client):
    client.post("/api/cart/items", json={"product_id": "mlbb", "variation_id": "86"})
    client.post("/api/cart/items", json={"product_id": "genshin"})
    client.put("/api/checkout/bulk/selection", json={"product_id": "mlbb", "selected": True})

    assert client.put("/api/checkout/bulk/values", json={"index": -1, "value": "x"}).status_code == 400
    assert client.get("/api/checkout").get_json()["form"]["values"] == {}


def test_closing_a_rejected_order_releases_the_poller(app, client):
    _add_gift_card(client)
    _fill_and_pay(client)
    order_id = client.post("/api/checkout/orders").get_json()["order"]["id"]
    _admin(app).put(f"/admin/orders/{order_id}/status", json={"status": "rejected"})

    client.get("/api/orders/current/poll")
    assert client.post("/api/orders/current/close").get_json()["completed"] is False
    assert len(app.extensions["storefront_components"]["pollers"]) == 0
