from decimal import Decimal

import pytest
import requests

from shop.services.remote_order_store import OrderStoreError, RestOrderStore


class FakeResponse:
    def __init__(self, status_code, data=None, headers=None):
        self.status_code = status_code
        self._data = data
        self.headers = headers or {}

    def json(self):
        return self._data


class FakeHttp:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def request(self, method, url, **kwargs):
        return self._next(method, url, **kwargs)


ROW = {
    "id": "abc",
    "order_items": [{"name": "Gift Card"}],
    "customer_info": {"Payment Method": "GCash", "IGN": "Player1"},
    "payment_method_id": "gcash",
    "receipt_url": None,
    "total_price": 200,
    "status": "pending",
}


def _store(http):
    return RestOrderStore("https://example.test/", "anon-key", session=http)


def test_create_order_posts_pending_row():
    http = FakeHttp(FakeResponse(201, [ROW]))
    order = _store(http).create_order(
        items=ROW["order_items"],
        customer_info=ROW["customer_info"],
        payment_method_id="gcash",
        total_price=Decimal("200"),
    )

    method, url, kwargs = http.calls[0]
    assert (method, url) == ("POST", "https://example.test/rest/v1/orders")
    assert kwargs["json"]["status"] == "pending"
    assert kwargs["json"]["total_price"] == 200.0
    assert kwargs["headers"]["Authorization"] == "Bearer anon-key"
    assert order["id"] == "abc"
    assert order["receipt_url"] == ""
    assert order["total_price"] == 200.0


def test_create_order_error_raises():
    with pytest.raises(OrderStoreError):
        _store(FakeHttp(FakeResponse(500, {"message": "boom"}))).create_order(
            items=[{}], customer_info={}, payment_method_id=None, total_price=Decimal("1")
        )


def test_fetch_filters_by_id():
    http = FakeHttp(FakeResponse(200, [dict(ROW, status="approved")]))
    order = _store(http).fetch_order_by_id("abc")

    assert order["status"] == "approved"
    assert http.calls[0][2]["params"]["id"] == "eq.abc"


def test_missing_order_reads_as_not_found():
    assert _store(FakeHttp(FakeResponse(200, []))).fetch_order_by_id("abc") is None


@pytest.mark.parametrize("response", [FakeResponse(503), requests.ConnectionError("offline")])
def test_fetch_failures_raise_instead_of_reading_as_missing(response):
    with pytest.raises(OrderStoreError):
        _store(FakeHttp(response)).fetch_order_by_id("abc")


def test_update_status_validates_before_calling():
    http = FakeHttp()
    with pytest.raises(ValueError):
        _store(http).update_status("abc", "shipped")
    assert http.calls == []


def test_list_orders_reads_total_from_content_range():
    http = FakeHttp(FakeResponse(206, [ROW], headers={"Content-Range": "0-0/41"}))
    result = _store(http).list_orders(status="pending", page=2, page_size=1)

    params = http.calls[0][2]["params"]
    assert params["status"] == "eq.pending"
    assert params["offset"] == 1
    assert result["total"] == 41
    assert result["items"][0]["id"] == "abc"
