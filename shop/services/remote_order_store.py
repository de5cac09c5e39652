"""
Order store backed by a hosted PostgREST endpoint (``/rest/v1/orders``).
Same interface as ``OrderService`` so the checkout can run against either.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import requests

from ..errors import OrderStoreError
from ..utils.money import round_money
from ..utils.validators import ensure_order_status, normalize_paging
from .logging import log_event


class RestOrderStore:
    TABLE_PATH = "/rest/v1/orders"

    def __init__(self, base_url: str, api_key: str, timeout: float = 15.0, session=None) -> None:
        if not base_url:
            raise ValueError("base_url required")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self._http = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def _url(self) -> str:
        return f"{self.base_url}{self.TABLE_PATH}"

    def _request(self, method: str, **kwargs) -> requests.Response:
        kwargs.setdefault("headers", self._headers())
        try:
            return self._http.request(method, self._url(), timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            self.logger.warning("order store %s failed: %s", method, exc)
            raise OrderStoreError(f"order store unreachable: {exc}") from exc

    @staticmethod
    def _normalize(row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": row.get("id"),
            "order_items": row.get("order_items") or [],
            "customer_info": row.get("customer_info") or {},
            "payment_method_id": row.get("payment_method_id"),
            "receipt_url": row.get("receipt_url") or "",
            "total_price": float(round_money(row.get("total_price"))),
            "status": row.get("status"),
            "created_at": row.get("created_at"),
            "updated_at": row.get("updated_at"),
        }

    def create_order(
        self,
        *,
        items: List[Dict[str, Any]],
        customer_info: Dict[str, Any],
        payment_method_id: Optional[str],
        total_price: Decimal,
        receipt_url: str = "",
    ) -> Dict:
        payload = {
            "order_items": items,
            "customer_info": customer_info,
            "payment_method_id": payment_method_id,
            "receipt_url": receipt_url or "",
            "total_price": float(round_money(total_price)),
            "status": "pending",
        }
        response = self._request("POST", json=payload)
        if response.status_code not in (200, 201):
            raise OrderStoreError(f"order store error: HTTP {response.status_code}")
        rows = response.json()
        row = rows[0] if isinstance(rows, list) and rows else rows
        if not isinstance(row, dict) or not row.get("id"):
            raise OrderStoreError("order store returned no order")
        log_event("info", "order.created", order_id=row["id"], items=len(items), store="rest")
        return self._normalize(row)

    def fetch_order_by_id(self, order_id: str) -> Optional[Dict]:
        if not order_id:
            return None
        response = self._request("GET", params={"id": f"eq.{order_id}", "select": "*"})
        if response.status_code != 200:
            self.logger.warning("order fetch for %s returned HTTP %s", order_id, response.status_code)
            raise OrderStoreError(f"order store error: HTTP {response.status_code}")
        rows = response.json()
        if not rows:
            return None
        return self._normalize(rows[0])

    def update_status(self, order_id: str, status: str) -> Optional[Dict]:
        status = ensure_order_status(status)
        response = self._request("PATCH", params={"id": f"eq.{order_id}"}, json={"status": status})
        if response.status_code != 200:
            raise OrderStoreError(f"order store error: HTTP {response.status_code}")
        rows = response.json()
        return self._normalize(rows[0]) if rows else None

    def list_orders(self, *, status: Optional[str] = None, page: int = 1, page_size: int = 20) -> Dict:
        p, ps = normalize_paging(page, page_size)
        params = {"select": "*", "order": "created_at.desc", "limit": ps, "offset": (p - 1) * ps}
        if status:
            params["status"] = f"eq.{ensure_order_status(status)}"
        headers = dict(self._headers(), Prefer="count=exact")
        response = self._request("GET", params=params, headers=headers)
        if response.status_code not in (200, 206):
            raise OrderStoreError(f"order store error: HTTP {response.status_code}")
        rows = response.json() or []
        # Content-Range: "0-19/57"
        total = len(rows)
        content_range = response.headers.get("Content-Range", "")
        if "/" in content_range and content_range.rsplit("/", 1)[1].isdigit():
            total = int(content_range.rsplit("/", 1)[1])
        return {"items": [self._normalize(r) for r in rows], "page": p, "page_size": ps, "total": total}
