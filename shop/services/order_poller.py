"""Tracks one placed order until staff approve or reject it.

The order store is only observed here; status changes come from staff. The
poller is a small state machine: ``should_poll`` is the single guard that
decides whether another fetch may happen, and it is evaluated before every
tick. A terminal status, a closed view or an unknown order all make it false.
At most one fetch per poller runs at a time; a tick that would overlap a
running fetch is skipped.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from ..errors import OrderStoreError
from ..models.order import TERMINAL_STATUSES
from .logging import log_event
from .session_store import CURRENT_ORDER_ID_KEY, SessionStore


logger = logging.getLogger(__name__)

STATUS_TEXT = {
    "pending": "Processing",
    "processing": "Processing",
    "approved": "Succeeded",
    "rejected": "Rejected",
}

MULTIPLE_ACCOUNTS_KEY = "Multiple Accounts"


class OrderStatusPoller:
    def __init__(
        self,
        orders,
        store: SessionStore,
        *,
        interval: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._orders = orders
        self._store = store
        self.interval = interval
        self._sleep = sleep
        self.order_id: Optional[str] = None
        self.order: Optional[Dict[str, Any]] = None
        self.is_open = False
        self.loading = False
        self.fetch_count = 0
        self.last_error: Optional[str] = None
        self._fetch_lock = threading.Lock()

    @property
    def status(self) -> Optional[str]:
        return self.order["status"] if self.order else None

    def _fetch(self) -> Optional[Dict[str, Any]]:
        self.fetch_count += 1
        try:
            found = self._orders.fetch_order_by_id(self.order_id)
        except OrderStoreError as exc:
            self.last_error = str(exc)
            raise
        self.last_error = None
        return found

    def open(self, order_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Open the status view and load the order once.

        Without an explicit id the persisted current order is used. An order
        that cannot be found on this first load is a stale reference and is
        forgotten. When the store cannot be reached the reference is kept.
        """
        order_id = order_id or self._store.get_str(CURRENT_ORDER_ID_KEY)
        with self._fetch_lock:
            if order_id != self.order_id:
                self.order = None
            self.order_id = order_id
            self.is_open = True
            if not order_id:
                return None

            self.loading = self.order is None
            try:
                found = self._fetch()
            except OrderStoreError as exc:
                log_event("warning", "order.fetch_failed", order_id=order_id, error=str(exc))
                return self.order
            finally:
                self.loading = False
            if found is None:
                if self._store.get_str(CURRENT_ORDER_ID_KEY) == order_id:
                    self._store.remove(CURRENT_ORDER_ID_KEY)
                log_event("warning", "order.stale_reference", order_id=order_id)
                self.order = None
                return None
            self.order = found
            return found

    def should_poll(self) -> bool:
        return (
            self.is_open
            and bool(self.order_id)
            and self.order is not None
            and self.order["status"] not in TERMINAL_STATUSES
        )

    def tick(self) -> bool:
        """One poll. Returns whether a fetch was issued."""
        if not self._fetch_lock.acquire(blocking=False):
            return False
        try:
            return self._tick()
        finally:
            self._fetch_lock.release()

    def _tick(self) -> bool:
        if not self.should_poll():
            return False
        try:
            found = self._fetch()
        except OrderStoreError as exc:
            logger.warning("order %s poll failed, keeping last state: %s", self.order_id, exc)
            return True
        if found is None:
            logger.debug("order %s not found on poll, keeping last state", self.order_id)
            return True
        if found["status"] != self.status:
            log_event("info", "order.status_observed", order_id=self.order_id, status=found["status"])
        # a response arriving after close must not change the view
        if self.is_open:
            self.order = found
        return True

    def run(self, max_ticks: Optional[int] = None) -> Optional[Dict[str, Any]]:
        ticks = 0
        while self.should_poll():
            if max_ticks is not None and ticks >= max_ticks:
                break
            self._sleep(self.interval)
            self.tick()
            ticks += 1
        return self.order

    def close(self) -> bool:
        """Stop polling. True when the order was approved and the customer is done with it."""
        self.is_open = False
        if self.status == "approved":
            self._store.remove(CURRENT_ORDER_ID_KEY)
            return True
        return False

    def status_text(self) -> str:
        return STATUS_TEXT.get(self.status or "", "Processing")

    def customer_info_view(self) -> Dict[str, Any]:
        """Customer details for display: one block per account when the order holds several."""
        info = (self.order or {}).get("customer_info") or {}
        accounts = info.get(MULTIPLE_ACCOUNTS_KEY)
        if isinstance(accounts, list):
            return {
                "accounts": [
                    {
                        "game": a.get("game", ""),
                        "package": a.get("package", ""),
                        "fields": [{"label": k, "value": str(v)} for k, v in (a.get("fields") or {}).items()],
                    }
                    for a in accounts
                    if isinstance(a, dict)
                ],
                "fields": [],
            }
        return {"accounts": [], "fields": [{"label": k, "value": str(v)} for k, v in info.items()]}

    def snapshot(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "is_open": self.is_open,
            "loading": self.loading,
            "status": self.status,
            "status_text": self.status_text() if self.order else None,
            "polling": self.should_poll(),
            "error": self.last_error,
            "order": self.order,
            "customer_info": self.customer_info_view(),
        }
