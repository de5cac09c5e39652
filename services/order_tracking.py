"""Keeps one order status poller per browser client.

Pollers for finished orders are released when the customer closes the status
view. Pollers nobody asked for within ``idle_ttl`` seconds are dropped, and
the registry never holds more than ``max_pollers`` (least recently used go
first).
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from shop.models.order import TERMINAL_STATUSES
from shop.services.order_poller import OrderStatusPoller
from shop.services.session_store import SessionStore


class PollerRegistry:
    def __init__(
        self,
        orders,
        interval: float = 3.0,
        *,
        idle_ttl: float = 30 * 60,
        max_pollers: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._orders = orders
        self._interval = interval
        self._idle_ttl = idle_ttl
        self._max_pollers = max_pollers
        self._clock = clock
        self._pollers: "OrderedDict[str, Tuple[OrderStatusPoller, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        # entries are kept in last-used order
        while self._pollers:
            client_id, (_, last_used) = next(iter(self._pollers.items()))
            if now - last_used <= self._idle_ttl and len(self._pollers) <= self._max_pollers:
                break
            self._pollers.pop(client_id)

    def get(self, client_id: str, store: SessionStore) -> OrderStatusPoller:
        with self._lock:
            now = self._clock()
            entry = self._pollers.pop(client_id, None)
            poller = entry[0] if entry else OrderStatusPoller(self._orders, store, interval=self._interval)
            self._prune(now)
            self._pollers[client_id] = (poller, now)
            self._prune(now)
            return poller

    def find(self, client_id: str) -> Optional[OrderStatusPoller]:
        with self._lock:
            entry = self._pollers.get(client_id)
            return entry[0] if entry else None

    def release(self, client_id: str) -> bool:
        """Drop a closed poller whose order is finished or unknown. Returns whether it was dropped."""
        with self._lock:
            entry = self._pollers.get(client_id)
            if entry is None:
                return False
            poller = entry[0]
            if poller.is_open or (poller.order is not None and poller.status not in TERMINAL_STATUSES):
                return False
            self._pollers.pop(client_id)
            return True

    def discard(self, client_id: str) -> None:
        with self._lock:
            self._pollers.pop(client_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pollers)
