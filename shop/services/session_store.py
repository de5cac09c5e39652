"""Reload-durable key-value storage for the customer's browsing session.

Every value is a plain string or a JSON document. Reads never raise: a missing
key or a value that cannot be decoded falls back to the caller's default.
Writes to an unreadable session file raise ``SessionFileCorrupt``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, Optional


logger = logging.getLogger(__name__)


CART_KEY = "topup_cart"
VIEW_KEY = "topup_customer_view"
MENU_CATEGORY_KEY = "topup_menu_category"
MENU_SEARCH_KEY = "topup_menu_search"
CURRENT_ORDER_ID_KEY = "current_order_id"


class CheckoutKeys:
    payment_method_id = "topup_checkout_paymentMethodId"
    custom_field_values = "topup_checkout_customFieldValues"
    receipt_image_url = "topup_checkout_receiptImageUrl"
    receipt_preview = "topup_checkout_receiptPreview"
    bulk_input_values = "topup_checkout_bulkInputValues"
    bulk_selected_games = "topup_checkout_bulkSelectedGames"
    has_copied_message = "topup_checkout_hasCopiedMessage"

    @classmethod
    def all(cls):
        return (
            cls.payment_method_id,
            cls.custom_field_values,
            cls.receipt_image_url,
            cls.receipt_preview,
            cls.bulk_input_values,
            cls.bulk_selected_games,
            cls.has_copied_message,
        )


class SessionStore:
    """Typed access over a raw string mapping. Subclasses supply the mapping."""

    def _raw_get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _raw_set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def _raw_remove(self, key: str) -> None:
        raise NotImplementedError

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._raw_get(key)
        return default if value is None else str(value)

    def set_str(self, key: str, value: str) -> None:
        self._raw_set(key, str(value))

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self._raw_get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("discarding unreadable session value for %s", key)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self._raw_set(key, json.dumps(value, ensure_ascii=False, default=str))

    def remove(self, key: str) -> None:
        self._raw_remove(key)

    def remove_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._raw_remove(key)

    def has(self, key: str) -> bool:
        return self._raw_get(key) is not None


class MemorySessionStore(SessionStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def _raw_get(self, key):
        return self._data.get(key)

    def _raw_set(self, key, value):
        self._data[key] = value

    def _raw_remove(self, key):
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class SessionFileCorrupt(ValueError):
    """The session file exists but does not hold a JSON object."""


_path_locks: Dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.Lock()
        return lock


class JsonFileSessionStore(SessionStore):
    """All keys in a single JSON object on disk.

    Stores opened on the same path share one lock, and the file is replaced
    atomically, so readers never see a half-written document. A file that
    cannot be decoded reads as empty but is never written over.
    """

    def __init__(self, data_file: Path) -> None:
        self._data_file = data_file
        self._lock = _lock_for(data_file)
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        with self._lock:
            if not self._data_file.exists():
                self._data_file.parent.mkdir(parents=True, exist_ok=True)
                self._write({})

    def _raw_get(self, key):
        with self._lock:
            try:
                return self._load().get(key)
            except SessionFileCorrupt as exc:
                logger.warning("session file %s unreadable: %s", self._data_file, exc)
                return None

    def _raw_set(self, key, value):
        with self._lock:
            data = self._load()
            data[key] = value
            self._write(data)

    def _raw_remove(self, key):
        with self._lock:
            data = self._load()
            if key in data:
                data.pop(key)
                self._write(data)

    def _load(self) -> Dict[str, str]:
        try:
            text = self._data_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(text or "{}")
        except ValueError as exc:
            raise SessionFileCorrupt(str(exc)) from exc
        if not isinstance(data, dict):
            raise SessionFileCorrupt(f"expected an object, got {type(data).__name__}")
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write(self, data: Dict[str, str]) -> None:
        content = json.dumps(data, ensure_ascii=False, indent=2) + "\n"
        fd, tmp_name = tempfile.mkstemp(dir=self._data_file.parent, prefix=self._data_file.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.replace(tmp_name, self._data_file)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
