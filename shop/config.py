import os
from dataclasses import dataclass, replace
from pathlib import Path
import json
from typing import Dict, List, Optional


ORDER_VIA_MESSENGER = "order_via_messenger"
PLACE_ORDER = "place_order"
ORDER_OPTIONS = {ORDER_VIA_MESSENGER, PLACE_ORDER}


@dataclass
class AppConfig:
    database_url: str
    secret_key: str
    log_level: str
    currency: str
    order_option: str
    messenger_url: str
    order_poll_interval: float
    site_name: str
    support_url: str
    order_store_url: str = ""
    order_store_key: str = ""

    @property
    def is_messenger_mode(self) -> bool:
        return self.order_option == ORDER_VIA_MESSENGER


ALLOWED_HOT_KEYS = {"CURRENCY", "ORDER_OPTION", "MESSENGER_URL", "SITE_NAME", "SUPPORT_URL"}
SENSITIVE_KEYS = {"SECRET_KEY", "DATABASE_URL", "ORDER_STORE_KEY"}


def validate_currency(value: Optional[str]) -> str:
    v = (value or "PHP").strip().upper()
    if len(v) != 3:
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def validate_order_option(value: Optional[str]) -> str:
    v = (value or ORDER_VIA_MESSENGER).strip().lower()
    if v not in ORDER_OPTIONS:
        raise ValueError(f"Invalid order option: {value!r}")
    return v


def _load_settings_file(path: Optional[Path] = None) -> dict:
    try:
        path = path or Path(__file__).resolve().parents[1] / "data" / "settings.json"
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        pass
    return {}


def load_env(settings_path: Optional[Path] = None) -> AppConfig:
    # data/settings.json first, environment as fallback
    s = _load_settings_file(settings_path)
    database_url = os.getenv("DATABASE_URL", "sqlite:///data/app.db")
    secret_key = os.getenv("SECRET_KEY", "dev_secret")
    log_level = os.getenv("LOG_LEVEL", "INFO")
    currency = validate_currency(s.get("CURRENCY") or os.getenv("CURRENCY"))
    order_option = validate_order_option(s.get("ORDER_OPTION") or os.getenv("ORDER_OPTION"))
    messenger_url = (s.get("MESSENGER_URL") or os.getenv("MESSENGER_URL") or "https://m.me/Rnold77").rstrip("/")
    poll_interval = float(s.get("ORDER_POLL_INTERVAL") or os.getenv("ORDER_POLL_INTERVAL") or 3)
    return AppConfig(
        database_url=database_url,
        secret_key=secret_key,
        log_level=log_level,
        currency=currency,
        order_option=order_option,
        messenger_url=messenger_url,
        order_poll_interval=poll_interval,
        site_name=s.get("SITE_NAME") or os.getenv("SITE_NAME") or "Top-up Shop",
        support_url=s.get("SUPPORT_URL") or os.getenv("SUPPORT_URL") or "",
        order_store_url=(os.getenv("ORDER_STORE_URL") or "").rstrip("/"),
        order_store_key=os.getenv("ORDER_STORE_KEY") or "",
    )


def refresh_non_sensitive(overrides: Dict[str, str], current: AppConfig) -> AppConfig:
    updates = {k: v for k, v in (overrides or {}).items() if k in ALLOWED_HOT_KEYS}
    return replace(
        current,
        currency=validate_currency(updates.get("CURRENCY", current.currency)),
        order_option=validate_order_option(updates.get("ORDER_OPTION", current.order_option)),
        messenger_url=(updates.get("MESSENGER_URL") or current.messenger_url).rstrip("/"),
        site_name=updates.get("SITE_NAME", current.site_name),
        support_url=updates.get("SUPPORT_URL", current.support_url),
    )


def requires_restart(changed_keys: List[str]) -> bool:
    if not changed_keys:
        return False
    return any(k in SENSITIVE_KEYS for k in changed_keys)
