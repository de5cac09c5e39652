"""Storefront deployment settings."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "CURRENCY": "PHP",
    "ORDER_OPTION": "order_via_messenger",
    "MESSENGER_URL": "https://m.me/Rnold77",
    "ORDER_POLL_INTERVAL": 3,
    "SITE_NAME": "Top-up Shop",
    "SUPPORT_URL": "",
}


@dataclass
class StorefrontConfig:
    """Secrets, admin credentials and on-disk locations of one storefront."""

    secret_key: str
    admin_username: str
    admin_password: str
    root: Path

    @property
    def data_dir(self) -> Path:
        return self.root / "data"

    @property
    def settings_file(self) -> Path:
        return self.data_dir / "settings.json"

    @property
    def admin_credentials_file(self) -> Path:
        return self.data_dir / "admin.json"

    @property
    def sessions_dir(self) -> Path:
        return self.data_dir / "sessions"

    @property
    def receipts_dir(self) -> Path:
        return self.data_dir / "receipts"

    @classmethod
    def load(cls, root: Optional[Path] = None) -> "StorefrontConfig":
        """Build from environment variables and make sure the data directories exist."""

        root = root or Path(os.environ.get("STOREFRONT_ROOT") or Path(__file__).resolve().parent)
        admin_username = os.environ.get("STOREFRONT_ADMIN_USER", "admin")
        admin_password = os.environ.get("STOREFRONT_ADMIN_PASS", "topup-admin")

        config = cls(
            secret_key=os.environ.get("STOREFRONT_SECRET_KEY", "topup-storefront-dev"),
            admin_username=admin_username,
            admin_password=admin_password,
            root=root,
        )

        config.data_dir.mkdir(parents=True, exist_ok=True)
        config.sessions_dir.mkdir(parents=True, exist_ok=True)
        config.receipts_dir.mkdir(parents=True, exist_ok=True)

        # admin.json wins over the environment
        if config.admin_credentials_file.exists():
            try:
                admin_data = json.loads(config.admin_credentials_file.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("could not read %s: %s", config.admin_credentials_file, exc)
            else:
                if isinstance(admin_data, dict):
                    config.admin_username = admin_data.get("username", admin_username)
                    config.admin_password = admin_data.get("password", admin_password)
                    logger.info("admin credentials loaded from %s", config.admin_credentials_file)

        if not config.settings_file.exists():
            config.settings_file.write_text(
                json.dumps(DEFAULT_SETTINGS, indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            logger.info("created default settings at %s", config.settings_file)

        return config
