import json

import pytest

from config import StorefrontConfig
from shop.config import PLACE_ORDER, load_env, refresh_non_sensitive, requires_restart


def test_settings_file_wins_over_environment(tmp_path, monkeypatch):
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"ORDER_OPTION": "place_order", "CURRENCY": "php"}), encoding="utf-8")
    monkeypatch.setenv("ORDER_OPTION", "order_via_messenger")
    monkeypatch.setenv("MESSENGER_URL", "https://m.me/someshop/")

    cfg = load_env(settings)

    assert cfg.order_option == PLACE_ORDER
    assert cfg.currency == "PHP"
    assert cfg.messenger_url == "https://m.me/someshop"
    assert not cfg.is_messenger_mode


def test_bad_order_option_is_rejected(tmp_path, monkeypatch):
    monkeypatch.setenv("ORDER_OPTION", "carrier-pigeon")
    with pytest.raises(ValueError):
        load_env(tmp_path / "missing.json")


def test_hot_reload_ignores_sensitive_keys(tmp_path):
    current = load_env(tmp_path / "missing.json")
    refreshed = refresh_non_sensitive({"SITE_NAME": "Diamond Hub", "SECRET_KEY": "leak"}, current)

    assert refreshed.site_name == "Diamond Hub"
    assert refreshed.secret_key == current.secret_key
    assert requires_restart(["SECRET_KEY"])
    assert not requires_restart(["SITE_NAME"])


def test_storefront_config_creates_data_layout(tmp_path, monkeypatch):
    monkeypatch.delenv("STOREFRONT_ADMIN_USER", raising=False)
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "admin.json").write_text(json.dumps({"password": "from-file"}), encoding="utf-8")

    cfg = StorefrontConfig.load(root=tmp_path)

    assert cfg.sessions_dir.is_dir()
    assert cfg.receipts_dir.is_dir()
    assert json.loads(cfg.settings_file.read_text(encoding="utf-8"))["ORDER_OPTION"] == "order_via_messenger"
    assert cfg.admin_username == "admin"
    assert cfg.admin_password == "from-file"
