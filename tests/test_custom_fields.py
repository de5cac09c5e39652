import pytest

from shop.models.cart_item import Variation
from shop.services.custom_fields import (
    DEFAULT_VALUE_KEY,
    CheckoutForm,
    CustomFieldResolver,
    value_key,
)


@pytest.fixture
def two_games(seeded, cart):
    mlbb = seeded.get_product("mlbb")
    cart.add_to_cart(mlbb, 1, Variation.from_dict(mlbb["variations"][0]))
    cart.add_to_cart(mlbb, 1, Variation.from_dict(mlbb["variations"][1]))
    cart.add_to_cart(seeded.get_product("genshin"))
    return cart


def test_cart_without_fields_asks_for_ign(seeded, cart):
    cart.add_to_cart(seeded.get_product("gift-card"))
    resolver = CustomFieldResolver(cart.get_items())

    assert resolver.uses_default_field
    assert not resolver.is_details_valid({})
    assert not resolver.is_details_valid({DEFAULT_VALUE_KEY: "   "})
    assert resolver.is_details_valid({DEFAULT_VALUE_KEY: "Player1"})


def test_product_in_cart_twice_is_asked_once(two_games):
    resolver = CustomFieldResolver(two_games.get_items())

    assert [p.base_product_id for p in resolver.products] == ["mlbb", "genshin"]
    assert resolver.bulk_enabled
    assert resolver.products[0].value_keys() == ["mlbb_0_user_id", "mlbb_1_zone_id"]


def test_only_required_fields_block_checkout(two_games):
    resolver = CustomFieldResolver(two_games.get_items())
    values = {
        value_key("mlbb", 0, "user_id"): "123",
        value_key("mlbb", 1, "zone_id"): "45",
    }
    assert resolver.missing_fields(values) == ["Genshin Impact: UID"]

    values[value_key("genshin", 0, "uid")] = "800"
    assert resolver.is_details_valid(values)


def test_bulk_values_reach_selected_products_only(two_games, store):
    form = CheckoutForm(store, CustomFieldResolver(two_games.get_items()))
    form.toggle_bulk_product("mlbb", True)

    form.set_bulk_value(0, "999")

    assert form.values == {"mlbb_0_user_id": "999"}


def test_selecting_a_product_copies_existing_bulk_values(two_games, store):
    form = CheckoutForm(store, CustomFieldResolver(two_games.get_items()))
    form.toggle_bulk_product("mlbb", True)
    form.set_bulk_value(0, "999")
    form.set_bulk_value(1, "12")

    form.toggle_bulk_product("genshin", True)

    assert form.values["genshin_0_uid"] == "999"
    assert form.values["genshin_1_server"] == "12"


def test_bulk_slots_use_first_selected_labels(two_games, store):
    form = CheckoutForm(store, CustomFieldResolver(two_games.get_items()))
    form.toggle_bulk_product("genshin", True)
    form.toggle_bulk_product("mlbb", True)

    assert [s.label for s in form.bulk_slots()] == ["UID", "Server"]


def test_unknown_field_key_is_rejected(two_games, store):
    form = CheckoutForm(store, CustomFieldResolver(two_games.get_items()))
    with pytest.raises(KeyError):
        form.set_value("mlbb_5_user_id", "x")
    with pytest.raises(KeyError):
        form.toggle_bulk_product("gift-card", True)


def test_values_persist_across_forms(two_games, store):
    CheckoutForm(store, CustomFieldResolver(two_games.get_items())).set_field_value("mlbb", 1, "77")
    form = CheckoutForm(store, CustomFieldResolver(two_games.get_items()))
    assert form.values == {"mlbb_1_zone_id": "77"}


def test_bulk_value_stops_at_deselected_product(two_games, store):
    form = CheckoutForm(store, CustomFieldResolver(two_games.get_items()))
    form.toggle_bulk_product("mlbb", True)
    form.toggle_bulk_product("genshin", True)

    form.set_bulk_value(0, "111")
    assert form.values["mlbb_0_user_id"] == "111"
    assert form.values["genshin_0_uid"] == "111"

    form.toggle_bulk_product("genshin", False)
    form.set_bulk_value(0, "222")

    assert form.values["mlbb_0_user_id"] == "222"
    assert form.values["genshin_0_uid"] == "111"


def test_direct_edit_survives_change_to_another_bulk_slot(two_games, store):
    form = CheckoutForm(store, CustomFieldResolver(two_games.get_items()))
    form.toggle_bulk_product("mlbb", True)
    form.toggle_bulk_product("genshin", True)
    form.set_bulk_value(0, "111")

    form.set_field_value("genshin", 0, "800")
    form.set_bulk_value(1, "asia")

    assert form.values["genshin_0_uid"] == "800"
    assert form.values["mlbb_0_user_id"] == "111"
    assert form.values["genshin_1_server"] == "asia"
    assert form.values["mlbb_1_zone_id"] == "asia"


def test_negative_bulk_slot_is_rejected(two_games, store):
    form = CheckoutForm(store, CustomFieldResolver(two_games.get_items()))
    form.toggle_bulk_product("mlbb", True)

    with pytest.raises(KeyError):
        form.set_bulk_value(-1, "x")
    assert form.values == {}
    assert form.bulk_values == {}
