from decimal import Decimal

import pytest

from shop.models.cart_item import AddOn, CartItemId, Variation
from shop.services.cart_service import CartService
from shop.services.session_store import CART_KEY, MemorySessionStore


def test_totals_follow_quantities(seeded, cart):
    mlbb = seeded.get_product("mlbb")
    promo = seeded.get_product("promo-pack")

    cart.add_to_cart(mlbb, 2, Variation.from_dict(mlbb["variations"][1]))
    cart.add_to_cart(promo, 1)

    assert cart.get_total_items() == 3
    assert cart.get_total_price() == Decimal("490.00")


def test_discount_applies_to_package_price_not_add_ons():
    product = {"id": "p", "base_price": "100", "is_on_discount": True, "discount_percentage": "10"}
    price = CartService.unit_price(
        product,
        Variation(id="v", name="Big", price=Decimal("200")),
        [AddOn(name="Bonus", quantity=2, price=Decimal("15"))],
    )
    assert price == Decimal("210.00")


def test_same_product_twice_gives_two_lines(seeded, cart):
    genshin = seeded.get_product("genshin")
    first = cart.add_to_cart(genshin)
    second = cart.add_to_cart(genshin)

    assert first.id != second.id
    assert first.base_product_id == second.base_product_id == "genshin"
    assert len(cart.get_items()) == 2


def test_update_quantity_to_zero_removes_line(seeded, cart):
    item = cart.add_to_cart(seeded.get_product("gift-card"), 3)
    cart.update_quantity(item.id, 5)
    assert cart.get_total_items() == 5

    cart.update_quantity(item.id, 0)
    assert cart.get_items() == []


def test_update_unknown_item_is_ignored(seeded, cart):
    cart.add_to_cart(seeded.get_product("gift-card"))
    cart.update_quantity(CartItemId("gift-card", "missing"), 4)
    assert cart.get_total_items() == 1


def test_legacy_string_id_is_accepted(seeded, cart):
    item = cart.add_to_cart(seeded.get_product("gift-card"))
    legacy = f"gift-card:::CART:::{item.id.instance_token}"

    cart.remove_from_cart(legacy)
    assert cart.get_items() == []


def test_add_rejects_non_positive_quantity(seeded, cart):
    with pytest.raises(ValueError):
        cart.add_to_cart(seeded.get_product("gift-card"), 0)


def test_empty_cart_totals(cart):
    assert cart.get_total_items() == 0
    assert cart.get_total_price() == Decimal("0")


def test_cart_survives_a_new_service_instance(seeded, store):
    CartService(store).add_to_cart(seeded.get_product("gift-card"), 2)
    assert CartService(store).get_total_price() == Decimal("400.00")


def test_clear_cart_drops_the_key(seeded, cart, store):
    cart.add_to_cart(seeded.get_product("gift-card"))
    cart.clear_cart()
    assert not store.has(CART_KEY)


def test_corrupt_cart_reads_as_empty():
    cart = CartService(MemorySessionStore({CART_KEY: "{not json"}))
    assert cart.get_items() == []
    assert cart.get_total_items() == 0
