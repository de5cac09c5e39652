from typing import Any, Dict, Iterable, List, Optional, Union
from uuid import uuid4
from decimal import Decimal
from ..models.cart_item import AddOn, CartItem, CartItemId, CustomField, Variation
from ..utils.money import D, apply_discount, round_money
from .logging import log_event
from .session_store import CART_KEY, SessionStore


class CartService:
    """Cart operations backed by the customer's session store.

    The store is re-read on every call and written after every mutation, so
    operations apply in the order they were issued.
    """

    def __init__(self, store: SessionStore):
        self._store = store

    def get_items(self) -> List[CartItem]:
        raw = self._store.get_json(CART_KEY, [])
        if not isinstance(raw, list):
            return []
        items = []
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            item = CartItem.from_dict(entry)
            if item.quantity >= 1:
                items.append(item)
        return items

    def _save(self, items: Iterable[CartItem]) -> None:
        self._store.set_json(CART_KEY, [it.to_dict() for it in items])

    @staticmethod
    def unit_price(product: Dict, variation: Optional[Variation], add_ons: List[AddOn]) -> Decimal:
        base = variation.price if variation else D(product.get("base_price"))
        if product.get("is_on_discount") and product.get("discount_percentage") is not None:
            base = apply_discount(base, product.get("discount_percentage"))
        extras = sum((D(a.price) * a.quantity for a in add_ons), Decimal("0"))
        return round_money(base + extras)

    def add_to_cart(
        self,
        product: Dict,
        quantity: int = 1,
        variation: Union[Variation, Dict, None] = None,
        add_ons: Optional[List[Union[AddOn, Dict]]] = None,
    ) -> CartItem:
        if not product or not product.get("id"):
            raise ValueError("product required")
        qnty = int(quantity)
        if qnty <= 0:
            raise ValueError("quantity must be > 0")
        if isinstance(variation, dict):
            variation = Variation.from_dict(variation)
        selected = [a if isinstance(a, AddOn) else AddOn.from_dict(a) for a in (add_ons or [])]

        item = CartItem(
            id=CartItemId(str(product["id"]), uuid4().hex),
            name=product.get("name") or "",
            image=product.get("image"),
            quantity=qnty,
            total_price=self.unit_price(product, variation, selected),
            selected_variation=variation,
            selected_add_ons=selected,
            custom_fields=[
                f if isinstance(f, CustomField) else CustomField.from_dict(f)
                for f in product.get("custom_fields") or []
            ],
        )
        items = self.get_items()
        items.append(item)
        self._save(items)
        log_event(
            "info",
            "cart.item_added",
            product_id=item.base_product_id,
            variation=variation.name if variation else None,
            unit_price=str(item.total_price),
        )
        return item

    def update_quantity(self, item_id: Any, quantity: int) -> None:
        target = CartItemId.parse(item_id)
        items = self.get_items()
        if not any(it.id == target for it in items):
            return None
        qnty = int(quantity)
        if qnty <= 0:
            items = [it for it in items if it.id != target]
        else:
            for it in items:
                if it.id == target:
                    it.quantity = qnty
        self._save(items)
        return None

    def remove_from_cart(self, item_id: Any) -> None:
        target = CartItemId.parse(item_id)
        items = self.get_items()
        remaining = [it for it in items if it.id != target]
        if len(remaining) != len(items):
            self._save(remaining)
        return None

    def clear_cart(self) -> None:
        self._store.remove(CART_KEY)

    def get_total_items(self) -> int:
        return sum(it.quantity for it in self.get_items())

    def get_total_price(self) -> Decimal:
        return round_money(sum((it.line_total for it in self.get_items()), Decimal("0")))

    def as_dict(self) -> Dict:
        items = self.get_items()
        return {
            "items": [it.to_dict() for it in items],
            "total_items": sum(it.quantity for it in items),
            "total_price": str(round_money(sum((it.line_total for it in items), Decimal("0")))),
        }
