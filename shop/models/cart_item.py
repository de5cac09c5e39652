"""Cart line items kept in the customer's session (not in the database)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..utils.money import D, Money, round_money


# Composite ids written by earlier clients: "<productId>:::CART:::<token>"
LEGACY_ID_SEPARATOR = ":::CART:::"


@dataclass(frozen=True)
class CartItemId:
    """Identity of one independent selection of a product."""

    base_product_id: str
    instance_token: str

    def __str__(self) -> str:
        return f"{self.base_product_id}{LEGACY_ID_SEPARATOR}{self.instance_token}"

    @classmethod
    def parse(cls, raw: Any) -> "CartItemId":
        if isinstance(raw, CartItemId):
            return raw
        if isinstance(raw, dict):
            return cls(str(raw["base_product_id"]), str(raw["instance_token"]))
        text = str(raw)
        if LEGACY_ID_SEPARATOR in text:
            base, token = text.split(LEGACY_ID_SEPARATOR, 1)
            return cls(base, token)
        return cls(text, "")


@dataclass(frozen=True)
class CustomField:
    key: str
    label: str
    placeholder: str = ""
    required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "placeholder": self.placeholder,
            "required": self.required,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomField":
        return cls(
            key=str(data.get("key", "")),
            label=str(data.get("label") or data.get("key", "")),
            placeholder=str(data.get("placeholder") or ""),
            required=bool(data.get("required", False)),
        )


@dataclass(frozen=True)
class Variation:
    id: str
    name: str
    price: Money

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": str(self.price)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Variation":
        return cls(id=str(data["id"]), name=str(data.get("name", "")), price=D(data.get("price")))


@dataclass(frozen=True)
class AddOn:
    name: str
    quantity: int = 1
    price: Money = D(0)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity, "price": str(self.price)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AddOn":
        return cls(
            name=str(data.get("name", "")),
            quantity=int(data.get("quantity", 1) or 0),
            price=D(data.get("price")),
        )


@dataclass
class CartItem:
    """One cart line; ``total_price`` is the unit price after discount and add-ons."""

    id: CartItemId
    name: str
    quantity: int
    total_price: Money
    image: Optional[str] = None
    selected_variation: Optional[Variation] = None
    selected_add_ons: List[AddOn] = field(default_factory=list)
    custom_fields: List[CustomField] = field(default_factory=list)

    @property
    def base_product_id(self) -> str:
        return self.id.base_product_id

    @property
    def line_total(self) -> Money:
        return round_money(D(self.total_price) * self.quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "base_product_id": self.id.base_product_id,
            "instance_token": self.id.instance_token,
            "name": self.name,
            "image": self.image,
            "quantity": self.quantity,
            "total_price": str(self.total_price),
            "selected_variation": self.selected_variation.to_dict() if self.selected_variation else None,
            "selected_add_ons": [a.to_dict() for a in self.selected_add_ons],
            "custom_fields": [f.to_dict() for f in self.custom_fields],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartItem":
        if data.get("base_product_id") is not None:
            item_id = CartItemId(str(data["base_product_id"]), str(data.get("instance_token") or ""))
        else:
            item_id = CartItemId.parse(data.get("id", ""))
        variation = data.get("selected_variation")
        return cls(
            id=item_id,
            name=str(data.get("name", "")),
            image=data.get("image"),
            quantity=int(data.get("quantity", 1) or 0),
            total_price=D(data.get("total_price")),
            selected_variation=Variation.from_dict(variation) if variation else None,
            selected_add_ons=[AddOn.from_dict(a) for a in data.get("selected_add_ons") or []],
            custom_fields=[CustomField.from_dict(f) for f in data.get("custom_fields") or []],
        )
