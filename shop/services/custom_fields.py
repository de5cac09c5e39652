"""Derives the customer-information form from the cart.

Each product in the cart may declare an ordered list of custom fields (for
example a player id and a server). A product added twice with different
packages is asked for its fields once. When nothing in the cart declares
fields the whole order needs a single in-game name.

Values are stored flat, keyed by ``<baseProductId>_<fieldIndex>_<fieldKey>``.
The field index is part of the key so that equal keys on different products,
or a key repeated inside one product, never share a value.

Bulk input aligns fields by position, not by key: slot ``i`` writes into field
``i`` of every selected product that has one, using the first selected
product's labels for the slot.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.cart_item import CartItem, CustomField
from .session_store import CheckoutKeys, SessionStore


DEFAULT_FIELD = CustomField(key="ign", label="IGN", placeholder="In game name", required=True)
DEFAULT_VALUE_KEY = "default_ign"


def value_key(base_product_id: str, field_index: int, field_key: str) -> str:
    return f"{base_product_id}_{field_index}_{field_key}"


@dataclass(frozen=True)
class ProductFields:
    base_product_id: str
    name: str
    image: Optional[str]
    fields: Tuple[CustomField, ...]

    def value_keys(self) -> List[str]:
        return [value_key(self.base_product_id, i, f.key) for i, f in enumerate(self.fields)]

    def to_dict(self) -> Dict:
        return {
            "base_product_id": self.base_product_id,
            "name": self.name,
            "image": self.image,
            "fields": [
                dict(f.to_dict(), value_key=value_key(self.base_product_id, i, f.key))
                for i, f in enumerate(self.fields)
            ],
        }


@dataclass(frozen=True)
class BulkSlot:
    index: int
    field: Optional[CustomField]

    @property
    def label(self) -> str:
        return self.field.label if self.field else f"Field {self.index + 1}"

    @property
    def placeholder(self) -> str:
        if self.field:
            return self.field.placeholder or self.field.label
        return self.label

    def to_dict(self) -> Dict:
        return {"index": self.index, "label": self.label, "placeholder": self.placeholder}


class CustomFieldResolver:
    def __init__(self, items: Iterable[CartItem]) -> None:
        self._items = list(items)
        unique: Dict[str, ProductFields] = {}
        for item in self._items:
            if not item.custom_fields:
                continue
            base_id = item.base_product_id
            if base_id not in unique:
                unique[base_id] = ProductFields(
                    base_product_id=base_id,
                    name=item.name,
                    image=item.image,
                    fields=tuple(item.custom_fields),
                )
        self._products = list(unique.values())

    @property
    def products(self) -> List[ProductFields]:
        return list(self._products)

    @property
    def uses_default_field(self) -> bool:
        return not self._products

    @property
    def bulk_enabled(self) -> bool:
        return len(self._products) >= 2

    def product(self, base_product_id: str) -> Optional[ProductFields]:
        for p in self._products:
            if p.base_product_id == base_product_id:
                return p
        return None

    def selected_products(self, selected_ids: Sequence[str]) -> List[ProductFields]:
        wanted = list(selected_ids)
        by_id = {p.base_product_id: p for p in self._products}
        # selection order decides which product's labels the slots use
        return [by_id[pid] for pid in dict.fromkeys(wanted) if pid in by_id]

    def bulk_slots(self, selected_ids: Sequence[str]) -> List[BulkSlot]:
        selected = self.selected_products(selected_ids)
        if not selected:
            return []
        max_fields = max(len(p.fields) for p in selected)
        reference = selected[0].fields
        return [
            BulkSlot(index=i, field=reference[i] if i < len(reference) else None)
            for i in range(max_fields)
        ]

    def broadcast(self, slot_index: int, value: str, selected_ids: Sequence[str]) -> Dict[str, str]:
        updates: Dict[str, str] = {}
        for p in self.selected_products(selected_ids):
            if slot_index < len(p.fields):
                updates[value_key(p.base_product_id, slot_index, p.fields[slot_index].key)] = value
        return updates

    def is_details_valid(self, values: Dict[str, str]) -> bool:
        if self.uses_default_field:
            return bool((values.get(DEFAULT_VALUE_KEY) or "").strip())
        for p in self._products:
            for i, f in enumerate(p.fields):
                if not f.required:
                    continue
                if not (values.get(value_key(p.base_product_id, i, f.key)) or "").strip():
                    return False
        return True

    def missing_fields(self, values: Dict[str, str]) -> List[str]:
        """Labels of required fields that are still blank, prefixed by product name."""
        if self.uses_default_field:
            return [] if (values.get(DEFAULT_VALUE_KEY) or "").strip() else [DEFAULT_FIELD.label]
        missing = []
        for p in self._products:
            for i, f in enumerate(p.fields):
                if f.required and not (values.get(value_key(p.base_product_id, i, f.key)) or "").strip():
                    missing.append(f"{p.name}: {f.label}")
        return missing

    def resolved_fields(self, values: Dict[str, str]) -> List[Tuple[ProductFields, List[Tuple[str, str]]]]:
        resolved = []
        for p in self._products:
            pairs = []
            for i, f in enumerate(p.fields):
                v = values.get(value_key(p.base_product_id, i, f.key)) or ""
                if v:
                    pairs.append((f.label, v))
            resolved.append((p, pairs))
        return resolved


class CheckoutForm:
    """Persisted custom-field values and bulk-input state of one checkout."""

    def __init__(self, store: SessionStore, resolver: CustomFieldResolver) -> None:
        self._store = store
        self.resolver = resolver

    @property
    def values(self) -> Dict[str, str]:
        raw = self._store.get_json(CheckoutKeys.custom_field_values, {})
        if not isinstance(raw, dict):
            return {}
        return {str(k): "" if v is None else str(v) for k, v in raw.items()}

    def _merge_values(self, updates: Dict[str, str]) -> None:
        if not updates:
            return
        values = self.values
        values.update(updates)
        self._store.set_json(CheckoutKeys.custom_field_values, values)

    @property
    def bulk_selected(self) -> List[str]:
        raw = self._store.get_json(CheckoutKeys.bulk_selected_games, [])
        return [str(x) for x in raw] if isinstance(raw, list) else []

    @property
    def bulk_values(self) -> Dict[str, str]:
        raw = self._store.get_json(CheckoutKeys.bulk_input_values, {})
        if not isinstance(raw, dict):
            return {}
        return {str(k): "" if v is None else str(v) for k, v in raw.items()}

    def set_field_value(self, base_product_id: str, field_index: int, value: str) -> str:
        product = self.resolver.product(base_product_id)
        if product is None or not 0 <= field_index < len(product.fields):
            raise KeyError(f"{base_product_id} has no field at position {field_index}")
        key = value_key(base_product_id, field_index, product.fields[field_index].key)
        self._merge_values({key: value})
        return key

    def set_value(self, key: str, value: str) -> None:
        """Direct write by value key, as submitted by the form."""
        allowed = {DEFAULT_VALUE_KEY}
        for p in self.resolver.products:
            allowed.update(p.value_keys())
        if key not in allowed:
            raise KeyError(f"unknown field {key}")
        self._merge_values({key: value})

    def set_default_value(self, value: str) -> None:
        self._merge_values({DEFAULT_VALUE_KEY: value})

    def toggle_bulk_product(self, base_product_id: str, selected: bool) -> List[str]:
        if selected and self.resolver.product(base_product_id) is None:
            raise KeyError(f"{base_product_id} has no custom fields")
        current = self.bulk_selected
        if selected and base_product_id not in current:
            current.append(base_product_id)
            self._store.set_json(CheckoutKeys.bulk_selected_games, current)
            # a newly selected product receives what is already typed in the bulk slots
            updates: Dict[str, str] = {}
            for index, value in self.bulk_values.items():
                if index.isdigit():
                    updates.update(self.resolver.broadcast(int(index), value, [base_product_id]))
            self._merge_values(updates)
        elif not selected and base_product_id in current:
            current = [pid for pid in current if pid != base_product_id]
            self._store.set_json(CheckoutKeys.bulk_selected_games, current)
        return current

    def set_bulk_value(self, slot_index: int, value: str) -> Dict[str, str]:
        if slot_index < 0:
            raise KeyError(f"no bulk slot at position {slot_index}")
        bulk = self.bulk_values
        bulk[str(slot_index)] = value
        self._store.set_json(CheckoutKeys.bulk_input_values, bulk)
        updates = self.resolver.broadcast(slot_index, value, self.bulk_selected)
        self._merge_values(updates)
        return updates

    def bulk_slots(self) -> List[BulkSlot]:
        return self.resolver.bulk_slots(self.bulk_selected)

    def is_details_valid(self) -> bool:
        return self.resolver.is_details_valid(self.values)

    def to_dict(self) -> Dict:
        values = self.values
        return {
            "uses_default_field": self.resolver.uses_default_field,
            "default_field": dict(DEFAULT_FIELD.to_dict(), value_key=DEFAULT_VALUE_KEY),
            "products": [p.to_dict() for p in self.resolver.products],
            "values": values,
            "bulk_enabled": self.resolver.bulk_enabled,
            "bulk_selected": self.bulk_selected,
            "bulk_values": self.bulk_values,
            "bulk_slots": [s.to_dict() for s in self.bulk_slots()],
            "is_details_valid": self.resolver.is_details_valid(values),
        }
