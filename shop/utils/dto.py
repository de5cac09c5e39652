from typing import Any, Dict, List

from .money import round_money


def _money_str(value: Any) -> str:
    return str(value if value is not None else 0)


def _sorted_variations(variations: List[Dict]) -> List[Dict]:
    # grouped by category sort, then by price
    def key(v: Dict):
        sort = v.get("sort")
        return (sort if sort is not None else 999, float(v.get("price") or 0))

    return sorted(variations, key=key)


def to_product_dto(row: Any) -> Dict:
    discount = getattr(row, "discount_percentage", None)
    return {
        "id": getattr(row, "id", None),
        "name": getattr(row, "name", None),
        "subtitle": getattr(row, "subtitle", None),
        "description": getattr(row, "description", None),
        "base_price": _money_str(getattr(row, "base_price", 0)),
        "image": getattr(row, "image", None),
        "category_id": getattr(row, "category_id", None),
        "popular": bool(getattr(row, "popular", False)),
        "available": bool(getattr(row, "available", True)),
        "is_on_discount": bool(getattr(row, "is_on_discount", False)),
        "discount_percentage": str(discount) if discount is not None else None,
        "variations": _sorted_variations(getattr(row, "variations", None) or []),
        "add_ons": getattr(row, "add_ons", None) or [],
        "custom_fields": getattr(row, "custom_fields", None) or [],
    }


def to_payment_method_dto(row: Any) -> Dict:
    max_amount = getattr(row, "max_order_amount", None)
    return {
        "id": getattr(row, "id", None),
        "name": getattr(row, "name", None),
        "account_number": getattr(row, "account_number", None),
        "account_name": getattr(row, "account_name", None),
        "icon_url": getattr(row, "icon_url", None),
        "qr_code_url": getattr(row, "qr_code_url", None),
        "max_order_amount": str(max_amount) if max_amount is not None else None,
    }


def to_order_dto(row: Any) -> Dict:
    created = getattr(row, "created_at", None)
    updated = getattr(row, "updated_at", None)
    return {
        "id": getattr(row, "id", None),
        "order_items": getattr(row, "order_items", None) or [],
        "customer_info": getattr(row, "customer_info", None) or {},
        "payment_method_id": getattr(row, "payment_method_id", None),
        "receipt_url": getattr(row, "receipt_url", None) or "",
        "total_price": float(round_money(getattr(row, "total_price", 0))),
        "status": getattr(row, "status", None),
        "created_at": created.isoformat() if created else None,
        "updated_at": updated.isoformat() if updated else None,
    }
