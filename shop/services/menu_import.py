from typing import Dict


def import_menu(data: Dict, catalog, payments) -> Dict[str, int]:
    """Upsert categories, products and payment methods from one menu document.

    Categories go first so products can reference them.
    """
    counts = {"categories": 0, "products": 0, "payment_methods": 0}
    for category in data.get("categories") or []:
        catalog.upsert_category(category)
        counts["categories"] += 1
    for product in data.get("products") or []:
        catalog.upsert_product(product)
        counts["products"] += 1
    for method in data.get("payment_methods") or []:
        payments.upsert(method)
        counts["payment_methods"] += 1
    return counts
