from typing import Tuple

from ..models.order import ORDER_STATUSES


def normalize_paging(page: int, page_size: int, max_page_size: int = 100) -> Tuple[int, int]:
    p = page if page and page > 0 else 1
    ps = page_size if page_size and page_size > 0 else 20
    ps = min(ps, max_page_size)
    return p, ps


def ensure_order_status(value: str) -> str:
    status = (value or "").strip().lower()
    if status not in ORDER_STATUSES:
        raise ValueError(f"status must be one of {', '.join(ORDER_STATUSES)}")
    return status
