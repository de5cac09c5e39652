"""Process-level storefront services: receipt files and order tracking."""

from .order_tracking import PollerRegistry
from .receipt_cleanup import cleanup_old_receipts
from .receipt_storage import ReceiptStorage

__all__ = [
    "PollerRegistry",
    "ReceiptStorage",
    "cleanup_old_receipts",
]
