class StorefrontError(Exception):
    """Base class for recoverable storefront errors."""


class CheckoutValidationError(StorefrontError):
    """A required checkout input is missing or not allowed."""


class ReceiptUploadError(StorefrontError):
    """The payment receipt could not be stored; the attachment was discarded."""


class OrderSubmissionError(StorefrontError):
    """The order store rejected or failed to create the order."""


class OrderInProgressError(StorefrontError):
    """A previously placed order is still pending or processing."""

    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(f"order {order_id} is still {status}")
        self.order_id = order_id
        self.status = status


class OrderStoreError(StorefrontError):
    """The order store could not be reached or answered with an error."""
