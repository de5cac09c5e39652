from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import quote
import logging

from ..config import ORDER_VIA_MESSENGER, PLACE_ORDER, validate_order_option
from ..errors import (
    CheckoutValidationError,
    OrderInProgressError,
    OrderStoreError,
    OrderSubmissionError,
    ReceiptUploadError,
)
from ..models.order import TERMINAL_STATUSES
from ..utils.money import format_amount
from .cart_service import CartService
from .custom_fields import DEFAULT_FIELD, DEFAULT_VALUE_KEY, CheckoutForm, CustomFieldResolver
from .logging import log_event
from .payment_service import PaymentMethodService, is_eligible
from .session_store import CURRENT_ORDER_ID_KEY, CheckoutKeys, SessionStore


logger = logging.getLogger(__name__)

RECEIPT_BUCKET = "payment-receipts"
CURRENCY_SYMBOLS = {"PHP": "₱", "USD": "$", "EUR": "€", "TWD": "NT$"}


class CheckoutService:
    """Checkout for the cart held in ``store``.

    Two submission modes, picked by the store settings: the messenger mode
    builds an order message for the shop's chat page and never writes an
    order; the direct mode creates the order record and remembers its id as
    the customer's current order.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        cart: CartService,
        payments: PaymentMethodService,
        orders,
        images=None,
        order_option: str = ORDER_VIA_MESSENGER,
        messenger_url: str = "https://m.me/Rnold77",
        currency: str = "PHP",
    ):
        self._store = store
        self._cart = cart
        self._payments = payments
        self._orders = orders
        self._images = images
        self.order_option = validate_order_option(order_option)
        self.messenger_url = messenger_url.rstrip("/")
        self.currency_symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")

    # --- form -----------------------------------------------------------

    def total_price(self) -> Decimal:
        return self._cart.get_total_price()

    def form(self) -> CheckoutForm:
        return CheckoutForm(self._store, CustomFieldResolver(self._cart.get_items()))

    def _money(self, value) -> str:
        return f"{self.currency_symbol}{format_amount(value)}"

    # --- payment method -------------------------------------------------

    def eligible_payment_methods(self) -> List[Dict]:
        return self._payments.eligible(self.total_price())

    def select_payment_method(self, method_id: str) -> Dict:
        method = self._payments.get(method_id)
        if method is None:
            raise CheckoutValidationError("Please select a payment method")
        if not is_eligible(method, self.total_price()):
            raise CheckoutValidationError(f"{method['name']} is not available for this order total")
        self._store.set_str(CheckoutKeys.payment_method_id, method["id"])
        return method

    def restore_payment_method(self) -> Optional[Dict]:
        """The persisted selection, dropped when it no longer exists or the total outgrew it."""
        saved_id = self._store.get_str(CheckoutKeys.payment_method_id)
        if not saved_id:
            return None
        method = self._payments.get(saved_id)
        if method is None or not is_eligible(method, self.total_price()):
            self._store.remove(CheckoutKeys.payment_method_id)
            log_event("info", "checkout.payment_method_cleared", payment_method_id=saved_id)
            return None
        return method

    @staticmethod
    def payment_details(method: Dict) -> Dict:
        return {
            "name": method["name"],
            "account_number": method["account_number"],
            "account_name": method["account_name"],
            "qr_code_url": method.get("qr_code_url"),
        }

    def _require_payment_method(self) -> Dict:
        method = self.restore_payment_method()
        if method is None:
            raise CheckoutValidationError("Please select a payment method")
        return method

    # --- order message (messenger mode) -----------------------------------

    def build_order_message(self, method: Optional[Dict] = None) -> str:
        form = self.form()
        values = form.values
        lines: List[str] = []
        if form.resolver.uses_default_field:
            lines.append(f"{DEFAULT_FIELD.label}: {values.get(DEFAULT_VALUE_KEY, '')}")
        else:
            # products typed in with the same values (bulk input) share one block
            groups: Dict[tuple, Dict[str, Any]] = {}
            for product, pairs in form.resolver.resolved_fields(values):
                if not pairs:
                    continue
                key = tuple(v for _, v in pairs)
                group = groups.setdefault(key, {"names": [], "labels": [label for label, _ in pairs]})
                group["names"].append(product.name)
            for key, group in groups.items():
                lines.extend(group["names"])
                for label, value in zip(group["labels"], key):
                    lines.append(f"{label}: {value}")

        lines.append("")
        lines.append("ORDER DETAILS:")
        for item in self._cart.get_items():
            text = f"• {item.name}"
            if item.selected_variation:
                text += f" ({item.selected_variation.name})"
            text += f" x{item.quantity} - {self._money(item.line_total)}"
            lines.append(text)
        lines.append("")
        lines.append(f"TOTAL: {self._money(self.total_price())}")
        lines.append("")
        lines.append(f"Payment: {method['name'] if method else ''}")
        return "\n".join(lines).strip()

    def copy_order_message(self) -> str:
        method = self._require_payment_method()
        message = self.build_order_message(method)
        self._store.set_json(CheckoutKeys.has_copied_message, True)
        return message

    def has_copied_message(self) -> bool:
        return bool(self._store.get_json(CheckoutKeys.has_copied_message, False))

    def submit_via_messenger(self) -> str:
        method = self._require_payment_method()
        if not self.has_copied_message():
            raise CheckoutValidationError("Copy the order message before sending it")
        message = self.build_order_message(method)
        log_event("info", "checkout.messenger_opened", payment_method_id=method["id"], total=str(self.total_price()))
        return f"{self.messenger_url}?text={quote(message, safe='')}"

    # --- direct order ---------------------------------------------------

    def customer_info(self, method: Dict) -> Dict[str, Any]:
        form = self.form()
        values = form.values
        info: Dict[str, Any] = {"Payment Method": method["name"]}
        if form.resolver.uses_default_field:
            if values.get(DEFAULT_VALUE_KEY):
                info[DEFAULT_FIELD.label] = values[DEFAULT_VALUE_KEY]
        else:
            for _, pairs in form.resolver.resolved_fields(values):
                for label, value in pairs:
                    info[label] = value
        return info

    def current_order_id(self) -> Optional[str]:
        return self._store.get_str(CURRENT_ORDER_ID_KEY)

    def attach_existing_order(self) -> Optional[Dict]:
        """Re-attach the order remembered in the session, healing stale or finished ones.

        Only an order the store reports as missing or approved is forgotten.
        ``OrderStoreError`` propagates with the reference kept, so a later
        attempt can try again.
        """
        order_id = self.current_order_id()
        if not order_id:
            return None
        order = self._orders.fetch_order_by_id(order_id)
        if order is None:
            self._store.remove(CURRENT_ORDER_ID_KEY)
            logger.info("dropped stale order reference %s", order_id)
            return None
        if order["status"] == "approved":
            self._store.remove(CURRENT_ORDER_ID_KEY)
            return None
        return order

    def place_order(self) -> Dict:
        if self.order_option != PLACE_ORDER:
            raise CheckoutValidationError("Orders are sent through Messenger")
        existing = self.attach_existing_order()
        if existing and existing["status"] not in TERMINAL_STATUSES:
            raise OrderInProgressError(existing["id"], existing["status"])
        method = self._require_payment_method()
        items = self._cart.get_items()
        if not items:
            raise CheckoutValidationError("Your cart is empty")
        form = self.form()
        missing = form.resolver.missing_fields(form.values)
        if missing:
            raise CheckoutValidationError("Please fill in: " + ", ".join(missing))

        total = self.total_price()
        try:
            order = self._orders.create_order(
                items=[it.to_dict() for it in items],
                customer_info=self.customer_info(method),
                payment_method_id=method["id"],
                total_price=total,
                receipt_url=self._store.get_str(CheckoutKeys.receipt_image_url, "") or "",
            )
        except Exception as exc:
            logger.exception("order creation failed")
            log_event("error", "order.create_failed", error=str(exc))
            raise OrderSubmissionError("Failed to place order. Please try again.") from exc

        self._store.set_str(CURRENT_ORDER_ID_KEY, order["id"])
        return order

    # --- receipt ----------------------------------------------------------

    def upload_receipt(self, file) -> str:
        if self._images is None:
            raise ReceiptUploadError("Receipt uploads are not available")
        try:
            preview = self._images.preview_data_url(file)
            url = self._images.upload_image(file, RECEIPT_BUCKET)
        except (ValueError, OSError) as exc:
            self._store.remove_many([CheckoutKeys.receipt_image_url, CheckoutKeys.receipt_preview])
            log_event("warning", "checkout.receipt_failed", error=str(exc))
            raise ReceiptUploadError(str(exc) or "Failed to upload receipt") from exc
        self._store.set_str(CheckoutKeys.receipt_image_url, url)
        self._store.set_str(CheckoutKeys.receipt_preview, preview)
        return url

    def remove_receipt(self) -> None:
        self._store.remove_many(
            [CheckoutKeys.receipt_image_url, CheckoutKeys.receipt_preview, CheckoutKeys.has_copied_message]
        )

    # --- lifecycle --------------------------------------------------------

    def clear_session(self) -> None:
        self._store.remove_many(CheckoutKeys.all())

    def complete_order(self) -> None:
        """Approved order dismissed: forget the checkout, the order and the cart."""
        self.clear_session()
        self._store.remove(CURRENT_ORDER_ID_KEY)
        self._cart.clear_cart()

    def state(self) -> Dict:
        method = self.restore_payment_method()
        existing = None
        store_unavailable = False
        if self.order_option == PLACE_ORDER:
            try:
                existing = self.attach_existing_order()
            except OrderStoreError:
                store_unavailable = True
        total = self.total_price()
        form = self.form().to_dict()
        blocked = store_unavailable or bool(existing and existing["status"] not in TERMINAL_STATUSES)
        return {
            "order_option": self.order_option,
            "total_price": str(total),
            "form": form,
            "payment_methods": self.eligible_payment_methods(),
            "payment_method": self.payment_details(method) | {"id": method["id"]} if method else None,
            "receipt_url": self._store.get_str(CheckoutKeys.receipt_image_url),
            "receipt_preview": self._store.get_str(CheckoutKeys.receipt_preview),
            "has_copied_message": self.has_copied_message(),
            "existing_order": existing,
            "order_store_unavailable": store_unavailable,
            "can_copy_message": method is not None,
            "can_send_message": method is not None and self.has_copied_message(),
            "can_place_order": method is not None and not blocked,
            "order_again": bool(existing and existing["status"] == "rejected"),
        }
