from typing import Any, Dict, List, Optional
from uuid import uuid4
from decimal import Decimal
from ..db.session import get_session
from ..models.order import Order
from ..utils.dto import to_order_dto
from ..utils.money import round_money
from ..utils.validators import ensure_order_status, normalize_paging
from .logging import log_event


class OrderService:
    """Order creation and retrieval backed by DB.

    ``status`` is changed out of band by staff through ``update_status``; the
    checkout never writes it after creation.
    """

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    def create_order(
        self,
        *,
        items: List[Dict[str, Any]],
        customer_info: Dict[str, Any],
        payment_method_id: Optional[str],
        total_price: Decimal,
        receipt_url: str = "",
    ) -> Dict:
        if not items:
            raise ValueError("order needs at least one item")
        oid = str(uuid4())
        with self._session_factory() as session:
            order = Order(
                id=oid,
                order_items=items,
                customer_info=customer_info,
                payment_method_id=payment_method_id,
                receipt_url=receipt_url or "",
                total_price=round_money(total_price),
                status="pending",
            )
            session.add(order)
            # Ensure server defaults (timestamps) are loaded before returning
            session.flush()
            session.refresh(order)
            dto = to_order_dto(order)
        log_event("info", "order.created", order_id=oid, items=len(items), total=str(round_money(total_price)))
        return dto

    def fetch_order_by_id(self, order_id: str) -> Optional[Dict]:
        if not order_id:
            return None
        with self._session_factory() as session:
            o = session.get(Order, order_id)
            return to_order_dto(o) if o else None

    def update_status(self, order_id: str, status: str) -> Optional[Dict]:
        status = ensure_order_status(status)
        with self._session_factory() as session:
            o = session.get(Order, order_id)
            if not o:
                return None
            previous = o.status
            o.status = status
            session.flush()
            session.refresh(o)
            dto = to_order_dto(o)
        log_event("info", "order.status_changed", order_id=order_id, previous=previous, status=status)
        return dto

    def list_orders(self, *, status: Optional[str] = None, page: int = 1, page_size: int = 20) -> Dict:
        p, ps = normalize_paging(page, page_size)
        with self._session_factory() as session:
            q = session.query(Order)
            if status:
                q = q.filter(Order.status == ensure_order_status(status))
            total = q.count()
            rows = (
                q.order_by(Order.created_at.desc())
                .offset((p - 1) * ps)
                .limit(ps)
                .all()
            )
            return {"items": [to_order_dto(r) for r in rows], "page": p, "page_size": ps, "total": total}
