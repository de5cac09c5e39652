from decimal import Decimal
from typing import Dict, List, Optional
from ..db.session import get_session
from ..models.payment_method import PaymentMethod
from ..utils.dto import to_payment_method_dto
from ..utils.money import D


def is_eligible(method: Dict, total: Decimal) -> bool:
    """``max_order_amount`` is an exclusive bound: offered only while total < max."""
    limit = method.get("max_order_amount")
    if limit is None:
        return True
    return D(total) < D(limit)


class PaymentMethodService:
    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    def list_active(self) -> List[Dict]:
        with self._session_factory() as session:
            rows = (
                session.query(PaymentMethod)
                .filter(PaymentMethod.active.is_(True))
                .order_by(PaymentMethod.sort_order.asc(), PaymentMethod.name.asc())
                .all()
            )
            return [to_payment_method_dto(r) for r in rows]

    def get(self, method_id: str) -> Optional[Dict]:
        if not method_id:
            return None
        with self._session_factory() as session:
            row = session.get(PaymentMethod, method_id)
            if not row or not row.active:
                return None
            return to_payment_method_dto(row)

    def eligible(self, total: Decimal) -> List[Dict]:
        return [m for m in self.list_active() if is_eligible(m, total)]

    def upsert(self, data: Dict) -> Dict:
        for required in ("id", "name", "account_number", "account_name"):
            if not data.get(required):
                raise ValueError(f"{required} required")
        with self._session_factory() as session:
            row = session.get(PaymentMethod, str(data["id"])) or PaymentMethod(id=str(data["id"]))
            row.name = data["name"]
            row.account_number = data["account_number"]
            row.account_name = data["account_name"]
            row.icon_url = data.get("icon_url")
            row.qr_code_url = data.get("qr_code_url")
            limit = data.get("max_order_amount")
            row.max_order_amount = D(limit) if limit is not None else None
            row.sort_order = int(data.get("sort_order") or 0)
            row.active = bool(data.get("active", True))
            session.add(row)
            session.flush()
            return to_payment_method_dto(row)
