from sqlalchemy import Boolean, Column, Integer, Numeric, String
from .base import Base


class PaymentMethod(Base):
    __tablename__ = "payment_method"

    id = Column(String(64), primary_key=True)
    name = Column(String(128), nullable=False)
    account_number = Column(String(128), nullable=False)
    account_name = Column(String(255), nullable=False)
    icon_url = Column(String(512), nullable=True)
    qr_code_url = Column(String(512), nullable=True)
    # exclusive upper bound on the order total
    max_order_amount = Column(Numeric(12, 2), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
