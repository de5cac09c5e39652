from sqlalchemy import Column, DateTime, JSON, Numeric, String, Text, func
from .base import Base


ORDER_STATUSES = ("pending", "processing", "approved", "rejected")
TERMINAL_STATUSES = frozenset({"approved", "rejected"})


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    order_items = Column(JSON, nullable=False)
    customer_info = Column(JSON, nullable=False)
    payment_method_id = Column(String(64), nullable=True)
    receipt_url = Column(Text, nullable=True)
    total_price = Column(Numeric(12, 2), nullable=False)
    status = Column(String(32), nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
