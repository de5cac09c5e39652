from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text, func
from .base import Base


class Product(Base):
    """A game on the menu; its currency packages live in ``variations``."""

    __tablename__ = "product"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    subtitle = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    base_price = Column(Numeric(12, 2), nullable=False, default=0)
    image = Column(String(512), nullable=True)
    category_id = Column(String(64), ForeignKey("category.id"), nullable=True)
    popular = Column(Boolean, nullable=False, default=False)
    available = Column(Boolean, nullable=False, default=True)
    is_on_discount = Column(Boolean, nullable=False, default=False)
    discount_percentage = Column(Numeric(5, 2), nullable=True)
    # [{"id", "name", "price", "category", "sort", "description"}]
    variations = Column(JSON, nullable=True)
    # [{"id", "name", "price"}]
    add_ons = Column(JSON, nullable=True)
    # [{"key", "label", "placeholder", "required"}], order matters
    custom_fields = Column(JSON, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
