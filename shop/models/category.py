from sqlalchemy import Boolean, Column, Integer, String
from .base import Base


class Category(Base):
    __tablename__ = "category"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    icon = Column(String(64), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "sort_order": self.sort_order,
        }
