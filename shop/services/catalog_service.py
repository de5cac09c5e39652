from typing import Dict, List, Optional, Tuple
import time
from ..db.session import get_session
from ..models.category import Category
from ..models.product import Product
from ..utils.dto import to_product_dto
from ..utils.money import D
from .session_store import MENU_CATEGORY_KEY, MENU_SEARCH_KEY, VIEW_KEY, SessionStore


ALL_CATEGORIES = "all"
POPULAR_CATEGORY = "popular"

VIEWS = ("menu", "cart", "checkout")
DEFAULT_VIEW = "menu"


class CatalogService:
    """Menu querying service.

    Responsibilities:
    - List/search menu products with the ``all``/``popular``/category filter
    - Get single product detail
    - Upsert products from a menu import
    """

    _cache_ttl_seconds: int = 60

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory
        # naive in-process cache: key -> (ts, result)
        self._cache: Dict[Tuple, Tuple[float, List[Dict]]] = {}

    def _active_products(self) -> List[Dict]:
        cache_key = ("products",)
        now = time.time()
        cached = self._cache.get(cache_key)
        if cached and now - cached[0] <= self._cache_ttl_seconds:
            return cached[1]
        with self._session_factory() as session:
            rows = (
                session.query(Product)
                .order_by(Product.sort_order.asc(), Product.name.asc())
                .all()
            )
            result = [to_product_dto(r) for r in rows]
        self._cache[cache_key] = (now, result)
        return result

    def list_products(self, *, query: Optional[str] = None, category: Optional[str] = ALL_CATEGORIES) -> List[Dict]:
        """Category filter first, then case-insensitive name search."""
        items = self._active_products()
        category = category or ALL_CATEGORIES
        if category == POPULAR_CATEGORY:
            items = [p for p in items if p["popular"]]
        elif category != ALL_CATEGORIES:
            items = [p for p in items if p["category_id"] == category]
        needle = (query or "").strip().lower()
        if needle:
            items = [p for p in items if needle in (p["name"] or "").lower()]
        return items

    def has_popular_items(self) -> bool:
        return any(p["popular"] for p in self._active_products())

    def get_product(self, product_id: str) -> dict:
        """Return ProductDTO for given product id."""
        with self._session_factory() as session:
            r = session.query(Product).filter(Product.id == product_id).first()
            return to_product_dto(r) if r else {}

    def list_categories(self) -> List[Dict]:
        with self._session_factory() as session:
            rows = (
                session.query(Category)
                .filter(Category.is_active.is_(True))
                .order_by(Category.sort_order.asc())
                .all()
            )
            return [c.to_dict() for c in rows]

    def upsert_category(self, data: Dict) -> None:
        with self._session_factory() as session:
            row = session.get(Category, str(data["id"])) or Category(id=str(data["id"]))
            row.name = data.get("name") or row.id
            row.icon = data.get("icon")
            row.sort_order = int(data.get("sort_order") or 0)
            row.is_active = bool(data.get("is_active", True))
            session.add(row)
        self.invalidate_cache()

    def upsert_product(self, data: Dict) -> Dict:
        if not data.get("id") or not data.get("name"):
            raise ValueError("product id and name required")
        with self._session_factory() as session:
            row = session.get(Product, str(data["id"])) or Product(id=str(data["id"]))
            row.name = data["name"]
            row.subtitle = data.get("subtitle")
            row.description = data.get("description")
            row.base_price = D(data.get("base_price"))
            row.image = data.get("image")
            row.category_id = data.get("category_id")
            row.popular = bool(data.get("popular", False))
            row.available = bool(data.get("available", True))
            row.is_on_discount = bool(data.get("is_on_discount", False))
            row.discount_percentage = D(data["discount_percentage"]) if data.get("discount_percentage") is not None else None
            row.variations = data.get("variations") or []
            row.add_ons = data.get("add_ons") or []
            row.custom_fields = data.get("custom_fields") or []
            row.sort_order = int(data.get("sort_order") or 0)
            session.add(row)
            session.flush()
            dto = to_product_dto(row)
        self.invalidate_cache()
        return dto

    def invalidate_cache(self) -> None:
        self._cache.clear()
        return None


class BrowseState:
    """Persisted view, category and search of the customer's menu session."""

    def __init__(self, store: SessionStore):
        self._store = store

    def current_view(self) -> str:
        view = self._store.get_str(VIEW_KEY, DEFAULT_VIEW)
        return view if view in VIEWS else DEFAULT_VIEW

    def set_view(self, view: str) -> str:
        if view not in VIEWS:
            raise ValueError(f"view must be one of {', '.join(VIEWS)}")
        self._store.set_str(VIEW_KEY, view)
        return view

    def reconcile_view(self, cart_count: int) -> str:
        # a restored cart/checkout view with an empty cart goes back to the menu
        view = self.current_view()
        if view in ("cart", "checkout") and cart_count == 0:
            return self.set_view(DEFAULT_VIEW)
        return view

    def category(self) -> str:
        return self._store.get_str(MENU_CATEGORY_KEY, ALL_CATEGORIES) or ALL_CATEGORIES

    def search(self) -> str:
        return self._store.get_str(MENU_SEARCH_KEY, "") or ""

    def select_category(self, category: str) -> None:
        self._store.set_str(MENU_CATEGORY_KEY, category or ALL_CATEGORIES)
        self._store.set_str(MENU_SEARCH_KEY, "")

    def set_search(self, query: str) -> None:
        self._store.set_str(MENU_SEARCH_KEY, query or "")
        if (query or "").strip():
            self._store.set_str(MENU_CATEGORY_KEY, ALL_CATEGORIES)

    def reconcile_category(self, has_popular: bool, menu_size: int) -> str:
        category = self.category()
        if category == POPULAR_CATEGORY and not has_popular and menu_size > 0:
            self._store.set_str(MENU_CATEGORY_KEY, ALL_CATEGORIES)
            return ALL_CATEGORIES
        return category
