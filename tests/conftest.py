"""
Shared fixtures: an in-memory stand-in for CatalogRepo.

FakeCatalogRepo answers the same query shapes as the Mongo repository over
plain Python data, records every call, and can be told to fail or stall on
a given method.
"""
import asyncio
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import pytest

from recoengine.domain.models.product import Category, Product
from recoengine.domain.models.user import Order, OrderLine, UserProfile

NOW = datetime.now(timezone.utc)


def days_ago(n: float) -> datetime:
    return NOW - timedelta(days=n)


def make_product(product_id: str, category_id: str = "c1", *, stock: int = 10, age_days: float = 200, **kw) -> Product:
    return Product(
        product_id=product_id,
        name=kw.pop("name", f"Product {product_id}"),
        category_id=category_id,
        stock=stock,
        created_at=days_ago(age_days),
        **kw,
    )


def make_order(order_id: str, user_id: str, *product_ids: str, quantity: int = 1) -> Order:
    return Order(
        order_id=order_id,
        user_id=user_id,
        status="delivered",
        lines=tuple(OrderLine(product_id=pid, quantity=quantity) for pid in product_ids),
    )


class FakeCatalogRepo:
    def __init__(
        self,
        products: Iterable[Product] = (),
        orders: Iterable[Order] = (),
        users: Optional[Dict[str, List[str]]] = None,
        categories: Iterable[str] = (),
    ):
        self._products = {p.product_id: p for p in products}
        self.orders = list(orders)
        self.users = dict(users or {})  # user_id -> wishlist
        self.categories = {c: Category(category_id=c, name=c.upper()) for c in categories}
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.delays: Dict[str, float] = {}

    # ----- test controls ----------------------------------------------------

    def fail(self, method: str, error: Exception) -> None:
        self.failures[method] = error

    def stall(self, method: str, seconds: float) -> None:
        self.delays[method] = seconds

    async def _enter(self, method: str) -> None:
        self.calls.append(method)
        if method in self.delays:
            await asyncio.sleep(self.delays[method])
        if method in self.failures:
            raise self.failures[method]

    # ----- stats -------------------------------------------------------------

    def _hydrated(self, product: Product) -> Product:
        lines = [l for o in self.orders for l in o.lines if l.product_id == product.product_id]
        return product.model_copy(update={
            "order_line_count": len(lines),
            "units_sold": sum(l.quantity for l in lines),
        })

    @staticmethod
    def _newest_first(products: List[Product]) -> List[Product]:
        return sorted(products, key=lambda p: (-(p.created_at.timestamp() if p.created_at else 0), p.product_id))

    # ----- CatalogRepo surface -------------------------------------------------

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        await self._enter("get_user_profile")
        if user_id not in self.users:
            return None
        orders = tuple(o for o in self.orders if o.user_id == user_id)
        wishlist_ids = list(dict.fromkeys(self.users[user_id]))
        wishlist = tuple(self._products[pid] for pid in wishlist_ids if pid in self._products)
        purchased = {l.product_id for o in orders for l in o.lines}
        cats = frozenset(
            self._products[pid].category_id for pid in purchased
            if pid in self._products and self._products[pid].category_id
        )
        return UserProfile(
            user_id=user_id,
            orders=orders,
            purchased_ids=frozenset(purchased),
            wishlist=wishlist,
            purchase_category_ids=cats,
        )

    async def get_product(self, product_id: str) -> Optional[Product]:
        await self._enter("get_product")
        p = self._products.get(product_id)
        return self._hydrated(p) if p else None

    async def get_category(self, category_id: str) -> Optional[Category]:
        await self._enter("get_category")
        return self.categories.get(category_id)

    async def find_in_stock_by_categories(self, category_ids, exclude_ids=(), limit=10) -> List[Product]:
        await self._enter("find_in_stock_by_categories")
        cats, excluded = set(category_ids), set(exclude_ids)
        found = [
            self._hydrated(p) for p in self._products.values()
            if p.category_id in cats and p.stock > 0 and p.product_id not in excluded
        ]
        return self._newest_first(found)[:max(limit, 0)]

    async def find_in_stock_by_ids(self, product_ids, exclude_ids=(), limit=10) -> List[Product]:
        await self._enter("find_in_stock_by_ids")
        ids, excluded = set(product_ids), set(exclude_ids)
        found = [
            self._hydrated(p) for pid, p in self._products.items()
            if pid in ids and pid not in excluded and p.stock > 0
        ]
        return self._newest_first(found)[:max(limit, 0)]

    async def find_trending(self, category_ids=None, exclude_ids=(), limit=10) -> List[Product]:
        await self._enter("find_trending")
        cats = set(category_ids) if category_ids is not None else None
        excluded = set(exclude_ids)
        found = [
            self._hydrated(p) for p in self._products.values()
            if p.stock > 0 and p.product_id not in excluded and (cats is None or p.category_id in cats)
        ]
        found = self._newest_first(found)
        found.sort(key=lambda p: p.units_sold, reverse=True)
        return found[:max(limit, 0)]

    async def count_co_purchases(self, product_id: str, limit: int = 200):
        await self._enter("count_co_purchases")
        counts: Counter = Counter()
        for o in self.orders:
            ids = {l.product_id for l in o.lines}
            if product_id in ids:
                counts.update(ids - {product_id})
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        return ranked[:limit]

    async def find_overlapping_users(self, product_ids, exclude_user_id, limit=5000) -> List[str]:
        await self._enter("find_overlapping_users")
        ids = set(product_ids)
        shared: Dict[str, set] = {}
        for o in self.orders:
            overlap = ids & {l.product_id for l in o.lines}
            if o.user_id != exclude_user_id and overlap:
                shared.setdefault(o.user_id, set()).update(overlap)
        return sorted(shared, key=lambda uid: (-len(shared[uid]), uid))[:limit]

    async def get_purchase_sets(self, user_ids):
        await self._enter("get_purchase_sets")
        sets: Dict[str, set] = {}
        for uid in sorted(set(user_ids)):
            bought = {l.product_id for o in self.orders if o.user_id == uid for l in o.lines}
            if bought:
                sets[uid] = bought
        return sets

    async def get_products_purchased_by(self, user_ids):
        await self._enter("get_products_purchased_by")
        ids = set(user_ids)
        return {l.product_id for o in self.orders if o.user_id in ids for l in o.lines}

    async def count_products(self) -> int:
        await self._enter("count_products")
        return len(self._products)

    async def count_products_with_orders(self) -> int:
        await self._enter("count_products_with_orders")
        ordered = {l.product_id for o in self.orders for l in o.lines}
        return len(ordered & set(self._products))


@pytest.fixture
def catalog():
    """
    c1: p1, p2 (bought by alice), p3 (new, never bought), p4 (out of stock)
    c2: p5 (wishlisted by alice), p6, p7 (bought by bob and carol)
    c3: p8 (bought by dave only)
    """
    products = [
        make_product("p1", "c1", age_days=200),
        make_product("p2", "c1", age_days=120),
        make_product("p3", "c1", age_days=0),
        make_product("p4", "c1", stock=0, age_days=1),
        make_product("p5", "c2", age_days=60),
        make_product("p6", "c2", age_days=10),
        make_product("p7", "c2", age_days=100),
        make_product("p8", "c3", age_days=5),
    ]
    orders = [
        make_order("o1", "alice", "p1", "p2"),
        make_order("o2", "bob", "p1", "p2", "p7"),
        make_order("o3", "carol", "p1", "p7", quantity=3),
        make_order("o4", "dave", "p8"),
    ]
    users = {
        "alice": ["p5"],
        "bob": [],
        "carol": [],
        "dave": [],
        "newbie": [],
    }
    return FakeCatalogRepo(products, orders, users, categories=["c1", "c2", "c3", "c9"])
