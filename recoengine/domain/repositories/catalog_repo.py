# recoengine/domain/repositories/catalog_repo.py

from __future__ import annotations

import asyncio
import functools
import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from recoengine.core.errors import UpstreamUnavailableError
from recoengine.domain.models.product import Category, Product
from recoengine.domain.models.user import Order, UserProfile

logger = logging.getLogger(__name__)

MAX_PROFILE_ORDERS = 1000

# Joins every product with its order lines (orders.lines is embedded) and
# exposes order_line_count / units_sold on the product document.
# localField + pipeline in the same $lookup needs MongoDB >= 5.0.
SALES_STATS_STAGES: List[Dict[str, Any]] = [
    {"$lookup": {
        "from": "orders",
        "localField": "product_id",
        "foreignField": "lines.product_id",
        "let": {"pid": "$product_id"},
        "pipeline": [
            {"$unwind": "$lines"},
            {"$match": {"$expr": {"$eq": ["$lines.product_id", "$$pid"]}}},
            {"$group": {
                "_id": None,
                "lines": {"$sum": 1},
                "units": {"$sum": {"$ifNull": ["$lines.quantity", 1]}},
            }},
        ],
        "as": "sales",
    }},
    {"$addFields": {
        "order_line_count": {"$ifNull": [{"$first": "$sales.lines"}, 0]},
        "units_sold": {"$ifNull": [{"$first": "$sales.units"}, 0]},
    }},
    {"$project": {"_id": 0, "sales": 0}},
]


def _store_read(operation: str):
    """
    Time a read and translate driver failures (network errors, server
    selection and maxTimeMS timeouts) into UpstreamUnavailableError.
    """
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(self, *args, **kwargs):
            t0 = time.perf_counter()
            try:
                result = await fn(self, *args, **kwargs)
            except PyMongoError as e:
                logger.error("catalog %s failed after %.3fs err=%s", operation, time.perf_counter() - t0, e)
                raise UpstreamUnavailableError(operation, e) from e
            logger.debug("catalog %s ok db_time=%.3fs", operation, time.perf_counter() - t0)
            return result
        return wrapper
    return decorator


def _dedupe(ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(i for i in ids if i))


class CatalogRepo:
    """
    Read-only access to the catalog/order store.

    Collections:
      users       { user_id, wishlist: [product_id] }
      orders      { order_id, user_id, status, created_at, lines: [{product_id, quantity}] }
      products    { product_id, name, category_id, stock, created_at, ... }
      categories  { category_id, name }

    Each public method is one query shape used by the engine. Shopper-facing
    product queries always filter on stock > 0 and every read is capped by a
    limit and maxTimeMS.
    """

    def __init__(self, db: AsyncIOMotorDatabase, *, max_time_ms: int = 3000):
        self.users = db["users"]
        self.orders = db["orders"]
        self.products = db["products"]
        self.categories = db["categories"]
        self.max_time_ms = max_time_ms

    # ----- Anchor lookups -----------------------------------------------------

    @_store_read("get_user_profile")
    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        user = await self.users.find_one(
            {"user_id": user_id}, {"_id": 0, "user_id": 1, "wishlist": 1}, max_time_ms=self.max_time_ms
        )
        if not user:
            return None

        wishlist_ids = _dedupe(user.get("wishlist") or [])
        # Only the newest orders are materialized; purchased ids cover the whole history
        orders_cursor = (
            self.orders.find({"user_id": user_id}, {"_id": 0})
            .sort("created_at", -1)
            .limit(MAX_PROFILE_ORDERS)
            .max_time_ms(self.max_time_ms)
        )
        order_docs, purchased_ids, wishlist_docs = await asyncio.gather(
            orders_cursor.to_list(length=None),
            self.orders.distinct("lines.product_id", {"user_id": user_id}, maxTimeMS=self.max_time_ms),
            self._find_plain_products(wishlist_ids),
        )
        orders = [Order.model_validate(d) for d in order_docs]

        purchased = _dedupe(purchased_ids)
        purchase_categories: List[str] = []
        if purchased:
            purchase_categories = await self.products.distinct(
                "category_id", {"product_id": {"$in": purchased}}, maxTimeMS=self.max_time_ms
            )

        # Keep wishlist order as stored
        by_id = {d["product_id"]: d for d in wishlist_docs}
        wishlist = [Product.model_validate(by_id[pid]) for pid in wishlist_ids if pid in by_id]

        return UserProfile(
            user_id=user_id,
            orders=tuple(orders),
            purchased_ids=frozenset(purchased),
            wishlist=tuple(wishlist),
            purchase_category_ids=frozenset(c for c in purchase_categories if c),
        )

    @_store_read("get_product")
    async def get_product(self, product_id: str) -> Optional[Product]:
        docs = await self._aggregate_products([{"$match": {"product_id": product_id}}, {"$limit": 1}])
        return Product.model_validate(docs[0]) if docs else None

    @_store_read("get_category")
    async def get_category(self, category_id: str) -> Optional[Category]:
        doc = await self.categories.find_one(
            {"category_id": category_id}, {"_id": 0}, max_time_ms=self.max_time_ms
        )
        return Category.model_validate(doc) if doc else None

    # ----- Candidate queries ----------------------------------------------------

    @_store_read("find_in_stock_by_categories")
    async def find_in_stock_by_categories(
        self,
        category_ids: Iterable[str],
        exclude_ids: Iterable[str] = (),
        limit: int = 10,
    ) -> List[Product]:
        """In-stock products of the given categories, newest first."""
        cats = _dedupe(category_ids)
        if not cats or limit <= 0:
            return []
        match = {
            "category_id": {"$in": cats},
            "stock": {"$gt": 0},
            "product_id": {"$nin": _dedupe(exclude_ids)},
        }
        docs = await self._aggregate_products([
            {"$match": match},
            {"$sort": {"created_at": -1, "product_id": 1}},
            {"$limit": limit},
        ])
        return [Product.model_validate(d) for d in docs]

    @_store_read("find_in_stock_by_ids")
    async def find_in_stock_by_ids(
        self,
        product_ids: Iterable[str],
        exclude_ids: Iterable[str] = (),
        limit: int = 10,
    ) -> List[Product]:
        """In-stock products among product_ids, newest first."""
        excluded = set(exclude_ids)
        ids = [pid for pid in _dedupe(product_ids) if pid not in excluded]
        if not ids or limit <= 0:
            return []
        docs = await self._aggregate_products([
            {"$match": {"product_id": {"$in": ids}, "stock": {"$gt": 0}}},
            {"$sort": {"created_at": -1, "product_id": 1}},
            {"$limit": limit},
        ])
        return [Product.model_validate(d) for d in docs]

    @_store_read("find_trending")
    async def find_trending(
        self,
        category_ids: Optional[Iterable[str]] = None,
        exclude_ids: Iterable[str] = (),
        limit: int = 10,
    ) -> List[Product]:
        """
        In-stock products ordered by total quantity sold, then newest first.
        category_ids=None means every category.
        """
        if limit <= 0:
            return []
        match: Dict[str, Any] = {"stock": {"$gt": 0}}
        if category_ids is not None:
            cats = _dedupe(category_ids)
            if not cats:
                return []
            match["category_id"] = {"$in": cats}
        excluded = _dedupe(exclude_ids)
        if excluded:
            match["product_id"] = {"$nin": excluded}

        docs = await self._aggregate_products(
            [{"$match": match}],
            after_stats=[
                {"$sort": {"units_sold": -1, "created_at": -1, "product_id": 1}},
                {"$limit": limit},
            ],
        )
        return [Product.model_validate(d) for d in docs]

    @_store_read("count_co_purchases")
    async def count_co_purchases(self, product_id: str, limit: int = 200) -> List[Tuple[str, int]]:
        """
        (product_id, n) pairs where n is the number of distinct orders that
        contain both product_id and the other product. Most frequent first.
        Stock is not checked here.
        """
        pipeline: List[Dict[str, Any]] = [
            {"$match": {"lines.product_id": product_id}},
            # $setDifference drops duplicates, so a product counts once per order
            {"$project": {"_id": 0, "co": {"$setDifference": ["$lines.product_id", [product_id]]}}},
            {"$unwind": "$co"},
            {"$group": {"_id": "$co", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
            {"$limit": limit},
        ]
        docs = await self.orders.aggregate(pipeline, maxTimeMS=self.max_time_ms).to_list(length=None)
        return [(d["_id"], int(d["count"])) for d in docs]

    # ----- Similarity queries -------------------------------------------------

    @_store_read("find_overlapping_users")
    async def find_overlapping_users(
        self,
        product_ids: Iterable[str],
        exclude_user_id: str,
        limit: int = 5000,
    ) -> List[str]:
        """
        Users other than exclude_user_id who bought at least one of product_ids,
        those sharing the most distinct products first.
        """
        ids = _dedupe(product_ids)
        if not ids:
            return []
        pipeline: List[Dict[str, Any]] = [
            {"$match": {"lines.product_id": {"$in": ids}, "user_id": {"$ne": exclude_user_id}}},
            {"$unwind": "$lines"},
            {"$match": {"lines.product_id": {"$in": ids}}},
            {"$group": {"_id": "$user_id", "shared": {"$addToSet": "$lines.product_id"}}},
            {"$project": {"overlap": {"$size": "$shared"}}},
            {"$sort": {"overlap": -1, "_id": 1}},
            {"$limit": limit},
        ]
        docs = await self.orders.aggregate(pipeline, maxTimeMS=self.max_time_ms).to_list(length=None)
        return [d["_id"] for d in docs if d.get("_id")]

    @_store_read("get_purchase_sets")
    async def get_purchase_sets(self, user_ids: Iterable[str]) -> Dict[str, Set[str]]:
        """Purchased product ids per user, for all user_ids in one query."""
        ids = _dedupe(user_ids)
        if not ids:
            return {}
        pipeline: List[Dict[str, Any]] = [
            {"$match": {"user_id": {"$in": ids}}},
            {"$unwind": "$lines"},
            {"$group": {"_id": "$user_id", "products": {"$addToSet": "$lines.product_id"}}},
            {"$sort": {"_id": 1}},
        ]
        docs = await self.orders.aggregate(pipeline, maxTimeMS=self.max_time_ms).to_list(length=None)
        return {d["_id"]: set(d.get("products") or []) for d in docs}

    @_store_read("get_products_purchased_by")
    async def get_products_purchased_by(self, user_ids: Iterable[str]) -> Set[str]:
        """Union of product ids bought by any of user_ids (one in-list query)."""
        ids = _dedupe(user_ids)
        if not ids:
            return set()
        found = await self.orders.distinct(
            "lines.product_id", {"user_id": {"$in": ids}}, maxTimeMS=self.max_time_ms
        )
        return set(found)

    # ----- Insights -------------------------------------------------------------

    @_store_read("count_products")
    async def count_products(self) -> int:
        return await self.products.count_documents({}, maxTimeMS=self.max_time_ms)

    @_store_read("count_products_with_orders")
    async def count_products_with_orders(self) -> int:
        pipeline: List[Dict[str, Any]] = [
            {"$unwind": "$lines"},
            {"$group": {"_id": "$lines.product_id"}},
            {"$lookup": {"from": "products", "localField": "_id", "foreignField": "product_id", "as": "p"}},
            {"$match": {"p": {"$ne": []}}},
            {"$count": "n"},
        ]
        docs = await self.orders.aggregate(pipeline, maxTimeMS=self.max_time_ms).to_list(length=1)
        return int(docs[0]["n"]) if docs else 0

    # ----- helpers --------------------------------------------------------------

    async def _aggregate_products(
        self,
        before_stats: List[Dict[str, Any]],
        after_stats: Optional[List[Dict[str, Any]]] = None,
    ) -> List[dict]:
        pipeline = [*before_stats, *SALES_STATS_STAGES, *(after_stats or [])]
        return await self.products.aggregate(pipeline, maxTimeMS=self.max_time_ms).to_list(length=None)

    async def _find_plain_products(self, product_ids: List[str]) -> List[dict]:
        if not product_ids:
            return []
        cursor = self.products.find(
            {"product_id": {"$in": product_ids}}, {"_id": 0}
        ).max_time_ms(self.max_time_ms)
        return await cursor.to_list(length=len(product_ids))
