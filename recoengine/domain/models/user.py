from datetime import datetime
from typing import FrozenSet, Optional, Tuple

from pydantic import BaseModel, Field

from recoengine.domain.models.product import Product


class OrderLine(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)
    model_config = {"frozen": True}


class Order(BaseModel):
    order_id: str
    user_id: str
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    lines: Tuple[OrderLine, ...] = ()
    model_config = {"frozen": True}


class UserProfile(BaseModel):
    """
    Everything the generators need to know about the requesting user.
    Built once per request by CatalogRepo.get_user_profile().

    orders may hold only the most recent orders; purchased_ids carries the
    product ids of the whole order history.
    """
    user_id: str
    orders: Tuple[Order, ...] = ()
    purchased_ids: FrozenSet[str] = frozenset()
    wishlist: Tuple[Product, ...] = ()
    purchase_category_ids: FrozenSet[str] = frozenset()
    model_config = {"frozen": True}

    @property
    def purchased_product_ids(self) -> FrozenSet[str]:
        return self.purchased_ids | frozenset(line.product_id for order in self.orders for line in order.lines)

    @property
    def wishlist_product_ids(self) -> FrozenSet[str]:
        return frozenset(p.product_id for p in self.wishlist)

    @property
    def wishlist_category_ids(self) -> FrozenSet[str]:
        return frozenset(p.category_id for p in self.wishlist if p.category_id)


class SimilarUser(BaseModel):
    user_id: str
    similarity: float = Field(ge=0, le=1)
    model_config = {"frozen": True}
