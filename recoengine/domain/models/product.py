from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class Product(BaseModel):
    product_id: str
    name: str
    description: Optional[str] = None
    category_id: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    currency: Optional[str] = None
    stock: int = 0
    image_url: Optional[str] = None
    tags: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Sales stats hydrated by the repository from embedded order lines
    order_line_count: int = Field(default=0, ge=0)
    units_sold: int = Field(default=0, ge=0)

    model_config = {"frozen": True}  # immuable = safe

    @property
    def in_stock(self) -> bool:
        return self.stock > 0


class Category(BaseModel):
    category_id: str
    name: Optional[str] = None
    model_config = {"frozen": True}


class CandidateProduct(Product):
    """A product annotated with its relevance score for one request."""
    relevance_score: float
    co_purchase_count: Optional[int] = None


class UserRecommendations(BaseModel):
    user_id: str
    based_on_purchase_history: List[CandidateProduct] = []
    based_on_wishlist: List[CandidateProduct] = []
    based_on_similar_users: List[CandidateProduct] = []
    trending_in_categories: List[CandidateProduct] = []
    recently_viewed: List[CandidateProduct] = []  # view tracking is not recorded
    model_config = {"frozen": True}


class RecommendationInsights(BaseModel):
    total_products: int
    products_with_orders: int
    conversion_rate: float  # percent of products ordered at least once
    recommendation_types: List[str]
    model_config = {"frozen": True}
