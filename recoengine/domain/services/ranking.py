import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from recoengine.domain.models.product import CandidateProduct, Product
from recoengine.domain.models.user import UserProfile
from recoengine.domain.services.constants import (
    CATEGORY_AFFINITY_BONUS,
    IN_STOCK_BONUS,
    NEW_PRODUCT_BONUS,
    NEW_PRODUCT_DAYS,
    ORDER_LINE_WEIGHT,
    RECENT_PRODUCT_BONUS,
    RECENT_PRODUCT_DAYS,
)

logger = logging.getLogger(__name__)


def _age_days(created_at: Optional[datetime], now: datetime) -> Optional[float]:
    if created_at is None:
        return None
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)  # store writes UTC
    return (now - created_at).total_seconds() / 86400


def relevance_score(product: Product, profile: Optional[UserProfile] = None, *, now: Optional[datetime] = None) -> float:
    """
    Shared relevance formula:
      10 per historical order line
      +50 if the product's category is one the requester has bought from
      +20 if younger than 30 days, +10 if younger than 90 days
      +15 if in stock
    The category bonus is skipped when there is no requester.
    """
    now = now or datetime.now(timezone.utc)
    score = ORDER_LINE_WEIGHT * product.order_line_count

    if profile is not None and product.category_id in profile.purchase_category_ids:
        score += CATEGORY_AFFINITY_BONUS

    age = _age_days(product.created_at, now)
    if age is not None:
        if age < NEW_PRODUCT_DAYS:
            score += NEW_PRODUCT_BONUS
        elif age < RECENT_PRODUCT_DAYS:
            score += RECENT_PRODUCT_BONUS

    if product.in_stock:
        score += IN_STOCK_BONUS

    return float(score)


def rank_products(
    products: Iterable[Product],
    profile: Optional[UserProfile] = None,
    *,
    now: Optional[datetime] = None,
) -> List[CandidateProduct]:
    """
    Score and sort candidates, best first.
    sorted() is stable so equal scores keep their input order.
    """
    now = now or datetime.now(timezone.utc)
    candidates = [
        CandidateProduct(**p.model_dump(exclude={"relevance_score"}), relevance_score=relevance_score(p, profile, now=now))
        for p in products
    ]
    ranked = sorted(candidates, key=lambda c: c.relevance_score, reverse=True)
    logger.debug(
        "rank n=%s personalized=%s top=%s",
        len(ranked), profile is not None, [(c.product_id, c.relevance_score) for c in ranked[:5]],
    )
    return ranked
