"""
Candidate generators.

Each generator derives a seed (category ids or product ids) from the
requester's profile, asks the repository for in-stock products within that
seed and returns an unranked, bounded list. An empty list means "no signal"
and is the normal outcome for new users.
"""
import logging
import time
from typing import List

from recoengine.domain.models.product import CandidateProduct, Product
from recoengine.domain.models.user import SimilarUser, UserProfile
from recoengine.domain.services.constants import SIMILARITY_THRESHOLD
from recoengine.domain.services.ranking import rank_products
from recoengine.domain.services.similarity import rank_similar_users

logger = logging.getLogger(__name__)


async def purchase_history_candidates(repo, profile: UserProfile, limit: int) -> List[Product]:
    """Unpurchased products from the categories the user has bought from."""
    purchased = profile.purchased_product_ids
    if not purchased or not profile.purchase_category_ids:
        return []
    products = await repo.find_in_stock_by_categories(
        profile.purchase_category_ids, exclude_ids=purchased, limit=limit
    )
    logger.info("gen purchase_history user_id=%s seed=%s n=%s",
                profile.user_id, len(profile.purchase_category_ids), len(products))
    return products


async def wishlist_candidates(repo, profile: UserProfile, limit: int) -> List[Product]:
    """Products from the wishlist's categories that are not wishlisted yet."""
    if not profile.wishlist:
        return []
    categories = profile.wishlist_category_ids
    if not categories:
        return []
    products = await repo.find_in_stock_by_categories(
        categories, exclude_ids=profile.wishlist_product_ids, limit=limit
    )
    logger.info("gen wishlist user_id=%s seed=%s n=%s", profile.user_id, len(categories), len(products))
    return products


async def find_similar_users(
    repo,
    profile: UserProfile,
    *,
    limit: int,
    threshold: float = SIMILARITY_THRESHOLD,
    pool_limit: int = 5000,
) -> List[SimilarUser]:
    """
    Users whose purchase sets overlap the requester's by at least `threshold`
    (Jaccard). Only users sharing at least one product can pass a positive
    threshold, so the pool is restricted to them before loading full sets.
    """
    purchased = profile.purchased_product_ids
    if not purchased:
        return []

    t0 = time.perf_counter()
    candidate_ids = await repo.find_overlapping_users(purchased, profile.user_id, pool_limit)
    if not candidate_ids:
        return []
    pool = await repo.get_purchase_sets(candidate_ids)
    similar = rank_similar_users(
        purchased, pool, exclude_user_id=profile.user_id, threshold=threshold, limit=limit
    )
    logger.info("similar_users user_id=%s pool=%s kept=%s time=%.3fs",
                profile.user_id, len(pool), len(similar), time.perf_counter() - t0)
    return similar


async def similar_user_candidates(
    repo,
    profile: UserProfile,
    limit: int,
    *,
    threshold: float = SIMILARITY_THRESHOLD,
    pool_limit: int = 5000,
    similar_users_limit: int = 5,
) -> List[Product]:
    """Products bought by similar users that the requester has not bought."""
    similar = await find_similar_users(
        repo, profile, limit=similar_users_limit, threshold=threshold, pool_limit=pool_limit
    )
    if not similar:
        return []
    seed = await repo.get_products_purchased_by([u.user_id for u in similar])
    products = await repo.find_in_stock_by_ids(
        seed, exclude_ids=profile.purchased_product_ids, limit=limit
    )
    logger.info("gen similar_users user_id=%s similar=%s seed=%s n=%s",
                profile.user_id, len(similar), len(seed), len(products))
    return products


async def trending_candidates(repo, profile: UserProfile, limit: int) -> List[Product]:
    """Best sellers in the requester's purchase and wishlist categories."""
    categories = profile.purchase_category_ids | profile.wishlist_category_ids
    if not categories:
        return []
    products = await repo.find_trending(
        categories, exclude_ids=profile.purchased_product_ids, limit=limit
    )
    logger.info("gen trending user_id=%s seed=%s n=%s", profile.user_id, len(categories), len(products))
    return products


async def co_purchase_candidates(
    repo,
    product_id: str,
    limit: int,
    *,
    pool_limit: int = 200,
) -> List[CandidateProduct]:
    """
    Frequently bought together: in-stock products sharing orders with
    product_id, most frequent first. Each candidate carries the number of
    distinct orders it shares with the anchor in co_purchase_count.
    """
    if limit <= 0:
        return []
    counts = await repo.count_co_purchases(product_id, pool_limit)
    counts = [(pid, n) for pid, n in counts if pid != product_id]
    if not counts:
        logger.info("gen co_purchase product_id=%s no co-purchases", product_id)
        return []

    frequency = dict(counts)
    in_stock = await repo.find_in_stock_by_ids(list(frequency), limit=len(frequency))
    scored = rank_products(in_stock)
    # Frequency first; the stable sort keeps relevance order among ties
    ranked = sorted(
        (c.model_copy(update={"co_purchase_count": frequency[c.product_id]}) for c in scored),
        key=lambda c: c.co_purchase_count,
        reverse=True,
    )[:limit]
    logger.info("gen co_purchase product_id=%s mined=%s in_stock=%s n=%s",
                product_id, len(counts), len(in_stock), len(ranked))
    return ranked
