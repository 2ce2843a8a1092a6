import asyncio
import logging
import time
from typing import Any, Awaitable, Dict, List, Optional, Tuple

from recoengine.core.config import Settings
from recoengine.core.errors import NotFoundError, UpstreamUnavailableError
from recoengine.domain.models.product import CandidateProduct, RecommendationInsights, UserRecommendations
from recoengine.domain.models.user import SimilarUser, UserProfile
from recoengine.domain.services import generators
from recoengine.domain.services.constants import (
    DEFAULT_CATEGORY_LIMIT,
    DEFAULT_CO_PURCHASE_LIMIT,
    DEFAULT_PRODUCT_LIMIT,
    DEFAULT_SIMILAR_USERS_LIMIT,
    DEFAULT_TRENDING_LIMIT,
    DEFAULT_USER_LIMIT,
    RECOMMENDATION_TYPES,
    SECTION_PURCHASE_HISTORY,
    SECTION_SIMILAR_USERS,
    SECTION_TRENDING,
    SECTION_WISHLIST,
    SIMILARITY_THRESHOLD,
)
from recoengine.domain.services.ranking import rank_products

logger = logging.getLogger(__name__)


async def _empty() -> List[Any]:
    return []


class RecommendationEngine:
    """
    Entry points of the recommendation engine.

    Stateless between calls: every operation reads from the injected
    repository, computes in memory and returns. Generators of one request
    run concurrently and fail independently; a failed generator yields an
    empty section. Missing anchors raise NotFoundError and an unreachable
    store raises UpstreamUnavailableError.
    """

    def __init__(
        self,
        repo,
        *,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
        similarity_pool_limit: int = 5000,
        co_purchase_pool_limit: int = 200,
        generator_timeout_s: Optional[float] = 5.0,
    ):
        self.repo = repo
        self.similarity_threshold = similarity_threshold
        self.similarity_pool_limit = similarity_pool_limit
        self.co_purchase_pool_limit = co_purchase_pool_limit
        self.generator_timeout_s = generator_timeout_s

    @classmethod
    def from_settings(cls, repo, settings: Settings) -> "RecommendationEngine":
        return cls(
            repo,
            similarity_threshold=settings.similarity_threshold,
            similarity_pool_limit=settings.similarity_pool_limit,
            co_purchase_pool_limit=settings.co_purchase_pool_limit,
            generator_timeout_s=settings.generator_timeout_s,
        )

    # ----- user ---------------------------------------------------------------

    async def get_user_recommendations(self, user_id: str, limit: int = DEFAULT_USER_LIMIT) -> UserRecommendations:
        t0 = time.perf_counter()
        logger.info("user_reco start user_id=%s limit=%s", user_id, limit)
        profile = await self._load_profile(user_id)

        sections = await self._run_isolated({
            SECTION_PURCHASE_HISTORY: generators.purchase_history_candidates(self.repo, profile, limit),
            SECTION_WISHLIST: generators.wishlist_candidates(self.repo, profile, limit),
            SECTION_SIMILAR_USERS: generators.similar_user_candidates(
                self.repo,
                profile,
                limit,
                threshold=self.similarity_threshold,
                pool_limit=self.similarity_pool_limit,
            ),
            SECTION_TRENDING: generators.trending_candidates(self.repo, profile, limit),
        }, context=f"user_id={user_id}")

        result = UserRecommendations(
            user_id=user_id,
            **{name: rank_products(products, profile) for name, products in sections.items()},
        )
        logger.info(
            "user_reco done user_id=%s sizes=%s total_time=%.3fs",
            user_id, {k: len(v) for k, v in sections.items()}, time.perf_counter() - t0,
        )
        return result

    async def find_similar_users(self, user_id: str, limit: int = DEFAULT_SIMILAR_USERS_LIMIT) -> List[SimilarUser]:
        profile = await self._load_profile(user_id)
        return await generators.find_similar_users(
            self.repo,
            profile,
            limit=limit,
            threshold=self.similarity_threshold,
            pool_limit=self.similarity_pool_limit,
        )

    # ----- product / category -------------------------------------------------

    async def get_product_recommendations(self, product_id: str, limit: int = DEFAULT_PRODUCT_LIMIT) -> List[CandidateProduct]:
        """
        Half of `limit` from the product's own category, the rest from
        products frequently bought with it; ranked without a requester.
        """
        t0 = time.perf_counter()
        product = await self.repo.get_product(product_id)
        if product is None:
            raise NotFoundError("product", product_id)

        # Both halves run concurrently; co-purchases are over-fetched so the
        # remainder can still be filled after dropping same-category duplicates
        parts = await self._run_isolated({
            "same_category": self.repo.find_in_stock_by_categories(
                [product.category_id], exclude_ids=[product_id], limit=limit // 2
            ) if product.category_id else _empty(),
            "co_purchase": generators.co_purchase_candidates(
                self.repo, product_id, limit, pool_limit=self.co_purchase_pool_limit
            ),
        }, context=f"product_id={product_id}")

        same_category = parts["same_category"]
        seen = {p.product_id for p in same_category}
        together = [c for c in parts["co_purchase"] if c.product_id not in seen][: limit - len(same_category)]

        ranked = rank_products([*same_category, *together])
        logger.info(
            "product_reco done product_id=%s same_category=%s co_purchase=%s total_time=%.3fs",
            product_id, len(same_category), len(together), time.perf_counter() - t0,
        )
        return ranked

    async def get_frequently_bought_together(self, product_id: str, limit: int = DEFAULT_CO_PURCHASE_LIMIT) -> List[CandidateProduct]:
        product = await self.repo.get_product(product_id)
        if product is None:
            raise NotFoundError("product", product_id)
        return await generators.co_purchase_candidates(
            self.repo, product_id, limit, pool_limit=self.co_purchase_pool_limit
        )

    async def get_category_recommendations(self, category_id: str, limit: int = DEFAULT_CATEGORY_LIMIT) -> List[CandidateProduct]:
        category = await self.repo.get_category(category_id)
        if category is None:
            raise NotFoundError("category", category_id)
        products = await self.repo.find_trending([category_id], limit=limit)
        logger.info("category_reco category_id=%s n=%s", category_id, len(products))
        return rank_products(products)

    async def get_trending(self, limit: int = DEFAULT_TRENDING_LIMIT, category_id: Optional[str] = None) -> List[CandidateProduct]:
        """Best sellers across the catalog, or within one category."""
        if category_id:
            return await self.get_category_recommendations(category_id, limit)
        products = await self.repo.find_trending(None, limit=limit)
        logger.info("trending n=%s", len(products))
        return rank_products(products)

    async def get_insights(self) -> RecommendationInsights:
        total, with_orders = await asyncio.gather(
            self.repo.count_products(),
            self.repo.count_products_with_orders(),
        )
        rate = round(with_orders / total * 100, 2) if total > 0 else 0.0
        return RecommendationInsights(
            total_products=total,
            products_with_orders=with_orders,
            conversion_rate=rate,
            recommendation_types=list(RECOMMENDATION_TYPES),
        )

    # ----- helpers --------------------------------------------------------------

    async def _load_profile(self, user_id: str) -> UserProfile:
        profile = await self.repo.get_user_profile(user_id)
        if profile is None:
            raise NotFoundError("user", user_id)
        return profile

    async def _run_isolated(self, jobs: Dict[str, Awaitable[List[Any]]], *, context: str) -> Dict[str, List[Any]]:
        """
        Await every job concurrently. A job that raises or exceeds
        generator_timeout_s contributes an empty list. If every job failed
        because the store is unavailable, that error is raised instead.
        """
        names = list(jobs)
        outcomes: List[Tuple[List[Any], Optional[Exception]]] = await asyncio.gather(
            *(self._guard(name, jobs[name], context) for name in names)
        )
        errors = [err for _, err in outcomes if err is not None]
        if errors and len(errors) == len(names) and all(isinstance(e, UpstreamUnavailableError) for e in errors):
            logger.error("reco aborted %s: store unavailable for all %s generators", context, len(names))
            raise errors[0]
        return {name: items for name, (items, _) in zip(names, outcomes)}

    async def _guard(self, name: str, job: Awaitable[List[Any]], context: str) -> Tuple[List[Any], Optional[Exception]]:
        t0 = time.perf_counter()
        try:
            if self.generator_timeout_s:
                items = await asyncio.wait_for(job, timeout=self.generator_timeout_s)
            else:
                items = await job
            return list(items), None
        except asyncio.TimeoutError as e:
            logger.warning("reco %s %s timed out after %.3fs; section left empty", name, context, time.perf_counter() - t0)
            return [], UpstreamUnavailableError(name, e)
        except NotFoundError:
            raise
        except Exception as e:
            logger.warning("reco %s %s failed; section left empty err=%s", name, context, e)
            return [], e
