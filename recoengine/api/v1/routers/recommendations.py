# recoengine/api/v1/routers/recommendations.py
from typing import Annotated, Optional
import logging
import time

from fastapi import APIRouter, Depends, Query

from recoengine.api.deps import engine_dep
from recoengine.api.v1.schemas.reco import CandidateListOut, SimilarUsersOut
from recoengine.domain.models.product import RecommendationInsights, UserRecommendations
from recoengine.domain.services.constants import (
    DEFAULT_CATEGORY_LIMIT,
    DEFAULT_CO_PURCHASE_LIMIT,
    DEFAULT_PRODUCT_LIMIT,
    DEFAULT_SIMILAR_USERS_LIMIT,
    DEFAULT_TRENDING_LIMIT,
    DEFAULT_USER_LIMIT,
    MAX_LIMIT,
)
from recoengine.domain.services.recommendation_svc import RecommendationEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommendations", tags=["recommendations"])

EngineDep = Annotated[RecommendationEngine, Depends(engine_dep)]


@router.get("/users/{user_id}", response_model=UserRecommendations)
async def user_recommendations(
    user_id: str,
    engine: EngineDep,
    limit: int = Query(DEFAULT_USER_LIMIT, ge=1, le=MAX_LIMIT),
) -> UserRecommendations:
    """
    Personalized recommendations grouped in five sections.
    Authentication happens upstream; user_id is trusted here.
    """
    logger.info("Request: user_recommendations user_id=%s, limit=%s", user_id, limit)
    t0 = time.perf_counter()
    res = await engine.get_user_recommendations(user_id, limit)
    logger.info("Response: user_recommendations user_id=%s in %.4fs", user_id, time.perf_counter() - t0)
    return res


@router.get("/products/{product_id}", response_model=CandidateListOut)
async def product_recommendations(
    product_id: str,
    engine: EngineDep,
    limit: int = Query(DEFAULT_PRODUCT_LIMIT, ge=1, le=MAX_LIMIT),
) -> CandidateListOut:
    logger.info("Request: product_recommendations product_id=%s, limit=%s", product_id, limit)
    t0 = time.perf_counter()
    items = await engine.get_product_recommendations(product_id, limit)
    logger.info("Response: product_recommendations product_id=%s, count=%s in %.4fs",
                product_id, len(items), time.perf_counter() - t0)
    return CandidateListOut.of(items)


@router.get("/categories/{category_id}", response_model=CandidateListOut)
async def category_recommendations(
    category_id: str,
    engine: EngineDep,
    limit: int = Query(DEFAULT_CATEGORY_LIMIT, ge=1, le=MAX_LIMIT),
) -> CandidateListOut:
    logger.info("Request: category_recommendations category_id=%s, limit=%s", category_id, limit)
    items = await engine.get_category_recommendations(category_id, limit)
    return CandidateListOut.of(items)


@router.get("/trending", response_model=CandidateListOut)
async def trending(
    engine: EngineDep,
    limit: int = Query(DEFAULT_TRENDING_LIMIT, ge=1, le=MAX_LIMIT),
    category_id: Optional[str] = Query(None, description="Restrict to one category"),
) -> CandidateListOut:
    logger.info("Request: trending limit=%s, category_id=%s", limit, category_id)
    items = await engine.get_trending(limit, category_id)
    return CandidateListOut.of(items)


@router.get("/frequently-bought/{product_id}", response_model=CandidateListOut)
async def frequently_bought_together(
    product_id: str,
    engine: EngineDep,
    limit: int = Query(DEFAULT_CO_PURCHASE_LIMIT, ge=1, le=MAX_LIMIT),
) -> CandidateListOut:
    logger.info("Request: frequently_bought_together product_id=%s, limit=%s", product_id, limit)
    items = await engine.get_frequently_bought_together(product_id, limit)
    return CandidateListOut.of(items)


@router.get("/similar-users/{user_id}", response_model=SimilarUsersOut)
async def similar_users(
    user_id: str,
    engine: EngineDep,
    limit: int = Query(DEFAULT_SIMILAR_USERS_LIMIT, ge=1, le=MAX_LIMIT),
) -> SimilarUsersOut:
    """Diagnostic view of the users driving the similar-users section."""
    logger.info("Request: similar_users user_id=%s, limit=%s", user_id, limit)
    items = await engine.find_similar_users(user_id, limit)
    return SimilarUsersOut(user_id=user_id, items=items, count=len(items))


@router.get("/insights", response_model=RecommendationInsights)
async def insights(engine: EngineDep) -> RecommendationInsights:
    return await engine.get_insights()
