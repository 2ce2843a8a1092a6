import logging
from typing import AbstractSet, List, Mapping, Optional

from recoengine.domain.models.user import SimilarUser
from recoengine.domain.services.constants import DEFAULT_SIMILAR_USERS_LIMIT, SIMILARITY_THRESHOLD

logger = logging.getLogger(__name__)


def jaccard_similarity(a: AbstractSet[str], b: AbstractSet[str]) -> Optional[float]:
    """|a ∩ b| / |a ∪ b|, or None when both sets are empty."""
    union = len(a | b)
    if union == 0:
        return None
    return len(a & b) / union


def rank_similar_users(
    purchased: AbstractSet[str],
    pool: Mapping[str, AbstractSet[str]],
    *,
    exclude_user_id: Optional[str] = None,
    threshold: float = SIMILARITY_THRESHOLD,
    limit: int = DEFAULT_SIMILAR_USERS_LIMIT,
) -> List[SimilarUser]:
    """
    Users from pool whose purchase set is at least `threshold` similar to
    `purchased`, most similar first. Ties keep the pool's iteration order.
    """
    if not purchased or limit <= 0:
        return []

    scored: List[SimilarUser] = []
    for user_id, their_purchases in pool.items():
        if user_id == exclude_user_id:
            continue
        sim = jaccard_similarity(purchased, their_purchases)
        if sim is None or sim < threshold:
            continue
        scored.append(SimilarUser(user_id=user_id, similarity=sim))

    scored.sort(key=lambda u: u.similarity, reverse=True)
    logger.debug("similarity pool=%s kept=%s threshold=%s", len(pool), len(scored), threshold)
    return scored[:limit]
