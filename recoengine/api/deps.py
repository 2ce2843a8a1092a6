# recoengine/api/deps.py
from fastapi import Depends
from recoengine.core.config import Settings, get_settings
from recoengine.db.mongo import get_db
from recoengine.domain.repositories.catalog_repo import CatalogRepo
from recoengine.domain.services.recommendation_svc import RecommendationEngine

# Dependency for injecting the MongoDB database into endpoints/services
async def mongo_db(db = Depends(get_db)):
    # Returns the MongoDB database instance (async)
    return db

# One engine per request; it holds no state beyond its repository
def engine_dep(
    db = Depends(mongo_db),
    settings: Settings = Depends(get_settings),
) -> RecommendationEngine:
    repo = CatalogRepo(db, max_time_ms=settings.query_max_time_ms)
    return RecommendationEngine.from_settings(repo, settings)
