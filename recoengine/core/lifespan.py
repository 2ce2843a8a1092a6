# recoengine/core/lifespan.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from recoengine.db import mongo
from recoengine.core.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    if settings.MONGO_URI:
        await mongo.connect()
    else:
        logger.warning("no MONGO_URI provided, skipping Mongo connection")

    # Application runs
    yield

    # --- Shutdown ---
    await mongo.disconnect()
    logger.info("mongo disconnected")
