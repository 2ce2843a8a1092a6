from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from recoengine.core.config import get_settings
from recoengine.core.errors import RecoEngineError
from recoengine.core.lifespan import lifespan
from recoengine.api.v1.routers.health import router as health_router
from recoengine.api.v1.routers.recommendations import router as recommendations_router
from recoengine.core.logging import configure_logging

from fastapi.middleware.cors import CORSMiddleware
import logging

settings = get_settings()
configure_logging(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ------- CORS -------
# ALLOWED_ORIGINS is a CSV, e.g. "https://shop.example.com,https://admin.example.com"
allowed_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],                # read-only API
        allow_headers=["*"],
        max_age=86400,
    )


# ------- Errors -------
@app.exception_handler(RecoEngineError)
async def reco_engine_error_handler(request: Request, exc: RecoEngineError):
    # 404 for a missing anchor, 503 when the catalog store is unavailable
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(level, "%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "details": exc.details},
    )


# ------- Routes -------
app.include_router(health_router)
app.include_router(recommendations_router, prefix=settings.api_prefix)
