import logging

import psycopg2
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from movierec.core import config
from movierec.core.errors import ArtifactUnavailable, register_exception_handlers
from movierec.database import run_migrations
from movierec.routers.auth import router as auth_router
from movierec.routers.movies import router as movies_router
from movierec.routers.reviews import router as reviews_router
from movierec.routers.watchlist import router as watchlist_router
from movierec.services.similarity_service import get_similarity_service

logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(name)s – %(message)s")

app = FastAPI(title="Movierec API", version="0.1.0", docs_url="/api/docs")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(movies_router, prefix="/api")
app.include_router(auth_router, prefix="/api")
app.include_router(watchlist_router, prefix="/api")
app.include_router(reviews_router, prefix="/api")


@app.on_event("startup")
async def _warm_up() -> None:
    """Apply migrations and load the similarity artifact before the first request."""
    logger = logging.getLogger("startup")

    if config.RUN_MIGRATIONS:
        logger.info("Running database migrations...")
        try:
            run_migrations()
            logger.info("Migrations done.")
        except (psycopg2.Error, OSError) as exc:
            # Search and recommend never touch the document store
            logger.error("Migrations failed, document store endpoints will return 503: %s", exc)
    else:
        logger.info("RUN_MIGRATIONS disabled — skipping migrations")

    logger.info("Warming up SimilarityService …")
    sim = get_similarity_service()
    try:
        sim._ensure_loaded()
    except ArtifactUnavailable:
        # Lookups keep failing with 500 until the process restarts with a valid artifact
        logger.error("SimilarityService unavailable — lookups will fail")
    logger.info(f"SimilarityService ready — available={sim.available}")


@app.get("/api/health")
def health():
    return {"status": "ok", "model_loaded": get_similarity_service().available}
