"""
Splice — cross-source join suggestions and cleaning-SQL guard.
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import health, sources, joins, sql
from config import settings
from core.catalog_db import get_catalog_engine, init_catalog

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("splice")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Splice starting up…")
    init_catalog(get_catalog_engine())
    yield
    get_catalog_engine().dispose()
    logger.info("Splice shutting down.")


# ── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="Splice — Cross-Source Join Suggestions",
    description="Join suggestions across data sources and safety screening for AI-generated cleaning SQL.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ──────────────────────────────────────────────────────────────────────
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(health.router,  prefix="/api")
app.include_router(sources.router, prefix="/api")
app.include_router(joins.router,   prefix="/api")
app.include_router(sql.router,     prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
