"""GET /api/health — system dependency check."""
import logging
from fastapi import APIRouter
from sqlalchemy import text

from core.catalog_db import get_catalog_engine
from integrations.ollama_client import OllamaClient

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check():
    catalog_status = _check_catalog()
    ollama_status = _check_ollama()
    overall = "ok" if catalog_status["status"] == "up" and ollama_status["status"] == "up" else "degraded"
    return {
        "status": overall,
        "services": {
            "catalog": catalog_status,
            "ollama":  ollama_status,
        },
    }


def _check_catalog() -> dict:
    try:
        with get_catalog_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "up", "error": None}
    except Exception as e:
        logger.warning("Catalog database unreachable: %s", e)
        return {"status": "down", "error": str(e)}


def _check_ollama() -> dict:
    with OllamaClient() as ollama:
        healthy, detail = ollama.is_healthy()
    if healthy:
        return {"status": "up", "model": detail}
    return {"status": "down", "error": detail}
