"""Join suggestion and join catalog endpoints."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from api.sources import get_source, source_engine
from core.catalog_db import get_catalog_engine
from core.db_connector import describe_schema, reflect_table
from core.join_catalog import JoinCatalog
from core.join_service import CrossSourceJoinService
from core.suggestion_cache import JoinSuggestionCache
from models.joins import CachedJoinSuggestion, JoinCatalogEntry, JoinDefinition, JoinSuggestion, SuggestionStats
from models.table import TableDescriptor

router = APIRouter()
logger = logging.getLogger(__name__)


def get_join_service() -> CrossSourceJoinService:
    engine = get_catalog_engine()
    return CrossSourceJoinService(JoinCatalog(engine), JoinSuggestionCache(engine))


class TableRef(BaseModel):
    data_source_id: int
    table_name: str
    schema_name: Optional[str] = None


class SuggestRequest(BaseModel):
    left: TableDescriptor
    right: TableDescriptor
    include_catalog: bool = True


class ReflectSuggestRequest(BaseModel):
    left: TableRef
    right: TableRef
    include_catalog: bool = True


def _reflect(ref: TableRef) -> TableDescriptor:
    conn_req = get_source(ref.data_source_id)
    try:
        return reflect_table(conn_req, ref.data_source_id, ref.table_name, ref.schema_name)
    except ValueError as e:
        raise HTTPException(404, detail=str(e))


def _suggest(service: CrossSourceJoinService, left: TableDescriptor, right: TableDescriptor,
             include_catalog: bool) -> list[JoinSuggestion]:
    if include_catalog:
        return service.get_combined_suggestions(left, right)
    return service.suggest_joins(left, right)


@router.post("/joins/suggest", response_model=list[JoinSuggestion])
def suggest(req: SuggestRequest, service: CrossSourceJoinService = Depends(get_join_service)):
    return _suggest(service, req.left, req.right, req.include_catalog)


@router.post("/joins/suggest/reflect", response_model=list[JoinSuggestion])
def suggest_reflected(req: ReflectSuggestRequest,
                      service: CrossSourceJoinService = Depends(get_join_service)):
    """Same as /joins/suggest, with both tables introspected from registered sources."""
    return _suggest(service, _reflect(req.left), _reflect(req.right), req.include_catalog)


@router.post("/joins/catalog", status_code=201)
def save_join(join_def: JoinDefinition, service: CrossSourceJoinService = Depends(get_join_service)):
    try:
        service.save_join_to_catalog(join_def)
    except Exception as e:
        raise HTTPException(500, detail=f"Could not save join: {e}")
    return {"message": "Join saved to catalog."}


@router.get("/joins/catalog/popular", response_model=list[JoinCatalogEntry])
def popular_joins(left_data_source_id: int, right_data_source_id: int, limit: Optional[int] = None,
                  service: CrossSourceJoinService = Depends(get_join_service)):
    return service.get_popular_joins(left_data_source_id, right_data_source_id, limit)


@router.post("/joins/schema/{data_source_id}", response_model=list[CachedJoinSuggestion])
def schema_suggestions(data_source_id: int, user_id: Optional[int] = None,
                       service: CrossSourceJoinService = Depends(get_join_service)):
    """Suggestions across every table pair of a source, cached per schema hash."""
    engine, schema = source_engine(data_source_id)
    try:
        tables = describe_schema(engine, data_source_id, schema)
    finally:
        engine.dispose()
    return service.get_schema_suggestions(data_source_id, schema, tables, user_id)


@router.delete("/joins/schema/{data_source_id}")
def invalidate_schema_suggestions(data_source_id: int,
                                  service: CrossSourceJoinService = Depends(get_join_service)):
    removed = service.suggestion_cache.invalidate_data_source(data_source_id)
    return {"message": f"Removed {removed} cached suggestions."}


@router.get("/joins/stats/{data_source_id}", response_model=SuggestionStats)
def join_stats(data_source_id: int, service: CrossSourceJoinService = Depends(get_join_service)):
    return service.get_catalog_stats(data_source_id)
