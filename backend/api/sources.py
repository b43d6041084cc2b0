"""POST/GET/DELETE /api/sources — data source registry."""
import itertools
import logging
from fastapi import APIRouter, HTTPException

from core.db_connector import create_engine_from_request, get_default_schema, list_tables
from models.connection import ConnectionRequest, ConnectionResponse, ConnectionListItem

router = APIRouter()
logger = logging.getLogger(__name__)

# In-memory registry: data_source_id → ConnectionRequest
_source_registry: dict[int, ConnectionRequest] = {}
_ids = itertools.count(1)


def get_source(data_source_id: int) -> ConnectionRequest:
    if data_source_id not in _source_registry:
        raise HTTPException(404, detail=f"Data source {data_source_id} not found. Please register it first.")
    return _source_registry[data_source_id]


def source_engine(data_source_id: int):
    """Engine plus default schema for a registered source; caller disposes the engine."""
    req = get_source(data_source_id)
    try:
        engine = create_engine_from_request(req)
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    return engine, get_default_schema(req.db_type)


@router.post("/sources", response_model=ConnectionResponse, status_code=201)
def register_source(req: ConnectionRequest):
    try:
        tables = list_tables(req)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Data source registration failed")
        raise HTTPException(status_code=500, detail=f"Registration error: {e}")

    data_source_id = next(_ids)
    _source_registry[data_source_id] = req
    logger.info("Registered data source %d (%s, %d tables)", data_source_id, req.name, len(tables))
    return ConnectionResponse(
        data_source_id=data_source_id,
        name=req.name,
        db_type=req.db_type,
        tables=tables,
    )


@router.get("/sources", response_model=list[ConnectionListItem])
def get_sources():
    return [
        ConnectionListItem(
            data_source_id=ds_id,
            name=req.name,
            db_type=req.db_type,
            host=req.host,
            database=req.database,
            file_path=req.file_path,
        )
        for ds_id, req in _source_registry.items()
    ]


@router.delete("/sources/{data_source_id}")
def delete_source(data_source_id: int):
    get_source(data_source_id)
    del _source_registry[data_source_id]
    return {"message": f"Data source {data_source_id} removed successfully."}
