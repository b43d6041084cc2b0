"""Cleaning SQL endpoints — validate, estimate, execute and LLM drafts."""
import logging
from typing import Optional
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from api.sources import get_source, source_engine
from core.cleaning_executor import ensure_transaction, estimate_rows_affected, execute_cleaning_sql
from core.cleaning_sql_generator import draft_cleaning_sql
from core.db_connector import reflect_table
from core.sql_validator import validate_cleaning_sql, validate_column_references, validate_table_reference
from integrations.ollama_client import OllamaClient
from models.validation import CleaningDraft, ColumnReferenceResult, ExecutionResult, ValidationResult

router = APIRouter()
logger = logging.getLogger(__name__)


class ValidateRequest(BaseModel):
    sql: str


class SourceSQLRequest(BaseModel):
    data_source_id: int
    sql: str


class ExecuteRequest(SourceSQLRequest):
    dry_run: bool = True
    wrap_in_transaction: bool = False


class DraftRequest(BaseModel):
    data_source_id: int
    table_name: str
    instruction: str
    schema_name: Optional[str] = None


class ReferenceRequest(BaseModel):
    data_source_id: int
    schema_name: str = "public"
    table_name: str
    columns: list[str] = []


class ReferenceResponse(BaseModel):
    table_exists: bool
    columns: ColumnReferenceResult


@router.post("/sql/validate", response_model=ValidationResult)
def validate(req: ValidateRequest):
    return validate_cleaning_sql(req.sql)


@router.post("/sql/estimate")
def estimate(req: SourceSQLRequest):
    engine, schema = source_engine(req.data_source_id)
    try:
        return {"estimated_rows": estimate_rows_affected(engine, req.sql, schema)}
    finally:
        engine.dispose()


@router.post("/sql/execute", response_model=ExecutionResult)
def execute(req: ExecuteRequest):
    """Runs cleaning SQL against a registered source; dry_run defaults to True."""
    engine, schema = source_engine(req.data_source_id)
    try:
        sql = ensure_transaction(req.sql) if req.wrap_in_transaction else req.sql
        return execute_cleaning_sql(engine, sql, schema, dry_run=req.dry_run)
    finally:
        engine.dispose()


@router.post("/sql/references", response_model=ReferenceResponse)
def check_references(req: ReferenceRequest):
    engine, _ = source_engine(req.data_source_id)
    try:
        with engine.connect() as conn:
            table_exists = validate_table_reference(req.schema_name, req.table_name, conn)
            columns = validate_column_references(req.schema_name, req.table_name, req.columns, conn)
    finally:
        engine.dispose()
    return ReferenceResponse(table_exists=table_exists, columns=columns)


@router.post("/sql/draft", response_model=CleaningDraft)
def draft(req: DraftRequest):
    conn_req = get_source(req.data_source_id)
    try:
        table = reflect_table(conn_req, req.data_source_id, req.table_name, req.schema_name)
    except ValueError as e:
        raise HTTPException(404, detail=str(e))

    try:
        with OllamaClient() as ollama:
            return draft_cleaning_sql(table, req.instruction, ollama)
    except RuntimeError as e:
        logger.warning("Cleaning SQL draft failed: %s", e)
        raise HTTPException(502, detail=f"LLM error: {e}")
