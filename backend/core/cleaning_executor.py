"""
Cleaning executor — runs validated cleaning SQL inside a transaction.

Unsafe SQL (per core.sql_validator) is refused before a connection is opened.
Dry runs execute under a savepoint, sample the target table before and after,
then roll everything back.
"""
import logging
import re
import time
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from config import settings
from core.sql_validator import split_statements, validate_cleaning_sql
from models.validation import ExecutionResult, RowChanges

logger = logging.getLogger(__name__)

_TARGET_TABLE = re.compile(r'\b(?:FROM|UPDATE|INTO)\s+"?(\w+)"?', re.IGNORECASE)
_TRANSACTION_CONTROL = re.compile(
    r"^(BEGIN|BEGIN\s+TRANSACTION|START\s+TRANSACTION|COMMIT|END|ROLLBACK)$", re.IGNORECASE
)
_LINE_COMMENT = re.compile(r"--[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")

_UPDATE_WHERE = re.compile(r'UPDATE\s+"?(\w+)"?\s+SET.*?(WHERE.*?)(;|$)', re.IGNORECASE | re.DOTALL)
_DELETE_WHERE = re.compile(r'DELETE\s+FROM\s+"?(\w+)"?(.*?WHERE.*?)(;|$)', re.IGNORECASE | re.DOTALL)


def _elapsed_ms(t0: float) -> int:
    return int((time.time() - t0) * 1000)


def _qualify(table: str, schema: Optional[str]) -> str:
    return f'"{schema}"."{table}"' if schema else f'"{table}"'


def _script_statements(sql: str) -> list[str]:
    """Executable statements, without comments or BEGIN/COMMIT (the executor owns the transaction)."""
    cleaned = _BLOCK_COMMENT.sub("", _LINE_COMMENT.sub("", sql))
    return [s for s in split_statements(cleaned) if not _TRANSACTION_CONTROL.match(s)]


def ensure_transaction(sql: str) -> str:
    """Wrap in BEGIN/COMMIT unless the script already opens a transaction."""
    head = sql.strip().upper()
    if head.startswith("BEGIN") or head.startswith("START TRANSACTION"):
        return sql
    body = sql.strip().rstrip(";")
    return f"BEGIN;\n\n{body};\n\nCOMMIT;"


def _sample_rows(conn: Connection, sql: str, schema: Optional[str]) -> list[dict[str, Any]]:
    match = _TARGET_TABLE.search(sql)
    if not match:
        return []
    try:
        # Own savepoint so a failed sample does not abort the cleaning transaction
        with conn.begin_nested():
            rows = conn.execute(text(
                f"SELECT * FROM {_qualify(match.group(1), schema)} LIMIT {int(settings.EXECUTOR_SAMPLE_ROWS)}"
            ))
            return [dict(r._mapping) for r in rows]
    except Exception as e:
        logger.warning("Could not sample rows from %s: %s", match.group(1), e)
        return []


def _run_statements(conn: Connection, statements: list[str]) -> int:
    rows_affected = 0
    for stmt in statements:
        result = conn.execute(text(stmt))
        if result.returns_rows:
            rows_affected += len(result.fetchall())
        elif result.rowcount and result.rowcount > 0:
            rows_affected += result.rowcount
    return rows_affected


def execute_cleaning_sql(engine: Engine, sql: str, schema: Optional[str] = None,
                         dry_run: bool = False) -> ExecutionResult:
    """Validate, then execute (or dry-run) cleaning SQL. Failures come back as data."""
    t0 = time.time()
    logger.info("%s cleaning SQL", "Dry-running" if dry_run else "Executing")

    validation = validate_cleaning_sql(sql)
    if not validation.safe:
        return ExecutionResult(
            success=False,
            dry_run=dry_run,
            execution_time_ms=_elapsed_ms(t0),
            error=f"SQL validation failed: {'; '.join(validation.issues)}",
        )

    statements = _script_statements(sql)
    try:
        with engine.connect() as conn:
            trans = conn.begin()
            try:
                savepoint = conn.begin_nested()   # before_cleaning
                changes: Optional[RowChanges] = None
                if dry_run:
                    changes = RowChanges(before=_sample_rows(conn, sql, schema))

                rows_affected = _run_statements(conn, statements)

                if dry_run:
                    changes.after = _sample_rows(conn, sql, schema)
                    savepoint.rollback()
                    trans.rollback()
                    logger.info("Dry-run completed, changes rolled back (%d rows)", rows_affected)
                else:
                    savepoint.commit()
                    trans.commit()
                    logger.info("Cleaning SQL committed. Rows affected: %d", rows_affected)

                return ExecutionResult(
                    success=True,
                    rows_affected=rows_affected,
                    execution_time_ms=_elapsed_ms(t0),
                    dry_run=dry_run,
                    changes=changes,
                    rollback_available=not dry_run,
                )
            except Exception as e:
                logger.exception("Error executing cleaning SQL")
                trans.rollback()
                return ExecutionResult(
                    success=False,
                    execution_time_ms=_elapsed_ms(t0),
                    dry_run=dry_run,
                    error=f"Execution failed: {e}",
                )
    except Exception as e:
        logger.exception("Transaction setup error")
        return ExecutionResult(
            success=False,
            execution_time_ms=_elapsed_ms(t0),
            dry_run=dry_run,
            error=f"Transaction setup failed: {e}",
        )


def estimate_rows_affected(engine: Engine, sql: str, schema: Optional[str] = None) -> int:
    """
    Rows a guarded UPDATE/DELETE would touch, via SELECT COUNT(*) with the same
    WHERE clause. Returns 0 when the statement cannot be rewritten or the count fails.
    """
    match = _DELETE_WHERE.search(sql) or _UPDATE_WHERE.search(sql)
    if not match:
        return 0
    table, where_clause = match.group(1), match.group(2).strip()
    count_sql = f"SELECT COUNT(*) FROM {_qualify(table, schema)} {where_clause}"
    try:
        with engine.connect() as conn:
            return int(conn.execute(text(count_sql)).scalar() or 0)
    except Exception as e:
        logger.error("Error estimating rows affected: %s", e)
        return 0
