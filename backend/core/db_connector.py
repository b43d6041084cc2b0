"""
Database connector — SQLAlchemy engine factory and table introspection.
Supports SQLite and PostgreSQL. Builds TableDescriptors (column names and
raw SQL type strings) for the join engine.
"""
import logging
from typing import Optional
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from models.connection import ConnectionRequest
from models.table import TableDescriptor, ColumnDescriptor

logger = logging.getLogger(__name__)


def create_engine_from_request(req: ConnectionRequest) -> Engine:
    """Build and test a SQLAlchemy engine from a ConnectionRequest."""
    engine = create_engine(req.get_sqlalchemy_url(), pool_pre_ping=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except OperationalError as e:
        engine.dispose()
        raise ValueError(f"Could not connect to database: {e}") from e
    return engine


def get_default_schema(db_type: str) -> Optional[str]:
    if db_type == "postgresql":
        return "public"
    return None   # SQLite has no schema concept


def list_tables(req: ConnectionRequest, schema: Optional[str] = None) -> list[str]:
    engine = create_engine_from_request(req)
    try:
        return inspect(engine).get_table_names(schema=schema or get_default_schema(req.db_type))
    finally:
        engine.dispose()


def describe_table(engine: Engine, table_name: str, data_source_id: int,
                   schema: Optional[str] = None) -> TableDescriptor:
    """
    Reflect one table into a TableDescriptor.
    Raises ValueError if the table does not exist or has no columns.
    """
    insp = inspect(engine)
    if not insp.has_table(table_name, schema=schema):
        raise ValueError(f"Table '{table_name}' not found")

    schema_label = schema or "main"
    columns = [
        ColumnDescriptor(
            schema_name=schema_label,
            table_name=table_name,
            column_name=col["name"],
            data_type=_simplify_type(col["type"]),
        )
        for col in insp.get_columns(table_name, schema=schema)
    ]
    if not columns:
        raise ValueError(f"Table '{table_name}' has no columns")

    logger.debug("Described %s.%s (%d columns)", schema_label, table_name, len(columns))
    return TableDescriptor(
        schema_name=schema_label,
        table_name=table_name,
        columns=columns,
        data_source_id=data_source_id,
    )


def describe_schema(engine: Engine, data_source_id: int,
                    schema: Optional[str] = None) -> list[TableDescriptor]:
    """Descriptors for every table in the schema that has at least one column."""
    tables = []
    for table_name in inspect(engine).get_table_names(schema=schema):
        try:
            tables.append(describe_table(engine, table_name, data_source_id, schema))
        except ValueError as e:
            logger.warning("Skipping %s: %s", table_name, e)
    logger.info("Described %d tables for data source %s", len(tables), data_source_id)
    return tables


def reflect_table(req: ConnectionRequest, data_source_id: int, table_name: str,
                  schema: Optional[str] = None) -> TableDescriptor:
    engine = create_engine_from_request(req)
    try:
        return describe_table(engine, table_name, data_source_id,
                              schema or get_default_schema(req.db_type))
    finally:
        engine.dispose()


def _simplify_type(sa_type) -> str:
    data_type = str(sa_type).upper()
    # Drop length/precision: VARCHAR(255) -> VARCHAR
    if "(" in data_type:
        data_type = data_type.split("(")[0]
    return data_type
