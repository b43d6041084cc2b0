"""Schema fingerprints used to detect stale cached join suggestions."""
import hashlib
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from models.table import TableDescriptor


def _digest(entries: list[str]) -> str:
    return hashlib.md5("|".join(entries).encode("utf-8")).hexdigest()


def hash_tables(tables: list[TableDescriptor]) -> str:
    """Hash in-memory table descriptors; order-insensitive for tables and columns."""
    entries = []
    for table in sorted(tables, key=lambda t: t.table_name):
        for col in sorted(table.columns, key=lambda c: c.column_name):
            entries.append(f"{table.table_name}:{col.column_name}:{col.data_type}")
    return _digest(entries)


def generate_schema_hash(engine: Engine, schema: Optional[str] = None) -> str:
    """Hash the live schema: tables by name, columns in ordinal order."""
    insp = inspect(engine)
    entries = []
    for table_name in sorted(insp.get_table_names(schema=schema)):
        for col in insp.get_columns(table_name, schema=schema):
            entries.append(f"{table_name}:{col['name']}:{str(col['type']).upper()}")
    return _digest(entries)


def has_schema_changed(engine: Engine, current_hash: str, schema: Optional[str] = None) -> bool:
    return generate_schema_hash(engine, schema) != current_hash
