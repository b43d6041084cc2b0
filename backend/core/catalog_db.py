"""
Catalog store — SQLAlchemy table definitions and engine factory for the
join catalog and the join suggestion cache.
"""
import logging
from functools import lru_cache

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Index, Integer, MetaData, String, Table,
    UniqueConstraint, create_engine,
)
from sqlalchemy.engine import Engine

from config import settings

logger = logging.getLogger(__name__)

metadata = MetaData()

CATALOG_KEY_COLUMNS = (
    "left_data_source_id", "left_table", "left_column",
    "right_data_source_id", "right_table", "right_column",
)

join_catalog = Table(
    "join_catalog",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("left_data_source_id", Integer, nullable=False),
    Column("left_table", String(255), nullable=False),
    Column("left_column", String(255), nullable=False),
    Column("right_data_source_id", Integer, nullable=False),
    Column("right_table", String(255), nullable=False),
    Column("right_column", String(255), nullable=False),
    Column("join_type", String(20), nullable=False, default="INNER"),
    Column("usage_count", Integer, nullable=False, default=1),
    Column("created_by_user_id", Integer, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint(*CATALOG_KEY_COLUMNS, name="uq_join_catalog_pair"),
    Index("ix_join_catalog_left_source_table", "left_data_source_id", "left_table"),
    Index("ix_join_catalog_right_source_table", "right_data_source_id", "right_table"),
    Index("ix_join_catalog_usage_count", "usage_count"),
)

join_suggestion_cache = Table(
    "join_suggestion_cache",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("data_source_id", Integer, nullable=False),
    Column("schema_name", String(255), nullable=True),
    Column("schema_hash", String(64), nullable=False),
    Column("left_table", String(255), nullable=False),
    Column("left_column", String(255), nullable=False),
    Column("right_table", String(255), nullable=False),
    Column("right_column", String(255), nullable=False),
    Column("suggested_join_type", String(20), nullable=False, default="INNER"),
    Column("confidence_score", Integer, nullable=False),
    Column("reasoning", String, nullable=True),
    Column("is_junction_table", Boolean, nullable=False, default=False),
    Column("metadata", JSON, nullable=True),
    Column("created_by_user_id", Integer, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_join_suggestion_cache_source_schema", "data_source_id", "schema_name"),
    Index("ix_join_suggestion_cache_hash", "schema_hash"),
)

# Last computed hash per (data source, schema), kept even when no suggestions were found
join_suggestion_snapshot = Table(
    "join_suggestion_snapshot",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("data_source_id", Integer, nullable=False),
    Column("schema_name", String(255), nullable=True),
    Column("schema_hash", String(64), nullable=False),
    Column("suggestion_count", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_join_suggestion_snapshot_source_schema", "data_source_id", "schema_name"),
)


def create_catalog_engine(url: str) -> Engine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def init_catalog(engine: Engine) -> None:
    """Create catalog tables if they do not exist."""
    metadata.create_all(engine)
    logger.info("Catalog tables ready on %s", engine.url.render_as_string(hide_password=True))


@lru_cache(maxsize=1)
def get_catalog_engine() -> Engine:
    """Process-wide engine for the configured catalog database."""
    return create_catalog_engine(settings.CATALOG_DATABASE_URL)
