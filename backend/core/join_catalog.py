"""
Join catalog — persisted record of accepted joins between two data sources.
One row per directional column pair; usage_count only ever increments.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, insert, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from core.catalog_db import CATALOG_KEY_COLUMNS, join_catalog
from models.joins import JoinCatalogEntry, JoinDefinition

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {"sqlite": sqlite_insert, "postgresql": pg_insert}


def _key(join_def: JoinDefinition) -> dict:
    return {col: getattr(join_def, col) for col in CATALOG_KEY_COLUMNS}


def _key_clause(key: dict):
    return and_(*(join_catalog.c[col] == value for col, value in key.items()))


class JoinCatalog:
    """Read/write access to the join_catalog table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def record_join(self, join_def: JoinDefinition) -> int:
        """
        Insert the join with usage_count=1, or bump usage_count of the existing
        row for the same directional tuple. Returns the resulting usage_count.
        """
        key = _key(join_def)
        row = {
            **key,
            "join_type": join_def.join_type,
            "usage_count": 1,
            "created_by_user_id": join_def.created_by_user_id,
            "created_at": datetime.now(timezone.utc),
        }
        with self.engine.begin() as conn:
            dialect_insert = _UPSERT_DIALECTS.get(conn.dialect.name)
            if dialect_insert is not None:
                stmt = dialect_insert(join_catalog).values(**row)
                stmt = stmt.on_conflict_do_update(
                    index_elements=list(CATALOG_KEY_COLUMNS),
                    set_={"usage_count": join_catalog.c.usage_count + 1},
                )
                conn.execute(stmt)
            else:
                self._update_or_insert(conn, key, row)

            return conn.execute(
                select(join_catalog.c.usage_count).where(_key_clause(key))
            ).scalar_one()

    @staticmethod
    def _update_or_insert(conn: Connection, key: dict, row: dict) -> None:
        bump = (
            update(join_catalog)
            .where(_key_clause(key))
            .values(usage_count=join_catalog.c.usage_count + 1)
        )
        if conn.execute(bump).rowcount:
            return
        try:
            with conn.begin_nested():
                conn.execute(insert(join_catalog).values(**row))
        except IntegrityError:
            # A concurrent writer inserted the row first.
            conn.execute(bump)

    def find(self, join_def: JoinDefinition) -> Optional[JoinCatalogEntry]:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(join_catalog).where(_key_clause(_key(join_def)))
            ).mappings().first()
        return JoinCatalogEntry.model_validate(dict(row)) if row else None

    def popular(self, left_data_source_id: int, right_data_source_id: int,
                limit: int = 10) -> list[JoinCatalogEntry]:
        """Joins between the two sources recorded in either direction, most used first."""
        c = join_catalog.c
        stmt = (
            select(join_catalog)
            .where(or_(
                and_(c.left_data_source_id == left_data_source_id,
                     c.right_data_source_id == right_data_source_id),
                and_(c.left_data_source_id == right_data_source_id,
                     c.right_data_source_id == left_data_source_id),
            ))
            .order_by(c.usage_count.desc(), c.created_at.desc(), c.id.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [JoinCatalogEntry.model_validate(dict(r)) for r in rows]
