"""
Join suggestion cache — persists suggestions per (data source, schema) and
tags them with a schema hash so stale entries are ignored after a schema change.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, insert, or_, select
from sqlalchemy.engine import Engine

from core.catalog_db import join_suggestion_cache, join_suggestion_snapshot
from models.joins import CachedJoinSuggestion, ConfidenceBandCount, SchemaCount, SuggestionStats

logger = logging.getLogger(__name__)

CONFIDENCE_BANDS = ["high (90-100)", "medium (70-89)", "low (0-69)"]

c = join_suggestion_cache.c
snap = join_suggestion_snapshot.c


def confidence_band(score: int) -> str:
    if score >= 90:
        return CONFIDENCE_BANDS[0]
    if score >= 70:
        return CONFIDENCE_BANDS[1]
    return CONFIDENCE_BANDS[2]


def _schema_clause(schema_name: Optional[str], column=c.schema_name):
    return column.is_(None) if schema_name is None else column == schema_name


def _to_model(row) -> CachedJoinSuggestion:
    return CachedJoinSuggestion.model_validate(dict(row))


class JoinSuggestionCache:
    def __init__(self, engine: Engine):
        self.engine = engine

    def save_suggestions(
        self,
        data_source_id: int,
        schema_name: Optional[str],
        schema_hash: str,
        suggestions: list[CachedJoinSuggestion],
        user_id: Optional[int] = None,
    ) -> None:
        """Replace every cached suggestion for (data_source_id, schema_name)."""
        now = datetime.now(timezone.utc)
        rows = [
            {
                "data_source_id": data_source_id,
                "schema_name": schema_name,
                "schema_hash": schema_hash,
                "created_by_user_id": user_id,
                "created_at": now,
                **s.model_dump(),
            }
            for s in suggestions
        ]
        with self.engine.begin() as conn:
            conn.execute(
                delete(join_suggestion_cache)
                .where(c.data_source_id == data_source_id, _schema_clause(schema_name))
            )
            if rows:
                conn.execute(insert(join_suggestion_cache), rows)
            conn.execute(
                delete(join_suggestion_snapshot)
                .where(snap.data_source_id == data_source_id, _schema_clause(schema_name, snap.schema_name))
            )
            conn.execute(insert(join_suggestion_snapshot).values(
                data_source_id=data_source_id,
                schema_name=schema_name,
                schema_hash=schema_hash,
                suggestion_count=len(rows),
                created_at=now,
            ))
        logger.info("Cached %d join suggestions for data source %s (schema=%s)",
                    len(rows), data_source_id, schema_name)

    def get_suggestions(
        self,
        data_source_id: int,
        schema_hash: str,
        schema_name: Optional[str] = None,
    ) -> Optional[list[CachedJoinSuggestion]]:
        """
        Cached suggestions for the schema hash, or None when stale or absent.
        A current hash whose computation found nothing returns [].
        """
        stmt = (
            select(join_suggestion_cache)
            .where(
                c.data_source_id == data_source_id,
                c.schema_hash == schema_hash,
                _schema_clause(schema_name),
            )
            .order_by(c.confidence_score.desc(), c.left_table.asc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
            if rows:
                return [_to_model(r) for r in rows]
            current = conn.execute(
                select(func.count())
                .select_from(join_suggestion_snapshot)
                .where(
                    snap.data_source_id == data_source_id,
                    snap.schema_hash == schema_hash,
                    _schema_clause(schema_name, snap.schema_name),
                )
            ).scalar_one()
        return [] if current else None

    def get_suggestions_for_tables(
        self,
        data_source_id: int,
        schema_hash: str,
        tables: list[str],
        schema_name: Optional[str] = None,
    ) -> Optional[list[CachedJoinSuggestion]]:
        if not tables:
            return self.get_suggestions(data_source_id, schema_hash, schema_name)

        stmt = (
            select(join_suggestion_cache)
            .where(
                c.data_source_id == data_source_id,
                c.schema_hash == schema_hash,
                or_(c.left_table.in_(tables), c.right_table.in_(tables)),
                or_(_schema_clause(schema_name), c.schema_name.is_(None)),
            )
            .order_by(c.confidence_score.desc(), c.left_table.asc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_to_model(r) for r in rows] or None

    def has_suggestions(self, data_source_id: int, schema_hash: str,
                        schema_name: Optional[str] = None) -> bool:
        stmt = (
            select(func.count())
            .select_from(join_suggestion_cache)
            .where(
                c.data_source_id == data_source_id,
                c.schema_hash == schema_hash,
                _schema_clause(schema_name),
            )
        )
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar_one() > 0

    def invalidate_data_source(self, data_source_id: int) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(join_suggestion_cache).where(c.data_source_id == data_source_id)
            )
            conn.execute(delete(join_suggestion_snapshot).where(snap.data_source_id == data_source_id))
        return result.rowcount

    def invalidate_schema(self, data_source_id: int, schema_name: Optional[str] = None) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(join_suggestion_cache)
                .where(c.data_source_id == data_source_id, _schema_clause(schema_name))
            )
            conn.execute(
                delete(join_suggestion_snapshot)
                .where(snap.data_source_id == data_source_id, _schema_clause(schema_name, snap.schema_name))
            )
        return result.rowcount

    def get_stats(self, data_source_id: int) -> SuggestionStats:
        """Totals grouped by schema and by confidence band."""
        with self.engine.connect() as conn:
            by_schema = conn.execute(
                select(c.schema_name, c.schema_hash, func.count().label("count"))
                .where(c.data_source_id == data_source_id)
                .group_by(c.schema_name, c.schema_hash)
                .order_by(c.schema_name, c.schema_hash)
            ).mappings().all()

            by_score = conn.execute(
                select(c.confidence_score, func.count().label("count"))
                .where(c.data_source_id == data_source_id)
                .group_by(c.confidence_score)
            ).all()

        band_counts: dict[str, int] = {}
        for score, count in by_score:
            name = confidence_band(score)
            band_counts[name] = band_counts.get(name, 0) + count

        return SuggestionStats(
            total=sum(band_counts.values()),
            by_schema=[SchemaCount(**dict(r)) for r in by_schema],
            by_confidence=[
                ConfidenceBandCount(range=name, count=band_counts[name])
                for name in CONFIDENCE_BANDS if name in band_counts
            ],
        )
