"""
Cross-source join service — ranks candidate join columns between two tables
and learns from joins users have accepted.

Heuristic suggestions come from column-name similarity plus type
compatibility (see core.join_heuristics). Joins saved to the catalog are
surfaced first on later requests for the same pair of tables.
"""
import itertools
import logging
from typing import Optional

from config import settings
from core.join_catalog import JoinCatalog
from core.join_heuristics import describe_match, name_match_confidence, types_compatible
from core.schema_hash import hash_tables
from core.suggestion_cache import JoinSuggestionCache
from models.joins import CachedJoinSuggestion, JoinCatalogEntry, JoinDefinition, JoinSuggestion, SuggestionStats
from models.table import TableDescriptor

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5
CATALOG_CONFIDENCE = 100
CATALOG_LOOKUP_LIMIT = 5


class CrossSourceJoinService:
    """Stateless apart from the stores it is handed."""

    def __init__(self, catalog: JoinCatalog, suggestion_cache: Optional[JoinSuggestionCache] = None):
        self.catalog = catalog
        self.suggestion_cache = suggestion_cache

    def suggest_joins(self, left: TableDescriptor, right: TableDescriptor) -> list[JoinSuggestion]:
        """Top 5 heuristic suggestions, highest confidence first. No I/O."""
        suggestions: list[JoinSuggestion] = []
        for left_col in left.columns:
            for right_col in right.columns:
                if not types_compatible(left_col.data_type, right_col.data_type):
                    continue

                confidence = name_match_confidence(left_col.column_name, right_col.column_name)
                if confidence <= 0:
                    continue

                suggestions.append(JoinSuggestion(
                    left_column_path=left_col.path,
                    right_column_path=right_col.path,
                    left_table=left.table_name,
                    right_table=right.table_name,
                    left_column=left_col.column_name,
                    right_column=right_col.column_name,
                    confidence=confidence,
                    reason=describe_match(
                        left_col.column_name, right_col.column_name,
                        left_col.data_type, right_col.data_type, confidence,
                    ),
                    suggested_join_type="INNER",
                ))

        suggestions.sort(key=lambda s: s.confidence, reverse=True)
        return suggestions[:MAX_SUGGESTIONS]

    def save_join_to_catalog(self, join_def: JoinDefinition) -> None:
        try:
            usage_count = self.catalog.record_join(join_def)
        except Exception:
            logger.exception("Error saving join to catalog")
            raise
        if usage_count == 1:
            logger.info("Saved new join to catalog: %s.%s -> %s.%s",
                        join_def.left_table, join_def.left_column,
                        join_def.right_table, join_def.right_column)
        else:
            logger.info("Incremented usage count for existing join (now %d)", usage_count)

    def get_popular_joins(self, left_data_source_id: int, right_data_source_id: int,
                          limit: Optional[int] = None) -> list[JoinCatalogEntry]:
        """Catalog joins between two sources in either direction; [] if the store fails."""
        try:
            return self.catalog.popular(
                left_data_source_id, right_data_source_id,
                limit if limit is not None else settings.POPULAR_JOINS_LIMIT,
            )
        except Exception:
            logger.exception("Error fetching popular joins")
            return []

    def get_combined_suggestions(self, left: TableDescriptor, right: TableDescriptor) -> list[JoinSuggestion]:
        """Catalog joins for these two tables first, then non-duplicate heuristic suggestions."""
        suggestions: list[JoinSuggestion] = []

        for entry in self.get_popular_joins(left.data_source_id, right.data_source_id, CATALOG_LOOKUP_LIMIT):
            suggestion = _from_catalog(entry, left, right)
            if suggestion is not None:
                suggestions.append(suggestion)

        seen = {(s.left_column, s.right_column) for s in suggestions}
        for heuristic in self.suggest_joins(left, right):
            if (heuristic.left_column, heuristic.right_column) not in seen:
                suggestions.append(heuristic)

        return suggestions

    def get_schema_suggestions(self, data_source_id: int, schema_name: Optional[str],
                               tables: list[TableDescriptor],
                               user_id: Optional[int] = None) -> list[CachedJoinSuggestion]:
        """
        Heuristic suggestions for every table pair of one schema, served from
        the suggestion cache while the schema hash is unchanged.
        """
        if self.suggestion_cache is None:
            raise RuntimeError("No suggestion cache configured")

        schema_hash = hash_tables(tables)
        cached = self.suggestion_cache.get_suggestions(data_source_id, schema_hash, schema_name)
        if cached is not None:
            logger.debug("Suggestion cache hit for data source %s (%s)", data_source_id, schema_hash)
            return cached

        suggestions = [
            CachedJoinSuggestion(
                left_table=s.left_table,
                left_column=s.left_column,
                right_table=s.right_table,
                right_column=s.right_column,
                suggested_join_type=s.suggested_join_type,
                confidence_score=s.confidence,
                reasoning=s.reason,
            )
            for left, right in itertools.combinations(tables, 2)
            for s in self.suggest_joins(left, right)
        ]
        suggestions.sort(key=lambda s: s.confidence_score, reverse=True)
        self.suggestion_cache.save_suggestions(data_source_id, schema_name, schema_hash, suggestions, user_id)
        return suggestions

    def get_catalog_stats(self, data_source_id: int) -> SuggestionStats:
        if self.suggestion_cache is None:
            return SuggestionStats(total=0)
        return self.suggestion_cache.get_stats(data_source_id)


def _from_catalog(entry: JoinCatalogEntry, left: TableDescriptor,
                  right: TableDescriptor) -> Optional[JoinSuggestion]:
    """Orient a catalog entry to the caller's left/right tables, or None if it is for other tables."""
    if entry.left_table == left.table_name and entry.right_table == right.table_name:
        left_column, right_column = entry.left_column, entry.right_column
    elif entry.left_table == right.table_name and entry.right_table == left.table_name:
        left_column, right_column = entry.right_column, entry.left_column
    else:
        return None

    return JoinSuggestion(
        left_column_path=f"{left.schema_name}.{left.table_name}.{left_column}",
        right_column_path=f"{right.schema_name}.{right.table_name}.{right_column}",
        left_table=left.table_name,
        right_table=right.table_name,
        left_column=left_column,
        right_column=right_column,
        confidence=CATALOG_CONFIDENCE,
        reason=f"Previously used join ({entry.usage_count} times)",
        suggested_join_type=entry.join_type,
    )
