"""Pydantic schemas for join suggestions, the join catalog and the suggestion cache."""
from datetime import datetime
from typing import Optional, Literal, Any
from pydantic import BaseModel, ConfigDict, Field

JoinType = Literal["INNER", "LEFT", "RIGHT", "FULL"]


class JoinSuggestion(BaseModel):
    left_column_path: str            # "schema.table.column"
    right_column_path: str
    left_table: str
    right_table: str
    left_column: str
    right_column: str
    confidence: int = Field(..., ge=0, le=100)
    reason: str
    suggested_join_type: str = "INNER"


class JoinDefinition(BaseModel):
    left_data_source_id: int
    left_table: str
    left_column: str
    right_data_source_id: int
    right_table: str
    right_column: str
    join_type: JoinType = "INNER"
    created_by_user_id: Optional[int] = None


class JoinCatalogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    left_data_source_id: int
    left_table: str
    left_column: str
    right_data_source_id: int
    right_table: str
    right_column: str
    join_type: str
    usage_count: int
    created_by_user_id: Optional[int] = None
    created_at: datetime


class CachedJoinSuggestion(BaseModel):
    """A join suggestion as stored in the per-schema suggestion cache."""
    model_config = ConfigDict(from_attributes=True)

    left_table: str
    left_column: str
    right_table: str
    right_column: str
    suggested_join_type: str = "INNER"
    confidence_score: int = Field(..., ge=0, le=100)
    reasoning: Optional[str] = None
    is_junction_table: bool = False
    metadata: Optional[dict[str, Any]] = None


class SchemaCount(BaseModel):
    schema_name: Optional[str] = None
    schema_hash: str
    count: int


class ConfidenceBandCount(BaseModel):
    range: str
    count: int


class SuggestionStats(BaseModel):
    total: int
    by_schema: list[SchemaCount] = []
    by_confidence: list[ConfidenceBandCount] = []
