"""Pydantic schemas for cleaning-SQL validation and execution results."""
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field, computed_field


class ValidationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    allowed_operations: list[str] = Field(default_factory=list, alias="allowedOperations")
    blocked_operations: list[str] = Field(default_factory=list, alias="blockedOperations")

    @computed_field
    @property
    def safe(self) -> bool:
        return len(self.issues) == 0


class ColumnReferenceResult(BaseModel):
    valid: bool
    missing_columns: list[str] = []


class RowChanges(BaseModel):
    before: list[dict[str, Any]] = []
    after: list[dict[str, Any]] = []


class ExecutionResult(BaseModel):
    success: bool
    rows_affected: int = 0
    execution_time_ms: int = 0
    dry_run: bool = False
    changes: Optional[RowChanges] = None
    error: Optional[str] = None
    rollback_available: bool = False


class CleaningDraft(BaseModel):
    sql: str
    validation: ValidationResult
