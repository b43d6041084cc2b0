"""Pydantic schemas for table and column descriptors used by join matching."""
from pydantic import BaseModel, ConfigDict, Field


class ColumnDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_name: str = Field("", alias="schema")
    table_name: str
    column_name: str
    data_type: str

    @property
    def path(self) -> str:
        """Dotted `schema.table.column` path."""
        return f"{self.schema_name}.{self.table_name}.{self.column_name}"


class TableDescriptor(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schema_name: str = Field("", alias="schema")
    table_name: str
    columns: list[ColumnDescriptor] = Field(..., min_length=1)
    data_source_id: int
