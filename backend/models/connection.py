"""Pydantic schemas for registering data sources."""
from typing import Optional, Literal
from pydantic import BaseModel, Field
from sqlalchemy.engine import URL


class ConnectionRequest(BaseModel):
    db_type: Literal["sqlite", "postgresql"]
    name: str = Field(..., description="Display name of the data source")

    file_path: Optional[str] = Field(None, description="SQLite database file")

    host: Optional[str] = None
    port: Optional[int] = 5432
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    def get_sqlalchemy_url(self) -> str:
        if self.db_type == "sqlite":
            url = URL.create("sqlite", database=self.file_path)
        else:
            url = URL.create(
                "postgresql+psycopg2",
                username=self.username,
                password=self.password,
                host=self.host,
                port=self.port,
                database=self.database,
            )
        return url.render_as_string(hide_password=False)


class ConnectionResponse(BaseModel):
    data_source_id: int
    name: str
    db_type: str
    tables: list[str]


class ConnectionListItem(BaseModel):
    data_source_id: int
    name: str
    db_type: str
    host: Optional[str] = None
    database: Optional[str] = None
    file_path: Optional[str] = None
