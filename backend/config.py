"""Application settings loaded from .env file."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Join catalog / suggestion cache store
    CATALOG_DATABASE_URL: str = "sqlite:///./splice_catalog.db"

    # Ollama (cleaning SQL drafts)
    OLLAMA_HOST: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "qwen2.5-coder:3b"
    OLLAMA_TIMEOUT_SECONDS: int = 120

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:5173"

    # Joins
    POPULAR_JOINS_LIMIT: int = 10

    # Cleaning executor
    EXECUTOR_SAMPLE_ROWS: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"


settings = Settings()
