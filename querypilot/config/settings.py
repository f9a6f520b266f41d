"""
Configuration management for the application.
Loads settings from environment variables, the project .env file and the
tenant registry.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Dict

from dotenv import load_dotenv
from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

# This file is at querypilot/config/settings.py, so project root is 3 levels up
_project_root = Path(__file__).resolve().parent.parent.parent

PROJECT_ROOT = _project_root

_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(dotenv_path=_env_file, override=True)
    logger.debug(f"Loaded .env from: {_env_file}")
else:
    load_dotenv(override=False)


class DatabaseKind(str, Enum):
    """Database engines the pipeline can execute against."""

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"

    @property
    def sqlglot_dialect(self) -> str:
        return _SQLGLOT_DIALECTS[self]


_SQLGLOT_DIALECTS = {
    DatabaseKind.MYSQL: "mysql",
    DatabaseKind.POSTGRESQL: "postgres",
    DatabaseKind.SQLITE: "sqlite",
}


@dataclass
class DatabaseConfig:
    """
    Base class for a tenant database configuration.

    Each engine is its own variant; the variant decides the SQLAlchemy URL and
    engine options, and its ``kind`` selects the engine's error phrasing table.
    """

    kind: ClassVar[DatabaseKind]
    database: str

    def get_connection_url(self) -> URL:
        raise NotImplementedError

    def engine_options(self) -> Dict[str, Any]:
        """Pool options passed to ``create_async_engine``."""
        return {
            "pool_pre_ping": True,
            "pool_recycle": settings.db_pool_recycle,
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
        }

    def describe(self) -> str:
        return f"{self.kind.value}:{self.database}"


@dataclass
class MySQLConfig(DatabaseConfig):
    """MySQL / MariaDB database configuration"""

    kind: ClassVar[DatabaseKind] = DatabaseKind.MYSQL
    host: str = "127.0.0.1"
    port: int = 3306
    user: str = "root"
    password: str = field(default="", repr=False)

    def get_connection_url(self) -> URL:
        return URL.create(
            "mysql+aiomysql",
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
            query={"charset": "utf8mb4"},
        )

    def engine_options(self) -> Dict[str, Any]:
        options = super().engine_options()
        options["connect_args"] = {"connect_timeout": settings.db_connect_timeout}
        return options

    def describe(self) -> str:
        return f"mysql:{self.database} @ {self.host}:{self.port}"


@dataclass
class PostgreSQLConfig(DatabaseConfig):
    """PostgreSQL database configuration"""

    kind: ClassVar[DatabaseKind] = DatabaseKind.POSTGRESQL
    host: str = "127.0.0.1"
    port: int = 5432
    user: str = "postgres"
    password: str = field(default="", repr=False)

    def get_connection_url(self) -> URL:
        return URL.create(
            "postgresql+asyncpg",
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def engine_options(self) -> Dict[str, Any]:
        options = super().engine_options()
        options["connect_args"] = {"timeout": settings.db_connect_timeout}
        return options

    def describe(self) -> str:
        return f"postgresql:{self.database} @ {self.host}:{self.port}"


@dataclass
class SQLiteConfig(DatabaseConfig):
    """SQLite database configuration; ``database`` is a file path."""

    kind: ClassVar[DatabaseKind] = DatabaseKind.SQLITE

    def get_connection_url(self) -> URL:
        return URL.create("sqlite+aiosqlite", database=self.database)

    def engine_options(self) -> Dict[str, Any]:
        # SQLite picks its own pool class; QueuePool sizing does not apply
        return {}


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_project_root / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_to_file: bool = Field(default=False)
    log_dir: str = Field(default="data/logs")

    # Attempt controller
    sql_max_attempts: int = Field(default=2, ge=1)  # Whole-pipeline attempts per request
    sql_retry_on_zero_rows: bool = Field(default=True)  # Treat an empty result as retry-worthy
    sql_pre_validation_enabled: bool = Field(default=True)  # Correct names against the schema before execution
    sql_syntax_autofix_enabled: bool = Field(default=True)  # Retry once after balancing parentheses
    sql_min_candidate_length: int = Field(default=5)  # Shorter candidates are treated as noise
    sql_default_table: str = Field(default="patients p")  # Table clause used by completeness repair
    sql_max_columns_in_suggestion: int = Field(default=10)  # Columns listed when no close match exists
    sql_max_sql_history_length: int = Field(default=500)  # Max SQL length echoed in retry feedback

    # Single-tenant database defaults (used when no tenant registry file exists)
    default_tenant_id: str = Field(default="default")
    db_type: str = Field(default="mysql")
    db_host: str = Field(default="127.0.0.1")
    db_port: int = Field(default=3306)
    db_user: str = Field(default="root")
    db_pwd: str = Field(default="")
    db_name: str = Field(default="medical")

    # Connection pool
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_recycle: int = Field(default=3600)
    db_connect_timeout: int = Field(default=60)
    max_connections_per_tenant: int = Field(default=5, ge=1)

    # Schema snapshot cache
    schema_cache_ttl_seconds: float = Field(default=300.0)

    # Tenant registry
    tenant_registry_path: str = Field(default="artifacts/tenants.json")

    # LLM provider
    llm_provider: str = Field(default="openai")  # Options: "openai" | "ollama"
    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gpt-4o-mini")
    openai_temperature: float = Field(default=0.0)
    ollama_base_url: str = Field(default="http://localhost:11434")
    ollama_model: str = Field(default="llama3")
    max_output_tokens: int = Field(default=2000)

    # Session history
    session_ttl_seconds: float = Field(default=24 * 3600)
    session_sweep_interval_seconds: float = Field(default=3600)
    max_conversation_turns: int = Field(default=5)

    def resolve_path(self, value: str) -> Path:
        """Resolve a configured path relative to the project root."""
        path = Path(value)
        if not path.is_absolute():
            path = _project_root / path
        return path


settings = Settings()


def default_database_config() -> DatabaseConfig:
    """Build the single-tenant configuration from DB_* environment variables."""
    from querypilot.infra.tenants import database_config_from_dict

    data = {"type": settings.db_type, "database": settings.db_name}
    # SQLite is a file path; server settings do not apply
    if settings.db_type.lower() != DatabaseKind.SQLITE.value:
        data.update(
            host=settings.db_host,
            port=settings.db_port,
            user=settings.db_user,
            password=settings.db_pwd,
        )
    return database_config_from_dict(data)


def env_or_default(name: str, default: str = "") -> str:
    """Read an environment variable referenced from a tenant registry entry."""
    return os.getenv(name, default)
