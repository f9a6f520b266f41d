"""
Configuration layer - Settings and constants
"""

from querypilot.config.settings import (
    PROJECT_ROOT,
    DatabaseConfig,
    DatabaseKind,
    MySQLConfig,
    PostgreSQLConfig,
    SQLiteConfig,
    settings,
)
from querypilot.config.constants import CLAUSE_KEYWORDS, FORBIDDEN_KEYWORDS, TABLE_ALIASES

__all__ = [
    "settings",
    "PROJECT_ROOT",
    "DatabaseConfig",
    "DatabaseKind",
    "MySQLConfig",
    "PostgreSQLConfig",
    "SQLiteConfig",
    "FORBIDDEN_KEYWORDS",
    "TABLE_ALIASES",
    "CLAUSE_KEYWORDS",
]
