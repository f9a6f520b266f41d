"""
Shared utilities - logging setup and error types
"""

from querypilot.utils.errors import (
    AgentError,
    ConfigurationError,
    DatabaseConnectionError,
    ExtractionFailedError,
    SQLExecutionError,
    SQLGenerationError,
    UnknownTenantError,
)

__all__ = [
    "AgentError",
    "ConfigurationError",
    "DatabaseConnectionError",
    "ExtractionFailedError",
    "SQLExecutionError",
    "SQLGenerationError",
    "UnknownTenantError",
]
