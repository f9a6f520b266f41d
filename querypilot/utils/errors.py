"""
Custom error classes for the application
"""

from typing import Optional, Union


class AgentError(Exception):
    """Base exception for agent errors"""
    pass


class ConfigurationError(AgentError):
    """Invalid tenant or application configuration"""
    pass


class UnknownTenantError(AgentError):
    """No database configuration is registered for the tenant"""
    pass


class SQLGenerationError(AgentError):
    """Error during SQL generation"""
    pass


class ExtractionFailedError(SQLGenerationError):
    """No usable SQL statement could be produced for the question"""
    pass


class SQLExecutionError(AgentError):
    """Error during SQL execution, carrying the driver's error code when known"""

    def __init__(self, message: str, code: Optional[Union[int, str]] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class DatabaseConnectionError(SQLExecutionError):
    """A connection could not be opened or was lost"""
    pass
