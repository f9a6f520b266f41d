"""
Engine-independent error categories.

Driver messages differ per engine and per version; the classifier only ever
sees one of these categories plus the identifier the message named.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


class SQLErrorType(Enum):
    """What went wrong, independent of how the engine phrased it."""

    UNKNOWN_COLUMN = "unknown_column"
    UNKNOWN_TABLE = "unknown_table"
    AMBIGUOUS_COLUMN = "ambiguous_column"
    SYNTAX_ERROR = "syntax_error"
    OTHER = "other"


@dataclass
class NormalizedError:
    """
    A driver error reduced to its category.

    ``details`` holds what the message revealed; today that is at most
    ``identifier`` (e.g. ``"p.fullname"``). ``code`` is the driver's numeric
    code or SQLSTATE when it reported one.

    Example:
        >>> error = NormalizedError(SQLErrorType.UNKNOWN_TABLE, "no such table: visit", {"identifier": "visit"})
        >>> error.get_detail("identifier")
        'visit'
    """

    error_type: SQLErrorType
    raw_message: str
    details: Dict[str, Any] = field(default_factory=dict)
    code: Optional[Union[int, str]] = None

    def __post_init__(self):
        if not isinstance(self.error_type, SQLErrorType):
            raise TypeError(f"error_type must be SQLErrorType, got {type(self.error_type)}")

    def get_detail(self, key: str, default: Any = None) -> Any:
        return self.details.get(key, default)

    def __str__(self) -> str:
        return f"NormalizedError(type={self.error_type.value}, details={self.details})"
