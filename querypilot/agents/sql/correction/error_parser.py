"""
SQL error parser - converts raw database errors to semantic error types.

This module is the ONLY place where database-specific error strings are
matched. Each engine has its own pattern table; phrasings shared by several
engines (SQL Server style "Invalid column name") live in a common table that
is consulted for every engine.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from loguru import logger

from querypilot.agents.sql.correction.error_types import NormalizedError, SQLErrorType
from querypilot.config.settings import DatabaseKind


@dataclass(frozen=True)
class ErrorPattern:
    """
    One recognizable error phrasing.

    ``pattern`` may capture the offending identifier in its first group;
    ``codes`` lets a bare driver code classify a message the regex misses.
    """

    error_type: SQLErrorType
    pattern: re.Pattern
    codes: Tuple[Union[int, str], ...] = ()

    def match(self, message: str) -> Optional[Dict[str, str]]:
        found = self.pattern.search(message)
        if not found:
            return None
        details = {}
        if found.groups() and found.group(1):
            details["identifier"] = found.group(1).strip("`\"'")
        return details


def _p(error_type: SQLErrorType, regex: str, *codes: Union[int, str]) -> ErrorPattern:
    return ErrorPattern(error_type, re.compile(regex, re.IGNORECASE), tuple(codes))


MYSQL_PATTERNS: Tuple[ErrorPattern, ...] = (
    _p(SQLErrorType.UNKNOWN_COLUMN, r"Unknown column '([^']+)'", 1054),
    _p(SQLErrorType.UNKNOWN_TABLE, r"Table '(?:[^'.]+\.)?([^'.]+)' doesn't exist", 1146),
    _p(SQLErrorType.UNKNOWN_TABLE, r"Unknown table '(?:[^'.]+\.)?([^'.]+)'", 1051, 1109),
    _p(SQLErrorType.AMBIGUOUS_COLUMN, r"Column '([^']+)' in [\w ]+ is ambiguous", 1052),
    _p(SQLErrorType.SYNTAX_ERROR, r"error in your SQL syntax", 1064),
)

POSTGRES_PATTERNS: Tuple[ErrorPattern, ...] = (
    _p(SQLErrorType.AMBIGUOUS_COLUMN, r"column reference \"?([\w.]+)\"? is ambiguous", "42702"),
    _p(SQLErrorType.UNKNOWN_COLUMN, r"column \"?([\w.]+)\"? (?:of relation \"?\w+\"? )?does not exist", "42703"),
    _p(SQLErrorType.UNKNOWN_TABLE, r"relation \"?(?:\w+\.)?(\w+)\"? does not exist", "42P01"),
    _p(SQLErrorType.UNKNOWN_TABLE, r"missing FROM-clause entry for table \"?(\w+)\"?"),
    _p(SQLErrorType.SYNTAX_ERROR, r"syntax error at or near", "42601"),
)

SQLITE_PATTERNS: Tuple[ErrorPattern, ...] = (
    _p(SQLErrorType.UNKNOWN_COLUMN, r"no such column: ([\w.]+)"),
    _p(SQLErrorType.UNKNOWN_TABLE, r"no such table: (?:\w+\.)?(\w+)"),
    _p(SQLErrorType.AMBIGUOUS_COLUMN, r"ambiguous column name: ([\w.]+)"),
    _p(SQLErrorType.SYNTAX_ERROR, r"syntax error|incomplete input|unrecognized token"),
)

COMMON_PATTERNS: Tuple[ErrorPattern, ...] = (
    _p(SQLErrorType.UNKNOWN_COLUMN, r"Invalid column name '([^']+)'", 207),
    _p(SQLErrorType.UNKNOWN_TABLE, r"Invalid object name '(?:[^'.]+\.)?([^'.]+)'", 208),
    _p(SQLErrorType.AMBIGUOUS_COLUMN, r"Ambiguous column name '([^']+)'", 209),
)

ERROR_PATTERNS: Dict[DatabaseKind, Tuple[ErrorPattern, ...]] = {
    DatabaseKind.MYSQL: MYSQL_PATTERNS,
    DatabaseKind.POSTGRESQL: POSTGRES_PATTERNS,
    DatabaseKind.SQLITE: SQLITE_PATTERNS,
}

_SYNTAX_HINTS = re.compile(r"syntax error|\bnear\b|unexpected|incomplete input", re.IGNORECASE)


def patterns_for(kind: Optional[DatabaseKind]) -> Tuple[ErrorPattern, ...]:
    """Pattern table for an engine plus the common phrasings; all engines when unknown."""
    if kind is None:
        engine_patterns = tuple(p for table in ERROR_PATTERNS.values() for p in table)
    else:
        engine_patterns = ERROR_PATTERNS.get(kind, ())
    return engine_patterns + COMMON_PATTERNS


def normalize_error(
    error_message: str,
    kind: Optional[DatabaseKind] = None,
    code: Optional[Union[int, str]] = None,
) -> NormalizedError:
    """
    Parse a raw database error message into a semantic error type.

    Args:
        error_message: Raw error message from the driver
        kind: Engine that produced the message; None tries every engine
        code: Driver error code, if known

    Returns:
        NormalizedError with semantic type and, where the message names it,
        the offending identifier in ``details["identifier"]``

    Example:
        >>> error = normalize_error("Unknown column 'p.fullname' in 'field list'", DatabaseKind.MYSQL)
        >>> error.error_type
        <SQLErrorType.UNKNOWN_COLUMN: 'unknown_column'>
        >>> error.details["identifier"]
        'p.fullname'
    """
    message = error_message or ""
    patterns = patterns_for(kind)

    for pattern in patterns:
        details = pattern.match(message)
        if details is not None:
            logger.debug(f"Parsed {pattern.error_type.name}: {details}")
            return NormalizedError(pattern.error_type, message, details, code)

    if code is not None:
        for pattern in patterns:
            if str(code) in {str(c) for c in pattern.codes}:
                logger.debug(f"Classified error by code {code}: {pattern.error_type.name}")
                return NormalizedError(pattern.error_type, message, {}, code)

    logger.debug(f"Could not normalize error, classifying as OTHER: {message[:100]}")
    return NormalizedError(SQLErrorType.OTHER, message, {}, code)


def is_syntax_error(error_message: str) -> bool:
    """Loose check used to decide whether a parenthesis repair is worth a retry."""
    return bool(error_message) and _SYNTAX_HINTS.search(error_message) is not None
