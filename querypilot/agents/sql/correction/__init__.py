"""
SQL correction system - error normalization, schema-based suggestions and
deterministic fixes.

This package provides a structured approach to failed attempts:
1. Error normalization: convert raw driver errors to semantic types
2. Name matching: find the schema name a bad identifier most likely meant
3. Classification: build an ErrorDiagnosis with a human-readable hint
4. Deterministic fixers: schema correction and parenthesis repair
"""

from querypilot.agents.sql.correction.classifier import ErrorClassifier
from querypilot.agents.sql.correction.error_parser import is_syntax_error, normalize_error
from querypilot.agents.sql.correction.error_types import NormalizedError, SQLErrorType
from querypilot.agents.sql.correction.fixers import (
    SchemaCorrection,
    balance_parentheses,
    correct_schema_references,
    fix_syntax,
)
from querypilot.agents.sql.correction.metrics import (
    get_metrics_summary,
    log_metrics_summary,
    record_attempt,
    record_diagnosis,
    record_fix,
    record_request,
    reset_metrics,
)
from querypilot.agents.sql.correction.name_matcher import find_best_match, normalize_name

__all__ = [
    "ErrorClassifier",
    "NormalizedError",
    "SQLErrorType",
    "SchemaCorrection",
    "balance_parentheses",
    "correct_schema_references",
    "find_best_match",
    "fix_syntax",
    "get_metrics_summary",
    "is_syntax_error",
    "log_metrics_summary",
    "normalize_error",
    "normalize_name",
    "record_attempt",
    "record_diagnosis",
    "record_fix",
    "record_request",
    "reset_metrics",
]
