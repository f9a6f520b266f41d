"""
SQL text processing - sanitization, completeness repair and AST analysis
"""

from querypilot.sql.completeness import infer_table_clause, is_complete_sql, repair_sql
from querypilot.sql.sanitizer import (
    contains_forbidden_keyword,
    extract_sql_candidate,
    sanitize_sql,
    strip_comments,
)

__all__ = [
    "contains_forbidden_keyword",
    "extract_sql_candidate",
    "infer_table_clause",
    "is_complete_sql",
    "repair_sql",
    "sanitize_sql",
    "strip_comments",
]
