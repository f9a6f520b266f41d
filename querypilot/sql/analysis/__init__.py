"""
SQL analysis helpers built on sqlglot
"""

from querypilot.sql.analysis.ast_utils import (
    build_alias_map,
    get_qualified_columns,
    get_referenced_tables,
    get_table_references,
    parse_sql,
    try_parse_sql,
)

__all__ = [
    "build_alias_map",
    "get_qualified_columns",
    "get_referenced_tables",
    "get_table_references",
    "parse_sql",
    "try_parse_sql",
]
