"""
SQL AST utilities using sqlglot for deterministic query analysis.

This module provides wrapper functions around sqlglot to:
- Parse SQL into an Abstract Syntax Tree (AST)
- List the tables a query references, with their aliases
- Resolve aliases back to base tables
- List qualified/unqualified column references

Generated SQL is frequently malformed, so every helper falls back to a
regex scan of FROM/JOIN clauses when sqlglot cannot parse the statement.
"""

import re
from typing import Dict, List, Optional, Tuple

import sqlglot
from loguru import logger
from sqlglot import exp

from querypilot.config.constants import CLAUSE_KEYWORDS

_TABLE_REF_PATTERN = re.compile(
    r"\b(?:FROM|(?:LEFT\s+|RIGHT\s+|INNER\s+|OUTER\s+|CROSS\s+|FULL\s+)*JOIN)\s+"
    r"`?\"?([a-zA-Z_][a-zA-Z0-9_]*)`?\"?"
    r"(?:\s+(?:AS\s+)?([a-zA-Z_][a-zA-Z0-9_]*))?",
    re.IGNORECASE,
)

_QUALIFIED_COLUMN_PATTERN = re.compile(r"\b([a-zA-Z_][a-zA-Z0-9_]*)\.([a-zA-Z_][a-zA-Z0-9_]*)\b")


def parse_sql(sql: str, dialect: str = "mysql") -> exp.Expression:
    """
    Parse SQL into sqlglot AST.

    Args:
        sql: SQL query string
        dialect: SQL dialect (default: "mysql")

    Returns:
        sqlglot Expression (AST root)

    Raises:
        sqlglot.errors.ParseError: If SQL is invalid

    Example:
        >>> ast = parse_sql("SELECT id, name FROM users WHERE active = 1")
        >>> print(type(ast))
        <class 'sqlglot.expressions.Select'>
    """
    parsed = sqlglot.parse_one(sql, read=dialect)
    if parsed is None:
        raise sqlglot.errors.ParseError("Empty statement")
    logger.debug(f"Parsed SQL into AST: {type(parsed).__name__}")
    return parsed


def try_parse_sql(sql: str, dialect: str = "mysql") -> Optional[exp.Expression]:
    """Parse SQL, returning None instead of raising on malformed input."""
    try:
        return parse_sql(sql, dialect)
    except Exception as e:
        logger.debug(f"sqlglot could not parse SQL, using regex fallback: {e}")
        return None


def _cte_names(ast: exp.Expression) -> set:
    return {cte.alias_or_name.lower() for cte in ast.find_all(exp.CTE)}


def get_table_references(sql: str, dialect: str = "mysql") -> List[Tuple[str, Optional[str]]]:
    """
    List ``(table, alias)`` pairs referenced by FROM/JOIN clauses, in order.

    CTE names are not reported as tables.

    Example:
        >>> get_table_references("SELECT p.id FROM patients p JOIN diagnoses d ON d.pid = p.id")
        [('patients', 'p'), ('diagnoses', 'd')]
    """
    ast = try_parse_sql(sql, dialect)
    if ast is not None:
        ctes = _cte_names(ast)
        refs: List[Tuple[str, Optional[str]]] = []
        for table in ast.find_all(exp.Table):
            if not table.name or table.name.lower() in ctes:
                continue
            refs.append((table.name, table.alias or None))
        return refs

    refs = []
    for match in _TABLE_REF_PATTERN.finditer(sql):
        table_name, alias = match.group(1), match.group(2)
        if table_name.upper() in CLAUSE_KEYWORDS:
            continue
        if alias and alias.upper() in CLAUSE_KEYWORDS:
            alias = None
        refs.append((table_name, alias))
    return refs


def build_alias_map(sql: str, dialect: str = "mysql") -> Dict[str, str]:
    """
    Map each alias (and each bare table name) to its base table.

    Example:
        >>> build_alias_map("SELECT p.full_name FROM patients p")
        {'patients': 'patients', 'p': 'patients'}
    """
    alias_map: Dict[str, str] = {}
    for table, alias in get_table_references(sql, dialect):
        alias_map.setdefault(table, table)
        if alias:
            alias_map[alias] = table
            logger.debug(f"Found alias: {alias} -> {table}")
    return alias_map


def get_referenced_tables(sql: str, dialect: str = "mysql") -> List[str]:
    """Distinct base tables referenced by the query, in first-seen order."""
    seen: List[str] = []
    for table, _ in get_table_references(sql, dialect):
        if table not in seen:
            seen.append(table)
    return seen


def get_qualified_columns(sql: str, dialect: str = "mysql") -> List[Tuple[str, str]]:
    """
    List ``(qualifier, column)`` pairs such as ``("p", "full_name")``.

    String literals are ignored when the statement parses.
    """
    ast = try_parse_sql(sql, dialect)
    if ast is not None:
        pairs = []
        for column in ast.find_all(exp.Column):
            if column.table and column.name:
                pairs.append((column.table, column.name))
        return pairs
    return [(m.group(1), m.group(2)) for m in _QUALIFIED_COLUMN_PATTERN.finditer(sql)]
