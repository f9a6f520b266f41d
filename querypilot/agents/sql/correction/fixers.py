"""
Deterministic SQL fixers.

These fixes are applied without involving the generation agent:
- Schema correction: misspelled tables and ``alias.column`` references are
  replaced with their closest match from the schema snapshot before execution
- Syntax repair: orphan/unbalanced parentheses and an empty ``WITH )`` are
  removed after a syntax-style error, for one retry on the same connection
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from loguru import logger

from querypilot.agents.sql.correction.name_matcher import find_best_match
from querypilot.models import SchemaSnapshot
from querypilot.sql.analysis import build_alias_map, get_qualified_columns, get_table_references
from querypilot.sql.sanitizer import split_literals


@dataclass(frozen=True)
class SchemaCorrection:
    """One identifier replaced during pre-execution validation."""

    kind: str  # "table" | "column"
    original: str
    replacement: str

    def describe(self) -> str:
        return f"{self.kind} `{self.original}` -> `{self.replacement}`"


def _sub_outside_literals(sql: str, pattern: re.Pattern, replacement) -> str:
    return "".join(
        text if is_literal else pattern.sub(replacement, text)
        for is_literal, text in split_literals(sql)
    )


def correct_schema_references(
    sql: str,
    snapshot: Optional[SchemaSnapshot],
    dialect: str = "mysql",
) -> Tuple[str, List[SchemaCorrection]]:
    """
    Replace unknown table names and ``qualifier.column`` references with the
    snapshot's closest match.

    Only unquoted identifiers are rewritten; names that already exist, or have
    no match, are left alone.

    Example:
        >>> snapshot = SchemaSnapshot.from_mapping({"patients": ["patient_id", "full_name"]})
        >>> sql, fixes = correct_schema_references("SELECT p.fullname FROM patient p;", snapshot)
        >>> sql
        'SELECT p.full_name FROM patients p;'
    """
    if not sql or snapshot is None or snapshot.is_empty():
        return sql, []

    corrections: List[SchemaCorrection] = []

    table_fixes: Dict[str, str] = {}
    for table, _ in get_table_references(sql, dialect):
        if table in table_fixes or snapshot.find_table(table):
            continue
        match = find_best_match(table, snapshot.tables, allow_inflections=True)
        if match:
            table_fixes[table] = match

    for original, replacement in table_fixes.items():
        pattern = re.compile(
            r"(\b(?:FROM|JOIN)\s+)" + re.escape(original) + r"\b",
            re.IGNORECASE,
        )
        sql = _sub_outside_literals(sql, pattern, lambda m, r=replacement: m.group(1) + r)
        corrections.append(SchemaCorrection("table", original, replacement))
        logger.info(f"Pre-execution fix: table {original} -> {replacement}")

    alias_map = build_alias_map(sql, dialect)
    seen = set()
    for qualifier, column in get_qualified_columns(sql, dialect):
        key = (qualifier, column)
        if key in seen:
            continue
        seen.add(key)

        table = snapshot.find_table(alias_map.get(qualifier, qualifier))
        if table is None:
            continue
        columns = snapshot.columns_for(table)
        if column.lower() in {c.lower() for c in columns}:
            continue
        match = find_best_match(column, columns)
        if not match:
            continue

        pattern = re.compile(r"\b" + re.escape(qualifier) + r"\." + re.escape(column) + r"\b")
        sql = _sub_outside_literals(sql, pattern, f"{qualifier}.{match}")
        corrections.append(SchemaCorrection("column", f"{qualifier}.{column}", f"{qualifier}.{match}"))
        logger.info(f"Pre-execution fix: column {qualifier}.{column} -> {qualifier}.{match}")

    return sql, corrections


def balance_parentheses(sql: str) -> str:
    """
    Drop closing parentheses without an opener and close the ones left open.

    Example:
        >>> balance_parentheses("SELECT COUNT(*)) FROM (SELECT 1 AS a")
        'SELECT COUNT(*) FROM (SELECT 1 AS a)'
    """
    depth = 0
    out: List[str] = []
    for is_literal, text in split_literals(sql):
        if is_literal:
            out.append(text)
            continue
        for ch in text:
            if ch == "(":
                depth += 1
            elif ch == ")":
                if depth == 0:
                    continue
                depth -= 1
            out.append(ch)
    return "".join(out) + ")" * depth


def fix_syntax(sql: str) -> str:
    """
    Repair the structural mistakes truncated generations typically make.

    Returns the input unchanged (modulo terminator) when nothing applies.
    """
    text = re.sub(r"[\s;]+$", "", (sql or "").strip())
    text = re.sub(r"^\)+\s*", "", text)
    text = re.sub(r"\bWITH\s*\)\s*,?\s*", "", text, flags=re.IGNORECASE)
    text = balance_parentheses(text)
    return f"{text};" if text else ""
