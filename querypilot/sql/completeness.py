"""
SQL completeness check and repair.

Generation agents regularly stop mid-statement ("SELECT p.name FROM"). The
repair here is one pass: the output of ``repair_sql`` is complete whenever
the input had a SELECT or a FROM, and repairing it again changes nothing.
"""

import re
from typing import Dict, Optional

from loguru import logger

from querypilot.config.constants import CLAUSE_KEYWORDS, TABLE_ALIASES
from querypilot.sql.sanitizer import mask_literals

_SELECT = re.compile(r"\bSELECT\b", re.IGNORECASE)
_FROM = re.compile(r"\bFROM\b", re.IGNORECASE)
# Quoted identifiers are masked to their opening quote, which still counts as a table
_NEXT_TOKEN = re.compile(r"\s*([A-Za-z_][A-Za-z0-9_.]*|[(0-9'`\"@:$?])")
_ALIAS_PREFIX = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)\.(?:[A-Za-z_*])")
_TRAILING_CLAUSE = re.compile(r"\b(WHERE|GROUP\s+BY|ORDER\s+BY|HAVING|LIMIT)\b", re.IGNORECASE)


def _has_table_after(masked: str, from_end: int) -> bool:
    match = _NEXT_TOKEN.match(masked, from_end)
    if not match:
        return False
    token = match.group(1)
    return token.upper() not in CLAUSE_KEYWORDS


def _dangling_from_end(masked: str) -> Optional[int]:
    """End offset of the first FROM that has no table reference after it."""
    for match in _FROM.finditer(masked):
        if not _has_table_after(masked, match.end()):
            return match.end()
    return None


def is_complete_sql(sql: str) -> bool:
    """
    A statement is complete when it has SELECT, FROM and a table reference
    following FROM.

    Examples:
        >>> is_complete_sql("SELECT p.name FROM patients p;")
        True
        >>> is_complete_sql("SELECT p.name FROM")
        False
    """
    if not sql:
        return False
    masked = mask_literals(sql)
    if not _SELECT.search(masked):
        return False
    froms = list(_FROM.finditer(masked))
    if not froms:
        return False
    return all(_has_table_after(masked, m.end()) for m in froms)


def infer_table_clause(
    sql: str,
    alias_map: Optional[Dict[str, str]] = None,
    default_table: str = "patients p",
) -> str:
    """
    Guess the FROM target from alias prefixes used in the select list.

    Example:
        >>> infer_table_clause("SELECT rd.risk_category FROM", {"rd": "risk_details"})
        'risk_details rd'
    """
    alias_map = TABLE_ALIASES if alias_map is None else alias_map
    masked = mask_literals(sql)
    select = _SELECT.search(masked)
    head = masked[select.end():] if select else masked
    from_match = _FROM.search(head)
    select_list = head[: from_match.start()] if from_match else head
    for match in _ALIAS_PREFIX.finditer(select_list):
        alias = match.group(1)
        table = alias_map.get(alias) or alias_map.get(alias.lower())
        if table:
            return f"{table} {alias}"
    return default_table


def repair_sql(
    sql: str,
    alias_map: Optional[Dict[str, str]] = None,
    default_table: str = "patients p",
) -> str:
    """
    Repair a truncated statement and terminate it with ``;``.

    Repairs, in order:
    1. FROM without SELECT: prepend ``SELECT`` (a column list precedes FROM)
       or ``SELECT *``
    2. Dangling FROM: insert the inferred table
    3. SELECT without FROM: add ``FROM <table>`` before the first trailing
       clause, or at the end
    4. Missing terminator

    Example:
        >>> repair_sql("SELECT p.name FROM")
        'SELECT p.name FROM patients p;'
    """
    text = re.sub(r"[\s;]+$", "", (sql or "").strip())
    if not text:
        return ""
    if is_complete_sql(text):
        return f"{text};"

    original = text
    masked = mask_literals(text)
    has_select = _SELECT.search(masked) is not None
    first_from = _FROM.search(masked)

    if first_from and not has_select:
        prefix = text[: first_from.start()].strip()
        text = f"SELECT {text}" if prefix else f"SELECT * {text}"
        masked = mask_literals(text)

    table_clause = infer_table_clause(text, alias_map, default_table)

    dangling = _dangling_from_end(masked)
    while dangling is not None:
        text = f"{text[:dangling]} {table_clause}{text[dangling:]}"
        masked = mask_literals(text)
        dangling = _dangling_from_end(masked)

    if _SELECT.search(masked) and not _FROM.search(masked):
        clause = _TRAILING_CLAUSE.search(masked)
        if clause:
            text = f"{text[: clause.start()].rstrip()} FROM {table_clause} {text[clause.start():]}"
        else:
            text = f"{text} FROM {table_clause}"

    if text != original:
        logger.debug(f"Repaired incomplete SQL: {original[:120]!r} -> {text[:120]!r}")
    return f"{text};"
