"""
SQL sanitizer - turns raw generation-agent output into one executable,
read-only statement.

Every helper here is pure and total: malformed input yields an empty string,
never an exception. ``sanitize_sql`` is idempotent.
"""

import re
from typing import List, Tuple

from loguru import logger

from querypilot.config.constants import FORBIDDEN_KEYWORDS

_QUOTES = ("'", '"', "`")

_FORBIDDEN_PATTERN = re.compile(
    r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b",
    re.IGNORECASE,
)

# ```sql\n...``` ; the language tag only counts when a newline follows it
_FENCED_BLOCK = re.compile(r"```(?:[A-Za-z0-9_+-]*[ \t]*\r?\n)?(.*?)```", re.DOTALL)
_UNCLOSED_FENCE = re.compile(r"```(?:[A-Za-z0-9_+-]*[ \t]*\r?\n)?(.*)$", re.DOTALL)
_INLINE_SPAN = re.compile(r"`([^`\n]+)`")
_SQL_WORD = re.compile(r"\b(SELECT|WITH)\b", re.IGNORECASE)

_SELECT_START = re.compile(r"\bSELECT\b", re.IGNORECASE)
_CTE_START = re.compile(
    r"\bWITH\s+(?:RECURSIVE\s+)?[A-Za-z_][A-Za-z0-9_]*\s*(?:\([^)]*\))?\s*AS\s*\(",
    re.IGNORECASE,
)

_MARKUP_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\[([^\[\]]*)\]\((?:https?://|mailto:)[^)\s]*\)"), r"\1"),  # [text](http://..)
    (re.compile(r"\*\*"), ""),  # **bold**
    (re.compile(r"<\|[^|<>]*\|>"), " "),  # <|im_end|>
    (re.compile(r"</?s>"), " "),
    (re.compile(r"\{\{|\}\}|\{%|%\}"), " "),  # template delimiters
]


# ============================================================================
# Literal-aware scanning
# ============================================================================


def _literal_end(sql: str, start: int) -> int:
    """Index just past the quoted literal opening at ``start``."""
    quote = sql[start]
    i = start + 1
    n = len(sql)
    while i < n:
        ch = sql[i]
        if ch == "\\" and quote != "`":
            i += 2
            continue
        if ch == quote:
            if i + 1 < n and sql[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def split_literals(sql: str) -> List[Tuple[bool, str]]:
    """
    Split SQL into ``(is_literal, text)`` segments.

    Quoted strings and quoted identifiers are literal segments; an unterminated
    quote extends to the end of the text.

    Example:
        >>> split_literals("SELECT 'a b' FROM t")
        [(False, 'SELECT '), (True, "'a b'"), (False, ' FROM t')]
    """
    segments: List[Tuple[bool, str]] = []
    buf: List[str] = []
    i = 0
    while i < len(sql):
        ch = sql[i]
        if ch in _QUOTES:
            if buf:
                segments.append((False, "".join(buf)))
                buf = []
            end = _literal_end(sql, i)
            segments.append((True, sql[i:end]))
            i = end
        else:
            buf.append(ch)
            i += 1
    if buf:
        segments.append((False, "".join(buf)))
    return segments


def mask_literals(sql: str) -> str:
    """Replace literal contents with spaces, keeping offsets intact."""
    return "".join(
        text[0] + " " * (len(text) - 1) if is_literal else text
        for is_literal, text in split_literals(sql)
    )


def strip_comments(sql: str) -> str:
    """Remove ``--`` line comments and ``/* */`` block comments outside literals."""
    out: List[str] = []
    i = 0
    n = len(sql)
    while i < n:
        ch = sql[i]
        if ch in _QUOTES:
            end = _literal_end(sql, i)
            out.append(sql[i:end])
            i = end
        elif sql.startswith("--", i):
            newline = sql.find("\n", i)
            i = n if newline == -1 else newline
        elif sql.startswith("/*", i):
            close = sql.find("*/", i + 2)
            i = n if close == -1 else close + 2
            out.append(" ")
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _is_word(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _strip_markup(pattern: re.Pattern, replacement: str, text: str) -> str:
    """Apply one markup pattern without gluing its neighbours into a new token."""

    def _sub(match: re.Match) -> str:
        value = match.expand(replacement)
        before = text[match.start() - 1] if match.start() > 0 else ""
        after = text[match.end()] if match.end() < len(text) else ""
        if not value:
            glued = (_is_word(before) and _is_word(after)) or (before == after and not before.isspace())
            return " " if glued else ""
        if _is_word(before) and _is_word(value[0]):
            value = f" {value}"
        if _is_word(after) and _is_word(value[-1]):
            value = f"{value} "
        return value

    return pattern.sub(_sub, text)


def _clean_segment(text: str) -> str:
    previous = None
    while previous != text:
        previous = text
        for pattern, replacement in _MARKUP_PATTERNS:
            text = _strip_markup(pattern, replacement, text)
    return re.sub(r"\s+", " ", text)


def _clean_outside_literals(sql: str) -> str:
    cleaned = "".join(
        text if is_literal else _clean_segment(text)
        for is_literal, text in split_literals(sql)
    )
    return cleaned.strip()


# ============================================================================
# Public API
# ============================================================================


def contains_forbidden_keyword(text: str) -> bool:
    """True when a write/DDL keyword occurs as a whole word, any case."""
    return bool(text) and _FORBIDDEN_PATTERN.search(text) is not None


def extract_sql_candidate(text: str) -> str:
    """
    Pick the part of an agent response most likely to hold the SQL.

    Preference order: fenced code block, inline code span containing SQL,
    then the whole text.

    Examples:
        >>> extract_sql_candidate("Here:\\n```sql\\nSELECT 1 FROM t\\n```")
        'SELECT 1 FROM t'
        >>> extract_sql_candidate("Run `SELECT * FROM t` now")
        'SELECT * FROM t'
    """
    if not text:
        return ""

    blocks = [b.strip() for b in _FENCED_BLOCK.findall(text) if b.strip()]
    if not blocks:
        unclosed = _UNCLOSED_FENCE.search(text)
        if unclosed and unclosed.group(1).strip():
            blocks = [unclosed.group(1).strip()]
    if blocks:
        for block in blocks:
            if _SQL_WORD.search(block):
                logger.debug(f"Extracted SQL from markdown code block ({len(block)} chars)")
                return block
        return blocks[0]

    stripped = text.strip()
    # A statement that already starts with SQL keeps its `quoted` identifiers
    if not _SQL_WORD.match(stripped):
        for span in _INLINE_SPAN.findall(text):
            if _SQL_WORD.search(span):
                return span.strip()

    return stripped


def find_statement_start(sql: str) -> int:
    """Offset of the first SELECT or ``WITH name AS (`` outside literals, or -1."""
    masked = mask_literals(sql)
    starts = [m.start() for m in (_SELECT_START.search(masked), _CTE_START.search(masked)) if m]
    return min(starts) if starts else -1


def _cut_at_terminator(sql: str) -> str:
    offset = 0
    for is_literal, text in split_literals(sql):
        if not is_literal and ";" in text:
            return sql[: offset + text.index(";")]
        offset += len(text)
    return sql


def sanitize_sql(text: str) -> str:
    """
    Clean raw agent output into a single read-only statement ending in ``;``.

    Returns an empty string when the text holds no statement or when any
    write/DDL keyword appears.

    Example:
        >>> sanitize_sql("```sql\\nSELECT p.full_name -- name\\nFROM patients p\\n```")
        'SELECT p.full_name FROM patients p;'
    """
    if not text or not text.strip():
        return ""

    candidate = extract_sql_candidate(text)
    if contains_forbidden_keyword(candidate):
        logger.warning("Rejected SQL candidate containing a write/DDL keyword")
        return ""

    # Comment and markup removal can each expose the other, so run to a fixpoint
    previous = None
    while previous != candidate:
        previous = candidate
        candidate = _clean_outside_literals(strip_comments(candidate))

    start = find_statement_start(candidate)
    if start < 0:
        return ""

    statement = re.sub(r"[\s;]+$", "", _cut_at_terminator(candidate[start:]))
    if not statement:
        return ""
    statement = f"{statement};"

    if contains_forbidden_keyword(statement):
        logger.warning("Rejected sanitized SQL containing a write/DDL keyword")
        return ""
    return statement
