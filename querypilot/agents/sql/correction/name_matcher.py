"""
Schema name matcher - finds the valid table/column a misspelled identifier
most likely meant.

Ranking is deliberately simple and deterministic:
  a. equal after removing underscores and case folding
  b. (tables only) equal to a singular/plural form
  c. one name is a prefix of the other, the shorter being longer than 2 chars
The first rank with a candidate wins; within a rank the first candidate in
schema order wins.
"""

from enum import Enum
from typing import List, Optional, Sequence, Tuple


class MatchRank(Enum):
    NORMALIZED_EQUAL = "normalized_equal"
    INFLECTION = "inflection"
    PREFIX = "prefix"


MIN_PREFIX_LENGTH = 3


def normalize_name(name: str) -> str:
    """
    Example:
        >>> normalize_name("Full_Name")
        'fullname'
    """
    return (name or "").strip("`\"' ").replace("_", "").lower()


def inflections(name: str) -> List[str]:
    """
    Singular/plural variants of a table name.

    Example:
        >>> inflections("patient")
        ['patients']
        >>> inflections("diagnoses")
        ['diagnos', 'diagnose', 'diagnosis']
    """
    lower = (name or "").lower()
    if not lower:
        return []
    forms: List[str] = []
    if lower.endswith("ies"):
        forms.append(lower[:-3] + "y")
    elif lower.endswith("is"):
        forms.append(lower[:-2] + "es")
    elif lower.endswith("es"):
        forms.extend([lower[:-2], lower[:-1]])
        if lower.endswith("ses"):
            forms.append(lower[:-2] + "is")
    elif lower.endswith("s"):
        forms.append(lower[:-1])
    else:
        if lower.endswith("y"):
            forms.append(lower[:-1] + "ies")
        if lower.endswith(("x", "ch", "sh")):
            forms.append(lower + "es")
        forms.append(lower + "s")
    return forms


def _is_prefix_match(a: str, b: str) -> bool:
    if min(len(a), len(b)) < MIN_PREFIX_LENGTH:
        return False
    return a.startswith(b) or b.startswith(a)


def rank_match(
    name: str,
    candidates: Sequence[str],
    allow_inflections: bool = False,
) -> Optional[Tuple[str, MatchRank]]:
    """Best candidate for ``name`` and the rank it won on, or None."""
    target = normalize_name(name)
    if not target:
        return None

    for candidate in candidates:
        if normalize_name(candidate) == target:
            return candidate, MatchRank.NORMALIZED_EQUAL

    if allow_inflections:
        forms = {normalize_name(f) for f in inflections(name)}
        for candidate in candidates:
            if normalize_name(candidate) in forms:
                return candidate, MatchRank.INFLECTION

    for candidate in candidates:
        if _is_prefix_match(normalize_name(candidate), target):
            return candidate, MatchRank.PREFIX

    return None


def find_best_match(
    name: str,
    candidates: Sequence[str],
    allow_inflections: bool = False,
) -> Optional[str]:
    """
    Example:
        >>> find_best_match("fullname", ["patient_id", "full_name", "dob"])
        'full_name'
        >>> find_best_match("patient", ["patients", "diagnoses"], allow_inflections=True)
        'patients'
    """
    ranked = rank_match(name, candidates, allow_inflections)
    return ranked[0] if ranked else None


def find_column_match(
    column: str,
    tables: Sequence[str],
    columns_by_table,
) -> Optional[Tuple[str, str]]:
    """
    Search ``tables`` in order for a column matching ``column``.

    Ranks are compared across all tables: an exact normalized match in a later
    table beats a prefix match in an earlier one.
    """
    best: Optional[Tuple[str, str, MatchRank]] = None
    order = [MatchRank.NORMALIZED_EQUAL, MatchRank.INFLECTION, MatchRank.PREFIX]
    for table in tables:
        ranked = rank_match(column, columns_by_table(table))
        if ranked is None:
            continue
        candidate, rank = ranked
        if best is None or order.index(rank) < order.index(best[2]):
            best = (table, candidate, rank)
            if rank == MatchRank.NORMALIZED_EQUAL:
                break
    return (best[0], best[1]) if best else None
