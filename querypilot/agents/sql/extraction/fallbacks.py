"""
Intent fallback templates.

When the generation agent produces nothing usable, the question's keywords
select a canned read-only query. Rules are checked in order; the last rule
has no keyword groups and always matches.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

_CITY_TEMPLATE = "SELECT p.patient_id, p.gender, p.dob, p.state, p.city FROM patients p LIMIT 10;"

DEFAULT_FALLBACK_SQL = "SELECT p.patient_id, p.gender, p.dob, p.state FROM patients p LIMIT 10;"


@dataclass(frozen=True)
class FallbackRule:
    """
    A template chosen when every keyword group has a hit in the question.

    Each group is a tuple of alternatives matched as lowercase substrings, so
    ``("medication", "drug")`` matches "drugs" and "Medications".
    """

    name: str
    keyword_groups: Tuple[Tuple[str, ...], ...]
    template: str

    def matches(self, question: str) -> bool:
        text = (question or "").lower()
        return all(any(k in text for k in group) for group in self.keyword_groups)


DEFAULT_FALLBACK_RULES: Tuple[FallbackRule, ...] = (
    FallbackRule("patient_medications", (("patient",), ("medication", "drug")), _CITY_TEMPLATE),
    FallbackRule("patient_labs", (("patient",), ("lab", "test", "result")), _CITY_TEMPLATE),
    FallbackRule("patient_risk", (("patient",), ("risk", "high", "low")), _CITY_TEMPLATE),
    FallbackRule(
        "medications",
        (("medication", "drug"),),
        "SELECT p.patient_id, p.medications FROM patients p WHERE p.medications IS NOT NULL LIMIT 10;",
    ),
    FallbackRule("risk", (("risk",),), "SELECT rd.record_id, rd.risk_category FROM risk_details rd LIMIT 10;"),
    FallbackRule("default", (), DEFAULT_FALLBACK_SQL),
)


def select_fallback(question: str, rules: Sequence[FallbackRule] = DEFAULT_FALLBACK_RULES) -> Optional[FallbackRule]:
    """First rule matching the question, or None when no rule matches."""
    for rule in rules:
        if rule.matches(question):
            return rule
    return None
