"""
Evidence cards shown next to a verdict, one per score component.
"""

import math
from typing import Iterable, List, Mapping

from pydantic import BaseModel

from trends.mathutils import round_half_up, to_number
from trends.metrics import SOURCE_NAMES

PLACEHOLDERS = ("N/A", "n/a", "-", "TBD")


class EvidenceCard(BaseModel):
    source: str
    term_a_value: float
    term_b_value: float
    direction: str  # termA | termB | tie
    magnitude: float
    interpretation: str


def is_valid_evidence(item: EvidenceCard) -> bool:
    """Cards with no real numbers or placeholder text are hidden."""
    a, b = item.term_a_value, item.term_b_value
    if not isinstance(a, (int, float)) or not isinstance(b, (int, float)):
        return False
    if math.isnan(a) or math.isnan(b):
        return False
    if a == 0 and b == 0:
        return False

    text = (item.interpretation or "").strip()
    if not text or text in PLACEHOLDERS or "no data" in text.lower():
        return False
    return True


def filter_valid_evidence(items: Iterable[EvidenceCard]) -> List[EvidenceCard]:
    return [item for item in items if is_valid_evidence(item)]


def build_evidence_cards(
    term_a: str,
    term_b: str,
    breakdown_a: Mapping[str, float],
    breakdown_b: Mapping[str, float],
) -> List[EvidenceCard]:
    """Cards for each shared breakdown component, already filtered."""
    cards = []
    for key, name in SOURCE_NAMES.items():
        if key not in breakdown_a or key not in breakdown_b:
            continue
        a, b = to_number(breakdown_a[key]), to_number(breakdown_b[key])
        magnitude = round_half_up(abs(a - b), 1)
        if a > b:
            direction, interpretation = "termA", f"{term_a} leads by {magnitude:g} points"
        elif b > a:
            direction, interpretation = "termB", f"{term_b} leads by {magnitude:g} points"
        else:
            direction, interpretation = "tie", f"{term_a} and {term_b} are level"
        cards.append(EvidenceCard(
            source=name,
            term_a_value=a,
            term_b_value=b,
            direction=direction,
            magnitude=magnitude,
            interpretation=interpretation,
        ))
    return filter_valid_evidence(cards)
