"""
Continuous confidence score for comparison verdicts.

Starts from 50 and moves with source agreement, volatility, amount of data,
number of sources, margin and leader-change risk. The result is clamped to
0-100 and labelled high (>= 70), medium (>= 50) or low.
"""

from typing import NamedTuple

from trends.mathutils import clamp

HIGH_THRESHOLD = 70
MEDIUM_THRESHOLD = 50


class ComparisonConfidence(NamedTuple):
    score: float
    label: str


def calculate_confidence_score(
    agreement_index: float = 50,
    volatility: float = 0,
    data_points: int = 0,
    source_count: int = 1,
    margin: float = 0,
    leader_change_risk: float = 0,
) -> float:
    confidence = 50.0
    # +-15 around an agreement of 50
    confidence += (agreement_index - 50) * 0.3
    confidence -= volatility * 0.25
    # full bonus from 50 points on
    confidence += min(20.0, (data_points / 50) * 20)
    confidence += min(15.0, (source_count - 1) * 7.5)
    confidence += min(10.0, margin * 0.5)
    confidence -= leader_change_risk * 0.15
    return clamp(confidence)


def get_confidence_label(score: float) -> str:
    if score >= HIGH_THRESHOLD:
        return "high"
    if score >= MEDIUM_THRESHOLD:
        return "medium"
    return "low"


def calculate_comparison_confidence(
    agreement_index: float,
    volatility: float,
    data_points: int,
    source_count: int,
    margin: float = 0,
    leader_change_risk: float = 0,
) -> ComparisonConfidence:
    score = calculate_confidence_score(
        agreement_index=agreement_index,
        volatility=volatility,
        data_points=data_points,
        source_count=source_count,
        margin=margin,
        leader_change_risk=leader_change_risk,
    )
    return ComparisonConfidence(score=score, label=get_confidence_label(score))
