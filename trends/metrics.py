"""
Derived metrics for a comparison result.

- Volatility, stability class (stable / hype / volatile)
- Agreement between the score components of both terms
- Change versus the previous period, taken from a stored snapshot when there
  is one and from the first half of the series otherwise
- Top drivers and risk flags
"""

from typing import Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, Field

from trends.confidence import calculate_comparison_confidence
from trends.mathutils import to_number
from trends.series import SeriesPoint

DISAGREEMENT_THRESHOLD = 60

SOURCE_NAMES = {
    "search_interest": "Search Interest",
    "social_buzz": "Social Buzz",
    "authority": "Authority",
    "momentum": "Momentum",
}


class Driver(BaseModel):
    name: str
    impact: float


class ChangeMetrics(BaseModel):
    gap_change_points: float = 0
    confidence_change: float = 0
    volatility_delta: float = 0
    agreement_change: float = 0


class ComparisonMetrics(ChangeMetrics):
    margin_points: float
    confidence: float
    volatility: float
    agreement_index: float
    disagreement_flag: bool
    stability: str
    leader_change_risk: float
    top_drivers: List[Driver] = Field(default_factory=list)
    risk_flags: List[str] = Field(default_factory=list)


def _values(series: Sequence[SeriesPoint], term: str) -> List[float]:
    return [v for v in (to_number(p.get(term)) for p in series) if v >= 0]


def calculate_volatility(series: Optional[Sequence[SeriesPoint]], term: str) -> float:
    """Coefficient of variation on a 0-100 scale."""
    if not series or len(series) < 2:
        return 0.0
    values = _values(series, term)
    if len(values) < 2:
        return 0.0

    mean = sum(values) / len(values)
    if mean <= 0:
        return 0.0
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return min(100.0, (variance ** 0.5 / mean) * 100)


def calculate_agreement_index(
    breakdown_a: Optional[Mapping[str, float]],
    breakdown_b: Optional[Mapping[str, float]],
    weights: Optional[Mapping[str, float]] = None,
) -> float:
    """
    Weighted share of components that point the same way as the overall lead.

    A component where both terms are level agrees with anything. Missing
    breakdowns are neutral (50).
    """
    if not breakdown_a or not breakdown_b:
        return 50.0

    sources = [k for k in breakdown_a if k != "overall"]
    if not sources:
        return 50.0

    lead = sum(to_number(breakdown_a.get(s)) - to_number(breakdown_b.get(s)) for s in sources)
    overall_direction = (lead > 0) - (lead < 0)

    total_weight = agreement_weight = 0.0
    for source in sources:
        diff = to_number(breakdown_a.get(source)) - to_number(breakdown_b.get(source))
        direction = (diff > 0) - (diff < 0)
        weight = (weights or {}).get(source) or 1
        total_weight += weight
        if direction == 0 or overall_direction == 0 or direction == overall_direction:
            agreement_weight += weight

    return (agreement_weight / total_weight) * 100 if total_weight > 0 else 50.0


def classify_stability(series: Optional[Sequence[SeriesPoint]], term: str, volatility: float) -> str:
    if not series or len(series) < 7:
        return "volatile"
    values = _values(series, term)
    if len(values) < 7:
        return "volatile"

    recent = values[-10:]
    baseline = values[:-10]
    baseline_avg = sum(baseline) / len(baseline) if baseline else 0.0
    recent_max = max(recent)
    recent_avg = sum(recent) / len(recent)

    spike_ratio = recent_max / baseline_avg if baseline_avg > 0 else 0.0
    variance = sum((v - recent_avg) ** 2 for v in recent) / len(recent)
    # One spike dominating, or a sharp rise that already fell back
    is_hype = spike_ratio > 2.5 or (variance > baseline_avg * 0.5 and recent[-1] < recent_max * 0.7)
    if is_hype:
        return "hype"
    if volatility > 40:
        return "volatile"
    return "stable"


def calculate_change_metrics(current: Mapping[str, float], previous: Mapping[str, float]) -> ChangeMetrics:
    """Both mappings carry margin_points, confidence, volatility, agreement_index."""
    return ChangeMetrics(
        gap_change_points=current["margin_points"] - previous["margin_points"],
        confidence_change=current["confidence"] - previous["confidence"],
        volatility_delta=current["volatility"] - previous["volatility"],
        agreement_change=current["agreement_index"] - previous["agreement_index"],
    )


def extract_top_drivers(
    breakdown_a: Optional[Mapping[str, float]],
    breakdown_b: Optional[Mapping[str, float]],
    limit: int = 2,
) -> List[Driver]:
    if not breakdown_a or not breakdown_b:
        return []

    drivers = [
        Driver(
            name=SOURCE_NAMES.get(key, key),
            impact=abs(to_number(value_a) - to_number(breakdown_b.get(key))),
        )
        for key, value_a in breakdown_a.items()
        if key != "overall"
    ]
    drivers.sort(key=lambda d: d.impact, reverse=True)
    return drivers[:limit]


def generate_risk_flags(volatility: float, agreement_index: float, stability: str, has_spike: bool) -> List[str]:
    flags = []
    if volatility > 50:
        flags.append("High volatility detected")
    if agreement_index < DISAGREEMENT_THRESHOLD:
        flags.append("Source disagreement")
    if stability == "hype":
        flags.append("Potential hype pattern")
    if has_spike:
        flags.append("Recent spike detected")
    return flags


def estimate_leader_change_risk(volatility: float, margin: float) -> float:
    """Volatile series with a thin margin are the likeliest to flip."""
    margin_risk = 50 if margin < 5 else 30 if margin < 15 else 0
    return min(100.0, volatility * 0.7 + margin_risk)


def _previous_period(series: Sequence[SeriesPoint], term_a: str, term_b: str,
                     source_count: int) -> Optional[Dict[str, float]]:
    midpoint = len(series) // 2
    previous = series[:midpoint]
    if not previous or not series[midpoint:]:
        return None

    volatility = (calculate_volatility(previous, term_a) + calculate_volatility(previous, term_b)) / 2
    avg_a = sum(to_number(p.get(term_a)) for p in previous) / len(previous)
    avg_b = sum(to_number(p.get(term_b)) for p in previous) / len(previous)
    margin = abs(avg_a - avg_b)
    # Clear leader means the sources were probably aligned
    agreement = 70.0 if margin > 5 else 50.0

    confidence = calculate_comparison_confidence(
        agreement, volatility, len(previous), source_count, margin,
        estimate_leader_change_risk(volatility, margin),
    ).score
    return {
        "margin_points": margin,
        "confidence": confidence,
        "volatility": volatility,
        "agreement_index": agreement,
    }


def compute_comparison_metrics(
    series: Sequence[SeriesPoint],
    term_a: str,
    term_b: str,
    winner: str,
    margin: float,
    breakdown_a: Optional[Mapping[str, float]],
    breakdown_b: Optional[Mapping[str, float]],
    previous_snapshot=None,
) -> ComparisonMetrics:
    """
    Compute every metric for one comparison.

    ``previous_snapshot`` is anything with ``margin``, ``volatility`` and
    ``agreement_index`` attributes, normally a stored ComparisonSnapshot.
    """
    volatility = (calculate_volatility(series, term_a) + calculate_volatility(series, term_b)) / 2
    agreement_index = calculate_agreement_index(breakdown_a, breakdown_b)
    stability = classify_stability(series, winner, volatility)

    recent = [to_number(p.get(winner)) for p in series[-10:]]
    has_spike = bool(recent) and max(recent) > (sum(recent) / len(recent)) * 2

    leader_change_risk = estimate_leader_change_risk(volatility, margin)
    source_count = max(1, len([k for k in (breakdown_a or {}) if k != "overall"]))

    confidence = calculate_comparison_confidence(
        agreement_index, volatility, len(series), source_count, margin, leader_change_risk
    ).score

    current = {
        "margin_points": margin,
        "confidence": confidence,
        "volatility": volatility,
        "agreement_index": agreement_index,
    }

    previous = None
    if previous_snapshot is not None and previous_snapshot.volatility is not None:
        prev_volatility = previous_snapshot.volatility
        prev_agreement = previous_snapshot.agreement_index if previous_snapshot.agreement_index is not None else 50.0
        prev_margin = previous_snapshot.margin
        previous = {
            "margin_points": prev_margin,
            "confidence": calculate_comparison_confidence(
                prev_agreement, prev_volatility, len(series), source_count, prev_margin,
                estimate_leader_change_risk(prev_volatility, prev_margin),
            ).score,
            "volatility": prev_volatility,
            "agreement_index": prev_agreement,
        }
    elif series:
        previous = _previous_period(series, term_a, term_b, source_count)

    changes = calculate_change_metrics(current, previous) if previous else ChangeMetrics()

    return ComparisonMetrics(
        margin_points=margin,
        confidence=confidence,
        volatility=volatility,
        agreement_index=agreement_index,
        disagreement_flag=agreement_index < DISAGREEMENT_THRESHOLD,
        stability=stability,
        leader_change_risk=leader_change_risk,
        gap_change_points=changes.gap_change_points,
        confidence_change=changes.confidence_change,
        volatility_delta=changes.volatility_delta,
        agreement_change=changes.agreement_change,
        top_drivers=extract_top_drivers(breakdown_a, breakdown_b, 2),
        risk_flags=generate_risk_flags(volatility, agreement_index, stability, has_spike),
    )
