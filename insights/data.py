"""
Summary statistics fed to the insight prompt.
"""

from typing import Optional, Sequence

from pydantic import BaseModel

from trends.mathutils import round_half_up, to_number
from trends.series import SeriesPoint, term_values

SPIKE_THRESHOLD = 100  # percent, week over week
TREND_THRESHOLD = 20  # percent, first half vs second half


class RecentSpike(BaseModel):
    term: str
    magnitude: int
    date: str


class InsightData(BaseModel):
    term_a: str
    term_b: str
    current_leader: str
    advantage: int
    current_week_avg_a: int
    current_week_avg_b: int
    peak_a_date: str
    peak_a_value: float
    peak_b_date: str
    peak_b_value: float
    volatility_a: float
    volatility_b: float
    recent_spike: Optional[RecentSpike] = None
    crossover_count: int
    trend_direction: str


def _avg(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _volatility(values: Sequence[float]) -> float:
    """Coefficient of variation in percent."""
    if not values:
        return 0.0
    m = _avg(values)
    variance = sum((v - m) ** 2 for v in values) / len(values)
    return (variance ** 0.5 / m) * 100 if m > 0 else 0.0


def _peak(series: Sequence[SeriesPoint], term: str):
    value, date = 0.0, ""
    for point in series:
        v = to_number(point.get(term))
        if v > value:
            value, date = v, str(point.get("date", ""))
    return value, date


def _week_change(values: Sequence[float]) -> int:
    recent, previous = _avg(values[-7:]), _avg(values[-14:-7])
    return int(round_half_up((recent - previous) / previous * 100)) if previous > 0 else 0


def prepare_insight_data(term_a: str, term_b: str, series: Sequence[SeriesPoint]) -> InsightData:
    values_a = term_values(series, term_a)
    values_b = term_values(series, term_b)

    week_a = _avg(values_a[-7:])
    week_b = _avg(values_b[-7:])
    leader = term_a if week_a > week_b else term_b
    low, high = min(week_a, week_b), max(week_a, week_b)
    advantage = int(round_half_up((high - low) / low * 100)) if low > 0 else 0

    peak_a_value, peak_a_date = _peak(series, term_a)
    peak_b_value, peak_b_date = _peak(series, term_b)

    recent_spike = None
    if len(series) >= 14:
        spike_a, spike_b = _week_change(values_a), _week_change(values_b)
        last_date = str(series[-1].get("date", ""))
        if spike_a > SPIKE_THRESHOLD:
            recent_spike = RecentSpike(term=term_a, magnitude=spike_a, date=last_date)
        elif spike_b > SPIKE_THRESHOLD:
            recent_spike = RecentSpike(term=term_b, magnitude=spike_b, date=last_date)

    crossovers = 0
    previous_leader = None
    for a, b in zip(values_a, values_b):
        point_leader = term_a if a > b else term_b
        if previous_leader is not None and point_leader != previous_leader:
            crossovers += 1
        previous_leader = point_leader

    # Direction follows term A across the two halves of the window
    mid = len(values_a) // 2
    first, second = _avg(values_a[:mid]), _avg(values_a[mid:])
    growth = (second - first) / first * 100 if first > 0 else 0.0
    if growth > TREND_THRESHOLD:
        direction = "rising"
    elif growth < -TREND_THRESHOLD:
        direction = "falling"
    else:
        direction = "stable"

    return InsightData(
        term_a=term_a,
        term_b=term_b,
        current_leader=leader,
        advantage=advantage,
        current_week_avg_a=int(round_half_up(week_a)),
        current_week_avg_b=int(round_half_up(week_b)),
        peak_a_date=peak_a_date,
        peak_a_value=peak_a_value,
        peak_b_date=peak_b_date,
        peak_b_value=peak_b_value,
        volatility_a=round_half_up(_volatility(values_a), 1),
        volatility_b=round_half_up(_volatility(values_b), 1),
        recent_spike=recent_spike,
        crossover_count=crossovers,
        trend_direction=direction,
    )
