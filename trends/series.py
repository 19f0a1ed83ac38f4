"""
Helpers over comparison series.

A series is a list of rows shaped like
``{"date": "2024-01-01", "chatgpt": 71, "gemini": 38}``.
"""

from typing import Any, Dict, List, Optional, Sequence

from trends.mathutils import round_half_up, to_number

SeriesPoint = Dict[str, Any]


def term_keys(series: Sequence[SeriesPoint]) -> List[str]:
    """Value columns, taken from the first row."""
    if not series:
        return []
    return [key for key in series[0].keys() if key != "date"]


def smooth_series(series: Optional[List[SeriesPoint]], window: int = 4) -> Optional[List[SeriesPoint]]:
    """
    Trailing rolling mean over ``window`` rows, rounded to 2 decimals.

    Only the value columns present in the first row are smoothed. The input
    is returned unchanged when window <= 1 or the series is empty/None.
    """
    if not series or window <= 1:
        return series

    keys = term_keys(series)
    smoothed = []
    for i, row in enumerate(series):
        start = max(0, i - window + 1)
        chunk = series[start:i + 1]
        out = {"date": row.get("date")}
        for key in keys:
            values = [to_number(r.get(key)) for r in chunk]
            out[key] = round_half_up(sum(values) / len(values), 2)
        smoothed.append(out)
    return smoothed


def non_zero_ratio(series: Optional[Sequence[SeriesPoint]]) -> float:
    """Share of rows where at least one numeric value is positive."""
    if not series:
        return 0.0

    non_zero = 0
    for row in series:
        for key, value in row.items():
            if key == "date" or isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            if value > 0:
                non_zero += 1
                break
    return non_zero / len(series)


def compute_stats(series: Sequence[SeriesPoint], terms: Sequence[str]) -> Dict[str, Any]:
    """
    Per-term global average (1 decimal) and peak.

    Missing cells count as 0. Peaks keep the first occurrence of the maximum;
    with an empty series each peak is ``{"value": -1, "date": ""}`` and the
    averages are NaN.
    """
    global_avg: Dict[str, float] = {}
    peaks = []
    for term in terms:
        values = [to_number(row.get(term)) for row in series]
        if values:
            global_avg[term] = round_half_up(sum(values) / len(values), 1)
        else:
            global_avg[term] = float("nan")

        peak_value, peak_date = -1.0, ""
        for row, value in zip(series, values):
            if value > peak_value:
                peak_value, peak_date = value, row.get("date", "")
        peaks.append({"term": term, "date": peak_date, "value": peak_value})

    return {"global_avg": global_avg, "peaks": peaks}


def term_values(series: Sequence[SeriesPoint], term: str) -> List[float]:
    return [to_number(row.get(term)) for row in series]


def share_stats(series: Sequence[SeriesPoint], term_a: str, term_b: str) -> Dict[str, Dict[str, float]]:
    """Total, share of combined interest and average for both terms."""
    values_a = term_values(series, term_a)
    values_b = term_values(series, term_b)
    total_a, total_b = sum(values_a), sum(values_b)
    total = total_a + total_b
    return {
        "term_a": {
            "total": total_a,
            "share": (total_a / total) * 100 if total > 0 else 50.0,
            "average": total_a / len(values_a) if values_a else 0.0,
        },
        "term_b": {
            "total": total_b,
            "share": (total_b / total) * 100 if total > 0 else 50.0,
            "average": total_b / len(values_b) if values_b else 0.0,
        },
    }
