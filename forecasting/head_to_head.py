"""
Head-to-head analytics over two term forecasts.

Draws are uniform inside each point's 80% band, which is a rough stand-in
for the forecast distribution but keeps the simulation cheap.
"""

from dataclasses import asdict, dataclass
from typing import Dict, Optional

import numpy as np

from forecasting.core import ForecastResult

SAMPLES = 1000


@dataclass
class HeadToHeadForecast:
    winner_probability: float  # P(term B beats term A), 0-100
    expected_margin_points: float  # mean of B - A over the horizon
    lead_change_risk: str  # low | medium | high
    current_margin: float
    forecast_horizon: int
    crossover_probability: float = 0.0

    def to_dict(self) -> Dict:
        return asdict(self)


def _draw(forecast: ForecastResult, horizon: int, rng: np.random.Generator) -> np.ndarray:
    points = forecast.points[:horizon]
    values = np.array([p.value for p in points])
    ranges = np.array([p.upper80 - p.lower80 for p in points])
    return values + (rng.random((SAMPLES, horizon)) - 0.5) * ranges


def compute_head_to_head(
    forecast_a: ForecastResult,
    forecast_b: ForecastResult,
    current_a: float,
    current_b: float,
    rng: Optional[np.random.Generator] = None,
) -> HeadToHeadForecast:
    """Pass a seeded ``rng`` for reproducible results."""
    rng = rng or np.random.default_rng()
    horizon = min(len(forecast_a.points), len(forecast_b.points))
    current_margin = current_b - current_a

    if horizon == 0:
        return HeadToHeadForecast(
            winner_probability=50.0,
            expected_margin_points=0.0,
            lead_change_risk="medium",
            current_margin=current_margin,
            forecast_horizon=0,
        )

    margins = _draw(forecast_b, horizon, rng) - _draw(forecast_a, horizon, rng)
    mean_margins = margins.mean(axis=1)
    winner_probability = float(np.mean(mean_margins > 0)) * 100
    expected_margin = float(mean_margins.mean())

    # Independent draws for the crossover estimate
    paths = _draw(forecast_b, horizon, rng) - _draw(forecast_a, horizon, rng)
    previous = np.concatenate([np.full((SAMPLES, 1), current_margin), paths[:, :-1]], axis=1)
    crossed = ((previous > 0) & (paths < 0)) | ((previous < 0) & (paths > 0))
    crossover_probability = float(np.mean(crossed.any(axis=1)))

    avg_confidence = (forecast_a.confidence_score + forecast_b.confidence_score) / 2
    leader_value = max(current_a, current_b)
    margin_percent = abs(current_margin) / leader_value if leader_value > 0 else 0.0

    if margin_percent < 0.1 or crossover_probability > 0.3 or avg_confidence < 50:
        risk = "high"
    elif margin_percent < 0.2 or crossover_probability > 0.15 or avg_confidence < 70:
        risk = "medium"
    else:
        risk = "low"

    return HeadToHeadForecast(
        winner_probability=winner_probability,
        expected_margin_points=expected_margin,
        lead_change_risk=risk,
        current_margin=current_margin,
        forecast_horizon=horizon,
        crossover_probability=crossover_probability,
    )
