# refurb_dashboard/modules/analytics/forecasting.py
"""
Trend extraction and a naive linear forecast over monthly series.

These are heuristics, not a statistical model: ordinary least squares on the
period index, a coefficient-of-variation check for volatility, and a
1.96-sigma band around the projected line.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ...constants import FORECAST_PERIODS
from ...utils.helpers import add_months


@dataclass(frozen=True)
class Regression:
    slope: float
    intercept: float
    r2: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


@dataclass(frozen=True)
class Trend:
    direction: str  # increasing | decreasing | stable | volatile
    strength: int
    change_percent: float
    period_over_period: float


@dataclass(frozen=True)
class Seasonality:
    detected: bool
    peak_periods: List[str] = field(default_factory=list)
    trough_periods: List[str] = field(default_factory=list)
    strength: float = 0.0


@dataclass(frozen=True)
class ForecastPoint:
    period: str
    predicted: float
    lower_bound: float
    upper_bound: float


def linear_regression(values: Sequence[float]) -> Regression:
    n = len(values)
    if n == 0:
        return Regression(0.0, 0.0, 0.0)
    if n == 1:
        return Regression(0.0, float(values[0]), 0.0)
    xs = range(n)
    sum_x = sum(xs)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_x2 = sum(x * x for x in xs)
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n

    mean = sum_y / n
    ss_total = sum((y - mean) ** 2 for y in values)
    ss_model = sum((slope * x + intercept - mean) ** 2 for x in xs)
    r2 = ss_model / ss_total if ss_total > 0 else 0.0
    return Regression(slope, intercept, min(1.0, max(0.0, r2)))


def analyze_trend(values: Sequence[float]) -> Trend:
    if len(values) < 2:
        return Trend("stable", 50, 0.0, 0.0)

    reg = linear_regression(values)
    mean = sum(values) / len(values)
    first, last, prev = values[0], values[-1], values[-2]
    change = (last - first) / first * 100 if first else 0.0
    pop = (last - prev) / prev * 100 if prev > 0 else 0.0

    if mean > 0:
        volatility = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values)) / mean
    else:
        volatility = 0.0

    if volatility > 0.3:
        direction = "volatile"
    elif abs(reg.slope) < abs(mean) * 0.01:
        direction = "stable"
    elif reg.slope > 0:
        direction = "increasing"
    else:
        direction = "decreasing"

    return Trend(direction, round(reg.r2 * 100), round(change, 2), round(pop, 2))


def moving_average(values: Sequence[float], window: int) -> List[Optional[float]]:
    """Trailing mean; None until `window` points are available."""
    out: List[Optional[float]] = []
    for i in range(len(values)):
        if i < window - 1:
            out.append(None)
        else:
            out.append(sum(values[i - window + 1:i + 1]) / window)
    return out


def detect_seasonality(points: Sequence[Tuple[str, float]], limit_n: int = 3) -> Seasonality:
    """Peaks above 1.2x the mean, troughs below 0.8x; needs six or more points."""
    if len(points) < 6:
        return Seasonality(False)
    mean = sum(v for _p, v in points) / len(points)
    peaks = [p for p, v in points if v > mean * 1.2]
    troughs = [p for p, v in points if v < mean * 0.8]
    detected = bool(peaks or troughs)
    strength = min(1.0, (len(peaks) + len(troughs)) / len(points) * 2) if detected else 0.0
    return Seasonality(detected, peaks[:limit_n], troughs[:limit_n], strength)


def forecast_series(
    periods: Sequence[str],
    values: Sequence[float],
    horizon: int = FORECAST_PERIODS,
) -> List[ForecastPoint]:
    """
    Project `horizon` periods past the last one along the fitted line, with a
    +/-1.96 sigma band from the in-sample residuals. Negative values floor at 0.
    """
    if not periods or not values:
        return []
    reg = linear_regression(values)
    n = len(values)
    sigma = math.sqrt(sum((v - reg.predict(i)) ** 2 for i, v in enumerate(values)) / n)
    out: List[ForecastPoint] = []
    for step in range(1, horizon + 1):
        predicted = reg.predict(n - 1 + step)
        out.append(ForecastPoint(
            period=add_months(periods[-1], step),
            predicted=max(0.0, predicted),
            lower_bound=max(0.0, predicted - 1.96 * sigma),
            upper_bound=max(0.0, predicted + 1.96 * sigma),
        ))
    return out
