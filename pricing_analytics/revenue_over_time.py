"""
Analyse de l'évolution du chiffre d'affaires.

Agrège les ventes par période (heure, jour, semaine, mois, trimestre ou
année selon la profondeur demandée) puis calcule :
- statistiques descriptives (total, moyenne, médiane, min, max),
- taux de croissance par période et global,
- saisonnalité (jour de semaine ou mois),
- tendance (hausse, baisse, stable, volatile),
- prévision optionnelle sur 12 périodes.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .dataset_builder import aggregate_by_period, build_sale_totals_dataframe
from .errors import (
    AnalyticsCalculationError,
    DatabaseConnectionError,
    InsufficientDataError,
)
from .interfaces.data_access import (
    check_database_connection,
    get_sale_date_bounds,
    get_sales_for_date_range,
)
from .time_periods import (
    DAILY,
    HOURLY,
    MONTHLY,
    QUARTERLY,
    WEEKLY,
    YEARLY,
    format_period,
    iter_period_starts,
    next_period_start,
    utc_now,
)

logger = logging.getLogger(__name__)

FORECAST_PERIODS = 12
SEASONALITY_MIN_POINTS = 7
SEASONAL_HIGH = 120
SEASONAL_LOW = 80
VOLATILITY_THRESHOLD = 30

TREND_INCREASING = "increasing"
TREND_DECREASING = "decreasing"
TREND_STABLE = "stable"
TREND_VOLATILE = "volatile"


@dataclass
class RevenueDataPoint:
    date: str
    value: float
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "value": self.value, "count": self.count}


@dataclass
class GrowthSummary:
    overall: float = 0.0
    periodic: List[float] = field(default_factory=list)
    average_periodic: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "periodic": self.periodic,
            "averagePeriodic": self.average_periodic,
        }


@dataclass
class SeasonalityResult:
    detected: bool = False
    pattern: Optional[str] = None
    indices: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"detected": self.detected, "pattern": self.pattern, "indices": self.indices}


@dataclass
class RevenueTrendAnalysis:
    data: List[RevenueDataPoint]
    total: float
    average: float
    median: float
    min: float
    max: float
    growth: GrowthSummary
    resolution: str
    start: datetime
    end: datetime
    trend: str
    seasonality: SeasonalityResult
    forecast: List[RevenueDataPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [p.to_dict() for p in self.data],
            "total": self.total,
            "average": self.average,
            "median": self.median,
            "min": self.min,
            "max": self.max,
            "growth": self.growth.to_dict(),
            "resolution": self.resolution,
            "dateRange": {"start": self.start.isoformat(), "end": self.end.isoformat()},
            "trend": self.trend,
            "seasonality": self.seasonality.to_dict(),
            "forecastData": [p.to_dict() for p in self.forecast],
        }


def determine_resolution(time_range_in_days: int) -> str:
    if time_range_in_days <= 0:
        return YEARLY
    if time_range_in_days <= 3:
        return HOURLY
    if time_range_in_days <= 14:
        return DAILY
    if time_range_in_days <= 90:
        return WEEKLY
    if time_range_in_days <= 365:
        return MONTHLY
    if time_range_in_days <= 730:
        return QUARTERLY
    return YEARLY


def resolve_date_range(
    time_range_in_days: int,
    now: datetime,
    tenant_id: Optional[str] = None,
) -> Tuple[datetime, datetime]:
    if time_range_in_days > 0:
        return now - timedelta(days=time_range_in_days), now

    oldest, _ = get_sale_date_bounds(tenant_id)
    return (oldest or now - timedelta(days=365)), now


def _growth_rate(previous: float, current: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def calculate_growth(values: List[float]) -> GrowthSummary:
    """Taux de croissance en pourcentage (par période, moyen et global)."""
    if len(values) < 2:
        return GrowthSummary()

    periodic = [_growth_rate(prev, curr) for prev, curr in zip(values, values[1:])]
    return GrowthSummary(
        overall=_growth_rate(values[0], values[-1]),
        periodic=periodic,
        average_periodic=float(np.mean(periodic)),
    )


def detect_seasonality(
    starts: List[datetime],
    values: List[float],
    resolution: str,
) -> SeasonalityResult:
    """
    Indices saisonniers (100 = moyenne) par jour de semaine (heure/jour)
    ou par mois (mensuel). Saisonnalité détectée si un indice dépasse
    120 ou passe sous 80.
    """
    if len(values) < SEASONALITY_MIN_POINTS:
        return SeasonalityResult()

    if resolution in (HOURLY, DAILY):
        pattern = "weekly"
        label = lambda d: d.strftime("%A")
    elif resolution == MONTHLY:
        pattern = "monthly"
        label = lambda d: d.strftime("%B")
    else:
        return SeasonalityResult()

    overall = float(np.mean(values))
    if overall <= 0:
        return SeasonalityResult()

    buckets: Dict[str, List[float]] = defaultdict(list)
    for start, value in zip(starts, values):
        buckets[label(start)].append(value)

    indices = {k: round(float(np.mean(v)) / overall * 100, 2) for k, v in buckets.items()}
    detected = any(i > SEASONAL_HIGH or i < SEASONAL_LOW for i in indices.values())
    return SeasonalityResult(detected=detected, pattern=pattern if detected else None, indices=indices)


def classify_trend(periodic_rates: List[float], seasonal: bool = False) -> str:
    """
    Volatile si l'écart-type des taux dépasse 30 points ; sinon hausse
    (>= 70 % de taux positifs, 60 % si saisonnier), baisse (<= 30 %,
    40 % si saisonnier) ou stable.
    """
    if not periodic_rates:
        return TREND_STABLE

    if float(np.std(periodic_rates)) > VOLATILITY_THRESHOLD:
        return TREND_VOLATILE

    positive_share = sum(1 for r in periodic_rates if r > 0) / len(periodic_rates)
    increasing_at, decreasing_at = (0.6, 0.4) if seasonal else (0.7, 0.3)

    if positive_share >= increasing_at:
        return TREND_INCREASING
    if positive_share <= decreasing_at:
        return TREND_DECREASING
    return TREND_STABLE


def build_forecast(
    last_start: datetime,
    last_value: float,
    average_growth_percent: float,
    resolution: str,
    periods: int = FORECAST_PERIODS,
) -> List[RevenueDataPoint]:
    rate = average_growth_percent / 100
    forecast: List[RevenueDataPoint] = []
    current = last_start
    value = last_value
    for _ in range(periods):
        current = next_period_start(current, resolution)
        value = max(0.0, value * (1 + rate))
        forecast.append(RevenueDataPoint(date=format_period(current, resolution), value=round(value, 2)))
    return forecast


def analyze_revenue(
    time_range_in_days: int,
    tenant_id: Optional[str] = None,
    include_forecast: bool = False,
    now: Optional[datetime] = None,
) -> RevenueTrendAnalysis:
    """
    Analyse du chiffre d'affaires sur les `time_range_in_days` derniers jours
    (0 : tout l'historique).

    Raises:
        DatabaseConnectionError: base injoignable
        InsufficientDataError: aucune vente sur la période
        AnalyticsCalculationError: toute autre erreur
    """
    check_database_connection()

    now = now or utc_now()
    days = max(int(time_range_in_days or 0), 0)
    resolution = determine_resolution(days)

    try:
        start, end = resolve_date_range(days, now, tenant_id)
        sales = get_sales_for_date_range(start, end, tenant_id)
        if not sales:
            raise InsufficientDataError("No revenue data found for the selected period.")

        starts = iter_period_starts(start, end, resolution)
        keys = [format_period(s, resolution) for s in starts]
        grouped = aggregate_by_period(
            build_sale_totals_dataframe(sales),
            lambda d: format_period(d, resolution),
            keys,
        )

        values = [float(v) for v in grouped["value"]]
        data = [
            RevenueDataPoint(date=key, value=round(value, 2), count=int(count))
            for key, value, count in zip(keys, values, grouped["count"])
        ]

        growth = calculate_growth(values)
        seasonality = detect_seasonality(starts, values, resolution)
        trend = classify_trend(growth.periodic, seasonality.detected)

        forecast: List[RevenueDataPoint] = []
        if include_forecast and starts:
            forecast = build_forecast(starts[-1], values[-1], growth.average_periodic, resolution)

        analysis = RevenueTrendAnalysis(
            data=data,
            total=round(float(np.sum(values)), 2),
            average=round(float(np.mean(values)), 2),
            median=round(float(np.median(values)), 2),
            min=round(float(np.min(values)), 2),
            max=round(float(np.max(values)), 2),
            growth=growth,
            resolution=resolution,
            start=start,
            end=end,
            trend=trend,
            seasonality=seasonality,
            forecast=forecast,
        )
    except (DatabaseConnectionError, InsufficientDataError):
        raise
    except Exception as e:
        logger.error(f"Error analyzing revenue: {e}")
        raise AnalyticsCalculationError(f"Failed to analyze revenue. {e}") from e

    logger.info(
        f"Revenue analysis ({resolution}): {len(data)} periods, total={analysis.total}, trend={trend}"
    )
    return analysis
