"""
Calculateur de revenus projetés.

Produit deux séries :
- `actual` : revenus réalisés par période (jour, semaine ou mois),
- `projected` : périodes futures jusqu'à la fin de la fenêtre,
  extrapolées à partir de l'historique.

La fenêtre est symétrique autour d'aujourd'hui : on regarde autant de
jours en arrière qu'on projette en avant. La projection est
déterministe (pas de bruit aléatoire).
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd  # type: ignore

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
    MONTHLY,
    WEEKLY,
    format_period,
    format_week_range,
    iter_period_starts,
    period_start,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_GROWTH_RATE = 0.01
MAX_GROWTH_RATE = 0.2

# Nombre minimal de points réels pour chaque modèle saisonnier
MIN_POINTS = {DAILY: 7, WEEKLY: 4, MONTHLY: 6}


@dataclass
class TimeSeriesPoint:
    date: str
    value: float
    is_projected: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "value": self.value, "isProjected": self.is_projected}


@dataclass
class ProjectedEarningsReport:
    actual: List[TimeSeriesPoint] = field(default_factory=list)
    projected: List[TimeSeriesPoint] = field(default_factory=list)
    today_index: int = -1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actual": [p.to_dict() for p in self.actual],
            "projected": [p.to_dict() for p in self.projected],
            "todayIndex": self.today_index,
        }


def determine_resolution(time_range_in_days: int) -> str:
    """0 (tout l'historique) : mensuel ; <= 14 j : jour ; <= 90 j : semaine ; sinon mois."""
    if time_range_in_days <= 0:
        return MONTHLY
    if time_range_in_days <= 14:
        return DAILY
    if time_range_in_days <= 90:
        return WEEKLY
    return MONTHLY


def format_earnings_period(value: datetime, resolution: str) -> str:
    if resolution == WEEKLY:
        return format_week_range(value)
    return format_period(value, resolution)


def resolve_date_range(
    time_range_in_days: int,
    now: datetime,
    tenant_id: Optional[str] = None,
) -> Tuple[datetime, datetime]:
    """
    Fenêtre [now - jours, now + jours].

    Pour tout l'historique : de la plus ancienne vente jusqu'à la plus
    récente + la même durée ; sans vente, now +/- 365 jours.
    """
    if time_range_in_days > 0:
        span = timedelta(days=time_range_in_days)
        return now - span, now + span

    oldest, newest = get_sale_date_bounds(tenant_id)
    if oldest is None or newest is None:
        return now - timedelta(days=365), now + timedelta(days=365)
    return oldest, newest + (newest - oldest)


def calculate_growth_rate(values: List[float]) -> float:
    """
    Médiane des taux de croissance d'une période à l'autre (valeurs non nulles),
    bornée à +/- 20 %. 1 % par défaut si moins de deux valeurs exploitables.
    """
    non_zero = [v for v in values if v > 0]
    if len(non_zero) < 2:
        return DEFAULT_GROWTH_RATE

    rates = [(curr - prev) / prev for prev, curr in zip(non_zero, non_zero[1:])]
    rate = float(np.median(rates))
    if not np.isfinite(rate):
        return DEFAULT_GROWTH_RATE
    return max(-MAX_GROWTH_RATE, min(MAX_GROWTH_RATE, rate))


def _seasonal_factors(points: List[Tuple[datetime, float]], key) -> Dict[int, float]:
    """Moyenne par saison (jour de semaine, mois...) rapportée à la moyenne globale."""
    overall = float(np.mean([v for _, v in points])) if points else 0.0
    if overall <= 0:
        return {}

    buckets: Dict[int, List[float]] = defaultdict(list)
    for start, value in points:
        buckets[key(start)].append(value)
    return {k: float(np.mean(v)) / overall for k, v in buckets.items()}


def project_values(
    actual: List[Tuple[datetime, float]],
    future: List[datetime],
    resolution: str,
) -> List[float]:
    """
    Valeurs projetées pour chaque début de période de `future`.

    - jour : facteur jour de semaine x moyenne x (1 + g * i / 30)
    - semaine : moyenne mobile sur 4 semaines x (1 + g * i / 12)
    - mois : facteur mensuel x moyenne x (1 + g * (i // 12))
    Avec trop peu d'historique : dernière valeur x (1 + g) ** (i * 0.5).
    """
    values = [v for _, v in actual]
    if not values:
        return [0.0 for _ in future]

    growth = calculate_growth_rate(values)
    average = float(np.mean(values))
    last = values[-1]

    if len(values) < MIN_POINTS.get(resolution, 0):
        return [
            max(0.0, round(last * (1 + growth) ** (i * 0.5), 2))
            for i in range(1, len(future) + 1)
        ]

    projected: List[float] = []
    if resolution == DAILY:
        factors = _seasonal_factors(actual, lambda d: d.weekday())
        for i, start in enumerate(future, start=1):
            value = average * factors.get(start.weekday(), 1.0) * (1 + growth * i / 30)
            projected.append(max(0.0, round(value, 2)))
    elif resolution == WEEKLY:
        moving_average = float(np.mean(values[-4:]))
        for i, _ in enumerate(future, start=1):
            value = moving_average * (1 + growth * i / 12)
            projected.append(max(0.0, round(value, 2)))
    else:
        factors = _seasonal_factors(actual, lambda d: d.month)
        for i, start in enumerate(future, start=1):
            value = average * factors.get(start.month, 1.0) * (1 + growth * (i // 12))
            projected.append(max(0.0, round(value, 2)))
    return projected


def calculate_projected_earnings(
    time_range_in_days: int,
    tenant_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ProjectedEarningsReport:
    """
    Revenus réalisés et projetés sur une fenêtre centrée sur aujourd'hui.

    Raises:
        DatabaseConnectionError: base injoignable
        InsufficientDataError: aucune vente sur la période passée
        AnalyticsCalculationError: toute autre erreur
    """
    check_database_connection()

    now = now or utc_now()
    days = max(int(time_range_in_days or 0), 0)
    resolution = determine_resolution(days)

    try:
        start, end = resolve_date_range(days, now, tenant_id)
        logger.info(
            f"Calculating projected earnings ({resolution}) from {start.date()} to {end.date()}"
        )

        sales = get_sales_for_date_range(start, now, tenant_id)
        if not sales:
            raise InsufficientDataError("No sales data found for the selected period.")

        grouped = aggregate_by_period(
            build_sale_totals_dataframe(sales),
            lambda d: period_start(d, resolution),
        )
        history: List[Tuple[datetime, float]] = [
            (pd.Timestamp(ts).to_pydatetime(), float(value)) for ts, value in grouped["value"].items()
        ]

        actual = [
            TimeSeriesPoint(date=format_earnings_period(ts, resolution), value=round(v, 2))
            for ts, v in history
        ]
        actual_keys = {p.date for p in actual}

        future = [
            ts for ts in iter_period_starts(now, end, resolution)
            if format_earnings_period(ts, resolution) not in actual_keys
        ]
        projected = [
            TimeSeriesPoint(
                date=format_earnings_period(ts, resolution),
                value=value,
                is_projected=True,
            )
            for ts, value in zip(future, project_values(history, future, resolution))
        ]

        today_key = format_earnings_period(now, resolution)
        keys = [p.date for p in actual]
        today_index = keys.index(today_key) if today_key in keys else len(actual) - 1
    except (DatabaseConnectionError, InsufficientDataError):
        raise
    except Exception as e:
        logger.error(f"Error calculating projected earnings: {e}")
        raise AnalyticsCalculationError(f"Failed to calculate projected earnings. {e}") from e

    return ProjectedEarningsReport(actual=actual, projected=projected, today_index=today_index)
