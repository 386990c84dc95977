"""
Utilitaires de dates pour les séries temporelles de revenus.

Toutes les dates manipulées par le moteur sont des `datetime` naïfs en UTC.
Les semaines commencent le dimanche.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


HOURLY = "hourly"
DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
QUARTERLY = "quarterly"
YEARLY = "yearly"

RESOLUTIONS = (HOURLY, DAILY, WEEKLY, MONTHLY, QUARTERLY, YEARLY)


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Convertit une valeur renvoyée par Supabase (ISO 8601) en datetime UTC naïf.

    Retourne None si la valeur est absente ou illisible.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return to_naive_utc(date_parser.isoparse(str(value)))
    except (TypeError, ValueError):
        return None


def week_start(value: datetime) -> datetime:
    """Dimanche (00:00) de la semaine contenant `value`."""
    day = value.replace(hour=0, minute=0, second=0, microsecond=0)
    return day - timedelta(days=(day.weekday() + 1) % 7)


def period_start(value: datetime, resolution: str) -> datetime:
    """Début de la période (selon la résolution) contenant `value`."""
    if resolution == HOURLY:
        return value.replace(minute=0, second=0, microsecond=0)
    if resolution == DAILY:
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    if resolution == WEEKLY:
        return week_start(value)
    if resolution == MONTHLY:
        return datetime(value.year, value.month, 1)
    if resolution == QUARTERLY:
        return datetime(value.year, 3 * ((value.month - 1) // 3) + 1, 1)
    if resolution == YEARLY:
        return datetime(value.year, 1, 1)
    raise ValueError(f"Unknown resolution: {resolution}")


def next_period_start(value: datetime, resolution: str) -> datetime:
    start = period_start(value, resolution)
    if resolution == HOURLY:
        return start + timedelta(hours=1)
    if resolution == DAILY:
        return start + timedelta(days=1)
    if resolution == WEEKLY:
        return start + timedelta(days=7)
    if resolution == MONTHLY:
        return start + relativedelta(months=1)
    if resolution == QUARTERLY:
        return start + relativedelta(months=3)
    return start + relativedelta(years=1)


def iter_period_starts(start: datetime, end: datetime, resolution: str) -> List[datetime]:
    """
    Débuts de toutes les périodes couvrant [start, end], bornes incluses.
    """
    periods: List[datetime] = []
    current = period_start(start, resolution)
    while current <= end:
        periods.append(current)
        current = next_period_start(current, resolution)
    return periods


def format_period(value: datetime, resolution: str) -> str:
    """
    Clé textuelle d'une période :
    - hourly : `2024-03-01 14:00`
    - daily / weekly : `2024-03-01` (début de semaine pour weekly)
    - monthly : `2024-03`
    - quarterly : `2024-Q1`
    - yearly : `2024`
    """
    start = period_start(value, resolution)
    if resolution == HOURLY:
        return start.strftime("%Y-%m-%d %H:00")
    if resolution in (DAILY, WEEKLY):
        return start.strftime("%Y-%m-%d")
    if resolution == MONTHLY:
        return start.strftime("%Y-%m")
    if resolution == QUARTERLY:
        return f"{start.year}-Q{(start.month - 1) // 3 + 1}"
    return str(start.year)


def format_week_range(value: datetime) -> str:
    """Libellé d'une semaine : `2024-03-03 to 2024-03-09`."""
    start = week_start(value)
    end = start + timedelta(days=6)
    return f"{start.strftime('%Y-%m-%d')} to {end.strftime('%Y-%m-%d')}"


def format_month_label(value: datetime) -> str:
    """Libellé court d'un mois : `Jun 2024`."""
    return value.strftime("%b %Y")
