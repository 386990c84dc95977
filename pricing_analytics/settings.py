"""
Configuration générale du moteur d'analyse.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Charger .env depuis la racine du projet
project_root = Path(__file__).parent.parent
load_dotenv(dotenv_path=project_root / ".env")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    """Configuration globale (base de données, tables, logging)."""

    # Base de données
    supabase_url: str
    supabase_key: str

    # Tables sources
    products_table: str = "products"
    sale_items_table: str = "sale_items"
    sales_table: str = "sales"

    # Surcharges optionnelles des paramètres d'analyse
    default_lookback_days: Optional[int] = None
    monthly_growth_rate: Optional[float] = None

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Crée une instance Settings depuis les variables d'environnement."""
        return cls(
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", os.getenv("SUPABASE_KEY", "")),
            products_table=os.getenv("PRODUCTS_TABLE", "products"),
            sale_items_table=os.getenv("SALE_ITEMS_TABLE", "sale_items"),
            sales_table=os.getenv("SALES_TABLE", "sales"),
            default_lookback_days=_env_int("ANALYTICS_DEFAULT_LOOKBACK_DAYS", None),
            monthly_growth_rate=_env_float("ANALYTICS_MONTHLY_GROWTH_RATE", None),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
