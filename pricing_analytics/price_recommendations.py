"""
Calculateur de recommandations de prix.

Enchaînement :
1. test de connexion à la base (DatabaseConnectionError, sans retry),
2. fenêtre [now - jours, now] (90 jours si la période est <= 0),
3. lecture des produits et de leurs ventes sur la fenêtre
   (un produit en erreur est ignoré, le lot continue),
4. filtrage des produits sans assez de ventes,
5. InsufficientDataError si plus aucun produit n'est éligible,
6. recommandations par produit puis projection sur six mois.

Toute erreur inattendue des étapes 3 à 6 est encapsulée dans
AnalyticsCalculationError avec le message d'origine.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from .config import CONFIDENCE_FILTER_ALL, AnalyticsConfig, ConfidenceTier, get_default_analytics_config
from .errors import (
    AnalyticsCalculationError,
    DatabaseConnectionError,
    InsufficientDataError,
)
from .interfaces.data_access import (
    ProductSalesHistory,
    check_database_connection,
    fetch_product_sales_histories,
)
from .models.revenue_model import RevenueProjection, calculate_revenue_projections
from .optimizer import (
    PriceRecommendation,
    estimate_monthly_revenue,
    generate_price_recommendation,
)
from .time_periods import utc_now

logger = logging.getLogger(__name__)


@dataclass
class PriceRecommendationReport:
    recommendations: List[PriceRecommendation] = field(default_factory=list)
    revenue_projections: List[RevenueProjection] = field(default_factory=list)
    skipped_products: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendations": [r.to_dict() for r in self.recommendations],
            "revenueProjections": [p.to_dict() for p in self.revenue_projections],
        }


def resolve_time_window(
    time_range_in_days: int,
    now: datetime,
    config: AnalyticsConfig,
) -> Tuple[datetime, datetime]:
    days = time_range_in_days if time_range_in_days and time_range_in_days > 0 else config.default_lookback_days
    return now - timedelta(days=days), now


def _select_tier(
    history: ProductSalesHistory,
    confidence: str,
    config: AnalyticsConfig,
) -> Optional[ConfidenceTier]:
    """
    Niveau utilisé pour un produit :
    - filtre précis : ce niveau si le produit l'atteint,
    - "all" : le niveau le plus élevé atteint.
    """
    eligible = config.eligible_tiers(history.sample_size)
    if not eligible:
        return None
    if confidence == CONFIDENCE_FILTER_ALL:
        return eligible[-1]
    for tier in eligible:
        if tier.tier == confidence:
            return tier
    return None


def build_recommendations(
    histories: List[ProductSalesHistory],
    confidence: str,
    config: AnalyticsConfig,
) -> Dict[str, PriceRecommendation]:
    recommendations: Dict[str, PriceRecommendation] = {}
    for history in histories:
        tier = _select_tier(history, confidence, config)
        if tier is None:
            continue
        recommendation = generate_price_recommendation(history, tier, config)
        if recommendation is not None:
            recommendations[history.product_id] = recommendation
    return recommendations


def calculate_price_recommendations(
    time_range_in_days: int,
    tenant_id: Optional[str] = None,
    confidence: str = CONFIDENCE_FILTER_ALL,
    config: Optional[AnalyticsConfig] = None,
    now: Optional[datetime] = None,
) -> PriceRecommendationReport:
    """
    Calcule les recommandations de prix et la projection de revenus.

    Args:
        time_range_in_days: profondeur d'historique (<= 0 : 90 jours)
        tenant_id: tenant ciblé (None : tous les tenants)
        confidence: "high", "medium", "low" ou "all"
        config: paramètres d'analyse (défaut : get_default_analytics_config())
        now: date de référence UTC

    Raises:
        DatabaseConnectionError: base injoignable
        InsufficientDataError: aucun produit avec assez de ventes
        AnalyticsCalculationError: toute autre erreur
        ValueError: niveau de confiance inconnu
    """
    config = config or get_default_analytics_config()
    if confidence not in config.confidence_filters():
        raise ValueError(f"Invalid confidence level: {confidence}")

    check_database_connection()

    now = now or utc_now()
    start, end = resolve_time_window(time_range_in_days, now, config)
    logger.info(
        f"Calculating price recommendations from {start.date()} to {end.date()} "
        f"(tenant={tenant_id or 'all'}, confidence={confidence})"
    )

    try:
        fetched = fetch_product_sales_histories(start, end, tenant_id)

        with_sales = [h for h in fetched.items if h.sample_size > 0]
        min_sample_size = config.lowest_tier.min_sample_size
        eligible = [h for h in with_sales if h.sample_size >= min_sample_size]

        if not eligible:
            raise InsufficientDataError(
                "Not enough historical sales data to generate price recommendations."
            )

        by_product = build_recommendations(eligible, confidence, config)

        baseline: List[float] = []
        optimized: List[float] = []
        for history in eligible:
            current = estimate_monthly_revenue(history, config.days_per_month)
            recommendation = by_product.get(history.product_id)
            baseline.append(current)
            optimized.append(recommendation.potential_revenue if recommendation else current)

        projections = calculate_revenue_projections(
            baseline,
            optimized,
            months=config.projection_months,
            monthly_growth_rate=config.monthly_growth_rate,
            now=now,
        )

        recommendations = sorted(
            by_product.values(),
            key=lambda r: abs(r.revenue_difference),
            reverse=True,
        )
    except (DatabaseConnectionError, InsufficientDataError):
        raise
    except Exception as e:
        logger.error(f"Error calculating price recommendations: {e}")
        raise AnalyticsCalculationError(
            f"Failed to calculate price recommendations. {e}"
        ) from e

    logger.info(
        f"Generated {len(recommendations)} recommendations for {len(eligible)} eligible products"
    )
    return PriceRecommendationReport(
        recommendations=recommendations,
        revenue_projections=projections,
        skipped_products=fetched.failed,
    )


def get_price_recommendations(
    time_range_in_days: int = 90,
    confidence: str = CONFIDENCE_FILTER_ALL,
    tenant_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Variante simplifiée : seulement la liste des recommandations.

    Renvoie une liste vide en cas d'erreur (loggée).
    """
    try:
        report = calculate_price_recommendations(time_range_in_days, tenant_id, confidence)
    except Exception as e:
        logger.error(f"Error getting price recommendations: {e}")
        return []
    return [r.to_dict() for r in report.recommendations]
