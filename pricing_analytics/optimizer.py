"""
Génération des recommandations de prix.

Ce module est responsable de :
- vérifier qu'un produit a assez de ventes pour un niveau de confiance,
- choisir le sens de la variation selon l'élasticité estimée,
- chiffrer le revenu actuel et le revenu potentiel au prix recommandé,
- calculer le prix optimal (revenu ou marge) pour une élasticité donnée,
  borné autour du prix actuel.

Il s'appuie sur `models.elasticity_model` et `models.revenue_model`.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from .config import AnalyticsConfig, ConfidenceTier
from .interfaces.data_access import ProductSalesHistory
from .models.elasticity_model import estimate_price_elasticity, is_actionable_elasticity
from .models.revenue_model import project_revenue

logger = logging.getLogger(__name__)

# Bornes par défaut de l'optimiseur : -20 % / +20 %
DEFAULT_MIN_PRICE_CHANGE = -0.2
DEFAULT_MAX_PRICE_CHANGE = 0.2


@dataclass
class PriceRecommendation:
    """Recommandation de prix pour un produit (jamais persistée)."""

    product_id: str
    product_name: str
    current_price: float
    recommended_price: float
    confidence: str
    current_revenue: float
    potential_revenue: float
    revenue_difference: float
    percentage_change: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "currentPrice": self.current_price,
            "recommendedPrice": self.recommended_price,
            "confidence": self.confidence,
            "currentRevenue": self.current_revenue,
            "potentialRevenue": self.potential_revenue,
            "revenueDifference": self.revenue_difference,
            "percentageChange": self.percentage_change,
        }


@dataclass
class PriceOptimization:
    """Prix optimisé et effets attendus (variations en %)."""

    current_price: float
    optimized_price: float
    expected_sales_change: float
    expected_revenue_change: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentPrice": self.current_price,
            "optimizedPrice": self.optimized_price,
            "expectedSalesChange": self.expected_sales_change,
            "expectedRevenueChange": self.expected_revenue_change,
        }


def optimize_price_for_revenue(
    current_price: float,
    price_elasticity: float,
    min_price_change: float = DEFAULT_MIN_PRICE_CHANGE,
    max_price_change: float = DEFAULT_MAX_PRICE_CHANGE,
    cost_price: float = 0,
) -> PriceOptimization:
    """
    Prix optimal à élasticité constante, borné à
    [prix * (1 + min_price_change), prix * (1 + max_price_change)].

    - sans coût : maximisation du revenu, p* = p * E / (1 + E),
    - avec coût : maximisation de la marge, p* = coût / (1 + 1 / E).

    Une élasticité positive, nulle ou non finie (ou un prix <= 0) laisse
    le prix inchangé, sans effet attendu.
    """
    if current_price <= 0 or not np.isfinite(price_elasticity) or price_elasticity >= 0:
        return PriceOptimization(
            current_price=current_price,
            optimized_price=current_price,
            expected_sales_change=0.0,
            expected_revenue_change=0.0,
        )

    lower_bound = current_price * (1 + min_price_change)
    upper_bound = current_price * (1 + max_price_change)

    # E = -1 : dénominateur nul, l'optimum part à l'infini puis est borné
    elasticity = np.float64(price_elasticity)
    with np.errstate(divide="ignore", invalid="ignore"):
        if cost_price > 0:
            optimal_price = np.float64(cost_price) / (1 + 1 / elasticity)
        else:
            optimal_price = current_price * (elasticity / (1 + elasticity))

    optimized_price = float(max(lower_bound, min(upper_bound, optimal_price)))

    price_change = optimized_price / current_price - 1
    expected_sales_change = price_change * price_elasticity * 100
    expected_revenue_change = (1 + price_change) * (1 + price_change * price_elasticity) * 100 - 100

    return PriceOptimization(
        current_price=current_price,
        optimized_price=optimized_price,
        expected_sales_change=float(expected_sales_change),
        expected_revenue_change=float(expected_revenue_change),
    )


def estimate_monthly_revenue(history: ProductSalesHistory, days_per_month: int = 30) -> float:
    """
    Revenu mensuel moyen réalisé :
    revenu total / nombre de jours distincts avec vente * 30.

    Les jours sans vente ne sont pas comptés, ce qui surestime la moyenne
    quand l'historique a des trous.
    """
    sale_days = len(history.distinct_sale_dates)
    if sale_days == 0:
        return 0.0
    return history.total_revenue / sale_days * days_per_month


def choose_price_change(elasticity: float, tier: ConfidenceTier, unit_elasticity: float = -1.0) -> float:
    """
    Variation de prix signée (fraction) pour une élasticité donnée.

    Demande inélastique (E > -1) : hausse du seuil ; sinon baisse du seuil.
    """
    if elasticity > unit_elasticity:
        return tier.threshold_fraction
    return -tier.threshold_fraction


def generate_price_recommendation(
    history: ProductSalesHistory,
    tier: ConfidenceTier,
    config: AnalyticsConfig,
) -> Optional[PriceRecommendation]:
    """
    Calcule au plus une recommandation pour un produit et un niveau de confiance.

    Retourne None si :
    - le produit n'a pas assez de ventes pour ce niveau,
    - l'élasticité est nulle, trop faible (|E| < 0.1) ou non finie,
    - aucun revenu n'a été réalisé sur la fenêtre,
    - le changement n'augmenterait pas le revenu projeté.

    `config` est résolu une seule fois par l'appelant pour tout le lot.
    """
    if history.sample_size < tier.min_sample_size:
        return None

    elasticity = estimate_price_elasticity(history.sales)
    if not is_actionable_elasticity(elasticity, config.min_elasticity_magnitude):
        logger.debug(f"Product {history.product_id}: elasticity {elasticity} not actionable")
        return None

    current_revenue = estimate_monthly_revenue(history, config.days_per_month)
    if current_revenue <= 0:
        return None

    price_change = choose_price_change(elasticity, tier, config.unit_elasticity)
    potential_revenue = project_revenue(current_revenue, elasticity, price_change)
    revenue_difference = potential_revenue - current_revenue

    if revenue_difference <= 0:
        logger.debug(
            f"Product {history.product_id}: projected change {revenue_difference:.2f} "
            f"does not increase revenue, skipped"
        )
        return None

    sign = 1 if price_change > 0 else -1
    return PriceRecommendation(
        product_id=history.product_id,
        product_name=history.product_name,
        current_price=history.current_price,
        recommended_price=history.current_price * (1 + price_change),
        confidence=tier.tier,
        current_revenue=current_revenue,
        potential_revenue=potential_revenue,
        revenue_difference=revenue_difference,
        percentage_change=sign * float(tier.threshold_percent),
    )
