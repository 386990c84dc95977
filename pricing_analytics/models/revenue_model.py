"""
Projection des revenus sous le prix actuel et sous le prix recommandé.

Formule sur une période, pour un revenu mensuel R, une élasticité E
et une variation de prix p :

    variation_quantité = E * p
    revenu_projeté = R * (1 + p) * (1 + variation_quantité)

La projection multi-période applique une croissance mensuelle composée
(1.02 ** i par défaut) sur six mois, à partir du mois suivant.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from ..time_periods import format_month_label, utc_now


@dataclass
class RevenueProjection:
    """Revenu projeté pour un mois donné."""

    period_label: str
    current_revenue: float
    optimized_revenue: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.period_label,
            "currentRevenue": self.current_revenue,
            "optimizedRevenue": self.optimized_revenue,
        }


def project_revenue(base_revenue: float, elasticity: float, price_change: float) -> float:
    """
    Revenu attendu après une variation de prix `price_change` (fraction signée).
    """
    quantity_change = elasticity * price_change
    return base_revenue * (1 + price_change) * (1 + quantity_change)


def calculate_revenue_projections(
    baseline_revenues: Sequence[float],
    optimized_revenues: Sequence[float],
    months: int = 6,
    monthly_growth_rate: float = 0.02,
    now: Optional[datetime] = None,
) -> List[RevenueProjection]:
    """
    Projette les revenus mensuels actuels et optimisés.

    Args:
        baseline_revenues: revenu mensuel actuel de chaque produit éligible
        optimized_revenues: revenu mensuel avec le prix recommandé
            (égal au revenu actuel pour un produit sans recommandation)
        months: nombre de mois projetés
        monthly_growth_rate: croissance composée appliquée chaque mois
        now: date de référence (UTC), les libellés commencent au mois suivant

    Returns:
        Exactement `months` projections.
    """
    now = now or utc_now()
    month_start = datetime(now.year, now.month, 1)

    baseline_total = float(sum(baseline_revenues))
    optimized_total = float(sum(optimized_revenues))

    projections: List[RevenueProjection] = []
    for i in range(months):
        growth = (1 + monthly_growth_rate) ** i
        projections.append(
            RevenueProjection(
                period_label=format_month_label(month_start + relativedelta(months=i + 1)),
                current_revenue=baseline_total * growth,
                optimized_revenue=optimized_total * growth,
            )
        )
    return projections
