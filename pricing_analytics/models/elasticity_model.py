"""
Estimation de l'élasticité prix de la demande.

Estimation à deux points à partir de l'historique d'un produit :
- regroupement des ventes par prix (arrondi au centime),
- demande moyenne par vente pour chaque prix,
- comparaison entre le prix le plus bas et le prix le plus haut observés.

    variation_prix = (prix_haut - prix_bas) / prix_bas
    variation_demande = (demande_haut - demande_bas) / demande_bas
    élasticité = variation_demande / variation_prix

Une élasticité de 0 signifie "pas de signal" (moins de deux prix
distincts, prix bas nul, ou résultat non fini).
"""

import logging
from typing import Sequence

import numpy as np

from ..dataset_builder import build_sale_records_dataframe
from ..interfaces.data_access import SaleRecord

logger = logging.getLogger(__name__)


def estimate_price_elasticity(records: Sequence[SaleRecord]) -> float:
    """
    Calcule l'élasticité prix d'un produit à partir de ses ventes.

    Args:
        records: ventes historiques du produit (ordre indifférent)

    Returns:
        Élasticité signée, 0.0 si aucune estimation n'est possible.
    """
    df = build_sale_records_dataframe(records)
    if df.empty:
        return 0.0

    demand_by_price = df.groupby("price")["quantity"].mean().sort_index()
    if len(demand_by_price) < 2:
        return 0.0

    low_price = float(demand_by_price.index[0])
    high_price = float(demand_by_price.index[-1])
    demand_at_low = float(demand_by_price.iloc[0])
    demand_at_high = float(demand_by_price.iloc[-1])

    if low_price <= 0 or demand_at_low == 0:
        return 0.0

    price_change = (high_price - low_price) / low_price
    demand_change = (demand_at_high - demand_at_low) / demand_at_low

    with np.errstate(divide="ignore", invalid="ignore"):
        elasticity = np.float64(demand_change) / np.float64(price_change)

    if not np.isfinite(elasticity):
        logger.debug(
            f"Non-finite elasticity (low={low_price}, high={high_price}), treated as 0"
        )
        return 0.0

    return float(elasticity)


def is_actionable_elasticity(elasticity: float, min_magnitude: float = 0.1) -> bool:
    """True si l'élasticité est finie et assez marquée pour agir."""
    return bool(np.isfinite(elasticity)) and abs(elasticity) >= min_magnitude
