"""
Configuration centrale du moteur d'analyse pricing.

Ce module définit les paramètres métier utilisés par les calculateurs :
- la table des niveaux de confiance (seuil de variation de prix et
  nombre minimal de ventes),
- le seuil d'élasticité en dessous duquel on ne recommande rien,
- les paramètres de projection (croissance mensuelle, nombre de mois).

Les valeurs par défaut peuvent être surchargées par variables
d'environnement via `Settings`.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .settings import Settings


CONFIDENCE_FILTER_ALL = "all"


@dataclass(frozen=True)
class ConfidenceTier:
    """
    Niveau de confiance d'une recommandation.

    - threshold_percent : amplitude de la variation de prix proposée (en %),
    - min_sample_size : nombre minimal de lignes de vente dans la fenêtre.
    """

    tier: str
    threshold_percent: float
    min_sample_size: int

    @property
    def threshold_fraction(self) -> float:
        return self.threshold_percent / 100


DEFAULT_CONFIDENCE_TIERS = (
    ConfidenceTier(tier="low", threshold_percent=10, min_sample_size=5),
    ConfidenceTier(tier="medium", threshold_percent=15, min_sample_size=8),
    ConfidenceTier(tier="high", threshold_percent=25, min_sample_size=12),
)


@dataclass
class AnalyticsConfig:
    """Paramètres de haut niveau pour les calculateurs."""

    # Niveaux de confiance, du moins exigeant au plus exigeant
    confidence_tiers: List[ConfidenceTier] = field(
        default_factory=lambda: list(DEFAULT_CONFIDENCE_TIERS)
    )

    # Fenêtre utilisée quand la période demandée est nulle ou négative
    default_lookback_days: int = 90

    # |élasticité| minimale pour agir
    min_elasticity_magnitude: float = 0.1

    # Élasticité unitaire : au-dessus on augmente le prix, en dessous on le baisse
    unit_elasticity: float = -1.0

    # Conversion revenu journalier -> mensuel
    days_per_month: int = 30

    # Projection mensuelle
    projection_months: int = 6
    monthly_growth_rate: float = 0.02

    def tiers_by_name(self) -> Dict[str, ConfidenceTier]:
        return {t.tier: t for t in self.confidence_tiers}

    def get_tier(self, name: str) -> ConfidenceTier:
        try:
            return self.tiers_by_name()[name]
        except KeyError:
            raise ValueError(f"Unknown confidence tier: {name}") from None

    @property
    def lowest_tier(self) -> ConfidenceTier:
        return min(self.confidence_tiers, key=lambda t: t.min_sample_size)

    def eligible_tiers(self, sample_size: int) -> List[ConfidenceTier]:
        """
        Niveaux atteints pour un nombre de ventes donné, du plus faible au plus élevé.

        L'éligibilité est monotone : un produit éligible en `high`
        l'est aussi en `medium` et `low`.
        """
        tiers = sorted(self.confidence_tiers, key=lambda t: t.min_sample_size)
        return [t for t in tiers if sample_size >= t.min_sample_size]

    def confidence_filters(self) -> List[str]:
        return [t.tier for t in self.confidence_tiers] + [CONFIDENCE_FILTER_ALL]


def get_default_analytics_config(settings: Optional[Settings] = None) -> AnalyticsConfig:
    """
    Retourne la configuration par défaut, avec les surcharges d'environnement.
    """
    settings = settings or Settings.from_env()
    config = AnalyticsConfig()

    if settings.default_lookback_days and settings.default_lookback_days > 0:
        config.default_lookback_days = settings.default_lookback_days
    if settings.monthly_growth_rate is not None:
        config.monthly_growth_rate = settings.monthly_growth_rate

    return config
