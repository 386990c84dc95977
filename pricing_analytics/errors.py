"""
Erreurs métier remontées par les calculateurs.

Trois cas sont distingués par la couche HTTP :
- base injoignable (503),
- pas assez d'historique (données d'exemple à la place),
- toute autre erreur, encapsulée avec le message d'origine (500).
"""

from typing import Optional


class PricingAnalyticsError(Exception):
    """Classe de base des erreurs du moteur d'analyse."""


class DatabaseConnectionError(PricingAnalyticsError):
    """La base de données n'a pas pu être jointe."""

    default_message = (
        "Unable to connect to the database. Please check your database configuration."
    )

    def __init__(
        self,
        message: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message or self.default_message)
        self.original_error = original_error


class InsufficientDataError(PricingAnalyticsError):
    """Base joignable mais historique de ventes insuffisant."""


class AnalyticsCalculationError(PricingAnalyticsError):
    """Erreur inattendue pendant un calcul (message d'origine conservé)."""
