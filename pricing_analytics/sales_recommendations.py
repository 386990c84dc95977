"""
Calculateur de recommandations de ventes.

Deux analyses sur les tickets de la fenêtre :
- tendances par jour de semaine : meilleur jour de vente de chaque produit,
- paniers (bundles) : produits achetés ensemble, avec support, confiance
  et lift, puis une remise proposée selon la force de l'association.

`get_optimal_products` classe les meilleurs bundles pour le tableau de bord.
Mêmes règles d'erreur que les autres calculateurs : test de connexion
sans retry, InsufficientDataError sans données exploitables, toute autre
erreur encapsulée dans AnalyticsCalculationError.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from itertools import combinations
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .config import AnalyticsConfig, get_default_analytics_config
from .dataset_builder import build_transaction_items_dataframe
from .errors import (
    AnalyticsCalculationError,
    DatabaseConnectionError,
    InsufficientDataError,
)
from .interfaces.data_access import (
    SaleTransaction,
    check_database_connection,
    get_sale_transactions,
)
from .price_recommendations import resolve_time_window
from .time_periods import utc_now

logger = logging.getLogger(__name__)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Quantité totale minimale pour qu'un produit ait une tendance
MIN_TREND_SALES = 3

# Support minimal d'un ensemble, tous niveaux confondus
MIN_ITEM_SET_SUPPORT = 0.01

CONFIDENCE_LEVELS = ("high", "medium", "low")
CONFIDENCE_RANK = {"high": 3, "medium": 2, "low": 1}
CONFIDENCE_THRESHOLDS = {"high": 0.2, "medium": 0.1, "low": 0.05}
SUPPORT_THRESHOLDS = {"high": 0.02, "medium": 0.01, "low": 0.005}

# Score de base d'un bundle sur le tableau de bord
CONFIDENCE_SCORES = {"high": 90, "medium": 75, "low": 60}
MAX_OPTIMAL_PRODUCTS = 10

# Aucune donnée de retour produit : milieu de la plage 75-100
DEFAULT_RETURNS_SCORE = 88


@dataclass
class DaySales:
    day: str
    sales: int
    percent_of_average: int

    def to_dict(self) -> Dict[str, Any]:
        return {"day": self.day, "sales": self.sales, "percentOfAverage": self.percent_of_average}


@dataclass
class DayOfWeekTrend:
    product_id: str
    product_name: str
    best_day: str
    day_index: int
    average_sales: float
    sales_by_day: List[DaySales] = field(default_factory=list)

    @property
    def peak_percent(self) -> int:
        return max((d.percent_of_average for d in self.sales_by_day), default=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "bestDay": self.best_day,
            "dayIndex": self.day_index,
            "averageSales": self.average_sales,
            "salesByDay": [d.to_dict() for d in self.sales_by_day],
        }


@dataclass(frozen=True)
class BundleProduct:
    id: str
    name: str
    price: float

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": self.price}


@dataclass
class ItemSetAssociation:
    """Métriques d'association d'un ensemble de produits."""

    products: Tuple[BundleProduct, ...]
    support: float
    confidence: float
    lift: float
    last_purchased_at: datetime


@dataclass
class ProductBundle:
    id: str
    name: str
    products: List[BundleProduct]
    bundle_price: float
    individual_price: float
    discount: float
    discount_percentage: int
    confidence: str
    support_metric: float
    lift_metric: float
    last_purchased_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "products": [p.to_dict() for p in self.products],
            "bundlePrice": self.bundle_price,
            "individualPrice": self.individual_price,
            "discount": self.discount,
            "discountPercentage": self.discount_percentage,
            "confidence": self.confidence,
            "supportMetric": self.support_metric,
            "liftMetric": self.lift_metric,
            "lastPurchasedAt": self.last_purchased_at.isoformat(),
        }


@dataclass
class OptimalProduct:
    id: str
    name: str
    score: int
    factors: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "score": self.score, "factors": dict(self.factors)}


@dataclass
class SalesRecommendationReport:
    day_of_week_trends: List[DayOfWeekTrend] = field(default_factory=list)
    product_bundles: List[ProductBundle] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dayOfWeekTrends": [t.to_dict() for t in self.day_of_week_trends],
            "productBundles": [b.to_dict() for b in self.product_bundles],
        }


def analyze_day_of_week_trends(transactions: List[SaleTransaction]) -> List[DayOfWeekTrend]:
    """
    Quantités vendues par produit et par jour de semaine.

    Les produits vendus moins de 3 fois sont ignorés. Le résultat est trié
    par force du pic (pourcentage max par rapport à la moyenne journalière).
    """
    df = build_transaction_items_dataframe(transactions)
    if df.empty:
        return []

    order = list(df["product_id"].unique())
    names = df.groupby("product_id", sort=False)["product_name"].first()
    by_day = (
        df.groupby(["product_id", "day_index"])["quantity"]
        .sum()
        .unstack(fill_value=0)
        .reindex(index=order, columns=range(7), fill_value=0)
    )

    trends: List[DayOfWeekTrend] = []
    for product_id, row in by_day.iterrows():
        day_sales = [int(v) for v in row.tolist()]
        total = sum(day_sales)
        if total < MIN_TREND_SALES:
            continue

        average = total / len(DAY_NAMES)
        best_index = int(np.argmax(day_sales))
        trends.append(
            DayOfWeekTrend(
                product_id=str(product_id),
                product_name=names[product_id],
                best_day=DAY_NAMES[best_index],
                day_index=best_index,
                average_sales=average,
                sales_by_day=[
                    DaySales(
                        day=DAY_NAMES[i],
                        sales=sales,
                        percent_of_average=int(round(sales / average * 100)) if average > 0 else 0,
                    )
                    for i, sales in enumerate(day_sales)
                ],
            )
        )

    return sorted(trends, key=lambda t: t.peak_percent, reverse=True)


def _basket(transaction: SaleTransaction) -> List[BundleProduct]:
    """Produits distincts d'un ticket, dans l'ordre des lignes."""
    seen: Dict[str, BundleProduct] = {}
    for item in transaction.items:
        if item.product_id not in seen:
            seen[item.product_id] = BundleProduct(id=item.product_id, name=item.product_name, price=item.price)
    return list(seen.values())


def calculate_association_rules(transactions: List[SaleTransaction]) -> List[ItemSetAssociation]:
    """
    Ensembles de 2 et 3 produits achetés dans un même ticket.

    - support = tickets contenant l'ensemble / tickets,
    - confiance = support / support du produit le moins fréquent,
    - lift = support / produit des supports individuels.

    Les ensembles dont le support ne dépasse pas 1 % sont écartés.
    """
    total = len(transactions)
    if total == 0:
        return []

    set_counts: Counter = Counter()
    item_counts: Counter = Counter()
    first_seen: Dict[Tuple[str, ...], Tuple[BundleProduct, ...]] = {}
    last_seen: Dict[Tuple[str, ...], datetime] = {}

    for transaction in transactions:
        basket = _basket(transaction)
        item_counts.update(p.id for p in basket)
        if len(basket) < 2:
            continue
        for size in (2, 3):
            for products in combinations(basket, size):
                key = tuple(sorted(p.id for p in products))
                set_counts[key] += 1
                first_seen.setdefault(key, products)
                if key not in last_seen or transaction.occurred_at > last_seen[key]:
                    last_seen[key] = transaction.occurred_at

    associations: List[ItemSetAssociation] = []
    for key, count in set_counts.items():
        support = count / total
        if support <= MIN_ITEM_SET_SUPPORT:
            continue
        item_supports = [item_counts[product_id] / total for product_id in key]
        min_support = min(item_supports)
        expected_support = float(np.prod(item_supports))
        associations.append(
            ItemSetAssociation(
                products=first_seen[key],
                support=support,
                confidence=support / min_support if min_support > 0 else 0.0,
                lift=support / expected_support if expected_support > 0 else 0.0,
                last_purchased_at=last_seen[key],
            )
        )
    return associations


def bundle_discount_percentage(confidence: float) -> int:
    if confidence >= 0.5:
        return 15
    if confidence >= 0.3:
        return 10
    return 5


def confidence_label(confidence: float) -> str:
    if confidence >= CONFIDENCE_THRESHOLDS["high"]:
        return "high"
    if confidence >= CONFIDENCE_THRESHOLDS["medium"]:
        return "medium"
    return "low"


def bundle_name(products: List[BundleProduct]) -> str:
    if not products:
        return "Empty Bundle"
    if len(products) == 2:
        return f"{products[0].name} + {products[1].name}"
    others = len(products) - 1
    return f"{products[0].name} + {others} {'item' if others == 1 else 'items'}"


def generate_product_bundles(
    transactions: List[SaleTransaction],
    min_confidence: str = "medium",
) -> List[ProductBundle]:
    """
    Bundles dont la confiance et le support atteignent les seuils du niveau
    demandé, triés par niveau de confiance puis par support.
    """
    confidence_threshold = CONFIDENCE_THRESHOLDS[min_confidence]
    support_threshold = SUPPORT_THRESHOLDS[min_confidence]

    retained = [
        a
        for a in calculate_association_rules(transactions)
        if a.confidence >= confidence_threshold and a.support >= support_threshold
    ]

    bundles: List[ProductBundle] = []
    for index, association in enumerate(retained, start=1):
        products = list(association.products)
        individual_price = sum(p.price for p in products)
        discount_percentage = bundle_discount_percentage(association.confidence)
        discount = individual_price * discount_percentage / 100
        bundles.append(
            ProductBundle(
                id=f"bundle-{index}",
                name=bundle_name(products),
                products=products,
                bundle_price=round(individual_price - discount, 2),
                individual_price=round(individual_price, 2),
                discount=round(discount, 2),
                discount_percentage=discount_percentage,
                confidence=confidence_label(association.confidence),
                support_metric=association.support,
                lift_metric=association.lift,
                last_purchased_at=association.last_purchased_at,
            )
        )

    return sorted(bundles, key=lambda b: (-CONFIDENCE_RANK[b.confidence], -b.support_metric))


def calculate_sales_recommendations(
    time_range_in_days: int = 90,
    tenant_id: Optional[str] = None,
    min_confidence: str = "medium",
    config: Optional[AnalyticsConfig] = None,
    now: Optional[datetime] = None,
) -> SalesRecommendationReport:
    """
    Tendances par jour de semaine et bundles sur [now - jours, now]
    (90 jours si la période est <= 0).

    Raises:
        DatabaseConnectionError: base injoignable
        InsufficientDataError: aucune vente, ou ni tendance ni bundle
        AnalyticsCalculationError: toute autre erreur
        ValueError: niveau de confiance inconnu
    """
    if min_confidence not in CONFIDENCE_LEVELS:
        raise ValueError(f"Invalid confidence level: {min_confidence}")

    config = config or get_default_analytics_config()
    check_database_connection()

    now = now or utc_now()
    start, end = resolve_time_window(time_range_in_days, now, config)
    logger.info(
        f"Calculating sales recommendations from {start.date()} to {end.date()} "
        f"(tenant={tenant_id or 'all'}, confidence={min_confidence})"
    )

    try:
        transactions = get_sale_transactions(start, end, tenant_id)
        if not transactions:
            raise InsufficientDataError(
                "No sales data found. Cannot generate sales recommendations without historical data."
            )

        trends = analyze_day_of_week_trends(transactions)
        bundles = generate_product_bundles(transactions, min_confidence)

        if not trends and not bundles:
            raise InsufficientDataError(
                "Insufficient sales data for meaningful recommendations. "
                "Try extending the time range or reducing the confidence threshold."
            )
    except (DatabaseConnectionError, InsufficientDataError):
        raise
    except Exception as e:
        logger.error(f"Error calculating sales recommendations: {e}")
        raise AnalyticsCalculationError(f"Failed to calculate sales recommendations. {e}") from e

    logger.info(f"Found {len(trends)} day-of-week trends and {len(bundles)} bundles")
    return SalesRecommendationReport(day_of_week_trends=trends, product_bundles=bundles)


def _scale(low: int, span: int, ratio: float) -> int:
    return int(round(low + span * min(max(ratio, 0.0), 1.0)))


def score_bundles(
    bundles: List[ProductBundle],
    now: datetime,
    window_days: int,
) -> List[OptimalProduct]:
    """
    Score 0-100 par bundle : base selon la confiance (90 / 75 / 60),
    +/- 5 points selon le support relatif au meilleur bundle.

    Facteurs :
    - margin : 70-100, plus la remise est faible plus la marge est haute,
    - volume : 60-95 selon le support relatif,
    - turnover : 65-95 selon le lift relatif,
    - recency : 80-100 selon l'ancienneté du dernier achat groupé.
    """
    if not bundles:
        return []

    max_support = max(b.support_metric for b in bundles) or 1.0
    max_lift = max(b.lift_metric for b in bundles) or 1.0

    products: List[OptimalProduct] = []
    for bundle in bundles:
        strength = bundle.support_metric / max_support
        age_days = max((now - bundle.last_purchased_at).days, 0)
        score = CONFIDENCE_SCORES[bundle.confidence] + strength * 10 - 5
        products.append(
            OptimalProduct(
                id=bundle.id,
                name=bundle.name,
                score=int(min(100, max(0, round(score)))),
                factors={
                    "margin": _scale(70, 30, 1 - bundle.discount_percentage / 15),
                    "volume": _scale(60, 35, strength),
                    "returns": DEFAULT_RETURNS_SCORE,
                    "turnover": _scale(65, 30, bundle.lift_metric / max_lift),
                    "recency": _scale(80, 20, 1 - age_days / max(window_days, 1)),
                },
            )
        )
    return products


def get_optimal_products(
    time_range_in_days: int,
    min_confidence: str = "medium",
    tenant_id: Optional[str] = None,
    config: Optional[AnalyticsConfig] = None,
    now: Optional[datetime] = None,
) -> List[OptimalProduct]:
    """
    Les 10 meilleurs bundles, notés pour le tableau de bord.

    Renvoie une liste vide si les données sont insuffisantes ; les autres
    erreurs sont propagées.
    """
    config = config or get_default_analytics_config()
    now = now or utc_now()
    try:
        report = calculate_sales_recommendations(
            time_range_in_days, tenant_id, min_confidence, config=config, now=now
        )
    except InsufficientDataError as e:
        logger.info(f"Insufficient data for optimal products: {e}")
        return []

    start, end = resolve_time_window(time_range_in_days, now, config)
    return score_bundles(report.product_bundles[:MAX_OPTIMAL_PRODUCTS], now, (end - start).days)
