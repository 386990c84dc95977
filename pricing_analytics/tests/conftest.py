"""
Fixtures partagées pour les tests.
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from unittest.mock import MagicMock

import pytest

# Racine du projet dans le path pour importer `pricing_analytics`
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from pricing_analytics.interfaces.data_access import (
    ProductSalesHistory,
    SaleRecord,
    SaleTotal,
)
from pricing_analytics.settings import Settings


NOW = datetime(2024, 5, 15, 12, 0, 0)
HISTORY_START = datetime(2024, 3, 1, 10, 0, 0)


def build_history(
    product_id: str,
    price_points: Sequence[Tuple[float, int, int]],
    current_price: float = 100.0,
    name: Optional[str] = None,
    start: datetime = HISTORY_START,
) -> ProductSalesHistory:
    """
    Historique de test : `price_points` = [(prix, quantité, nombre de ventes)],
    une vente par jour à partir de `start`.
    """
    sales: List[SaleRecord] = []
    day = 0
    for price, quantity, count in price_points:
        for _ in range(count):
            sales.append(
                SaleRecord(price=price, quantity=quantity, occurred_at=start + timedelta(days=day))
            )
            day += 1
    return ProductSalesHistory(
        product_id=product_id,
        product_name=name or f"Product {product_id}",
        current_price=current_price,
        sales=sales,
    )


def build_sale_totals(start: datetime, amounts: Sequence[float], step: timedelta = timedelta(days=1)) -> List[SaleTotal]:
    return [
        SaleTotal(sale_id=f"sale-{i}", occurred_at=start + step * i, total_amount=amount)
        for i, amount in enumerate(amounts)
    ]


def _make_query(rows: Any) -> MagicMock:
    query = MagicMock()
    for method in ("select", "eq", "gte", "lte", "order", "limit"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=rows)
    return query


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_history():
    return build_history


@pytest.fixture
def make_sale_totals():
    return build_sale_totals


@pytest.fixture
def mock_settings():
    """Settings de test (aucune variable d'environnement requise)."""
    return Settings(supabase_url="https://mock.supabase.co", supabase_key="mock_key")


@pytest.fixture
def make_supabase_client():
    """
    Fabrique un client Supabase mocké : {nom_table: lignes renvoyées}.
    Chaque appel de chaîne (select/eq/gte/...) renvoie la même requête.
    """
    def _factory(tables: Dict[str, Any]) -> MagicMock:
        queries = {name: _make_query(rows) for name, rows in tables.items()}
        client = MagicMock()
        client.table.side_effect = lambda name: queries[name]
        client.queries = queries
        return client

    return _factory


@pytest.fixture
def inelastic_history():
    """50 ventes, élasticité -0.4 (hausse de prix recommandée)."""
    return build_history("inelastic", [(100.0, 10, 25), (150.0, 8, 25)], name="Canvas Tote Bag")


@pytest.fixture
def small_history():
    """6 ventes, élasticité -0.4, éligible uniquement au niveau low."""
    return build_history("small", [(100.0, 10, 3), (150.0, 8, 3)], name="Embroidered Cap")


@pytest.fixture
def elastic_history():
    """20 ventes, élasticité -5 (baisse de prix recommandée)."""
    return build_history("elastic", [(100.0, 10, 10), (110.0, 5, 10)], name="Vintage Hoodie")
