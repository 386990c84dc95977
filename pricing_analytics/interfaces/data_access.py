"""
Accès aux données de ventes nécessaires au moteur d'analyse.

Ce module fournit une couche d'abstraction entre les calculateurs
et la base de données (Supabase/PostgreSQL).

Tables utilisées (noms surchargeables via `Settings`) :
- `products` : id, name, price, user_id
- `sale_items` : product_id, sale_id, price, quantity
- `sales` : id, user_id, created_at, total_amount

Le paramètre `tenant_id` correspond à `user_id` ; s'il est absent,
les données de tous les tenants sont lues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from supabase import Client, create_client  # type: ignore

from ..errors import DatabaseConnectionError
from ..settings import Settings
from ..time_periods import parse_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

_supabase_client: Optional[Client] = None
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def get_supabase_client() -> Client:
    """
    Retourne un client Supabase initialisé (créé une seule fois).
    """
    global _supabase_client

    if _supabase_client is not None:
        return _supabase_client

    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError(
            "Les variables d'environnement SUPABASE_URL et SUPABASE_SERVICE_ROLE_KEY/SUPABASE_KEY "
            "doivent être configurées pour utiliser le moteur d'analyse."
        )

    _supabase_client = create_client(settings.supabase_url, settings.supabase_key)
    return _supabase_client


def check_database_connection() -> None:
    """
    Requête de test légère sur la table des produits.

    Lève DatabaseConnectionError si la base est injoignable (ou si le
    client ne peut pas être créé). Aucun retry.
    """
    try:
        client = get_supabase_client()
        client.table(get_settings().products_table).select("id").limit(1).execute()
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        raise DatabaseConnectionError(original_error=e) from e


@dataclass(frozen=True)
class SaleRecord:
    """Une ligne de vente historique (prix unitaire, quantité, date)."""

    price: float
    quantity: int
    occurred_at: datetime

    @property
    def revenue(self) -> float:
        return self.price * self.quantity


@dataclass
class ProductSalesHistory:
    """
    Historique de ventes d'un produit sur la fenêtre d'analyse.

    Construit à chaque calcul, jamais persisté.
    """

    product_id: str
    product_name: str
    current_price: float
    sales: List[SaleRecord] = field(default_factory=list)

    @property
    def sample_size(self) -> int:
        return len(self.sales)

    @property
    def total_revenue(self) -> float:
        return sum(s.revenue for s in self.sales)

    @property
    def distinct_sale_dates(self) -> List[date]:
        return sorted({s.occurred_at.date() for s in self.sales})

    @property
    def distinct_prices(self) -> List[float]:
        return sorted({round(s.price, 2) for s in self.sales})


@dataclass(frozen=True)
class SaleTotal:
    """Montant total d'une vente (ticket), utilisé pour les séries de revenus."""

    sale_id: str
    occurred_at: datetime
    total_amount: float


@dataclass(frozen=True)
class TransactionItem:
    """Ligne d'un ticket rattachée à un produit existant."""

    product_id: str
    product_name: str
    price: float
    quantity: int


@dataclass
class SaleTransaction:
    """Un ticket et ses lignes, pour l'analyse des paniers."""

    sale_id: str
    occurred_at: datetime
    items: List[TransactionItem] = field(default_factory=list)


@dataclass
class PartialResult(Generic[T]):
    """Résultat d'une collecte tolérante aux erreurs unitaires."""

    items: List[T] = field(default_factory=list)
    failed: int = 0


def _safe_int(value: Any) -> int:
    try:
        if value is None:
            return 0
        return int(value)
    except (TypeError, ValueError):
        return 0


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _iso(value: datetime) -> str:
    return value.isoformat()


def collect_with_partial_failure(
    items: List[T],
    fn: Callable[[T], R],
    label: str = "item",
) -> PartialResult[R]:
    """
    Applique `fn` à chaque élément ; un échec est loggé et compté,
    jamais propagé.
    """
    result: PartialResult[R] = PartialResult()
    for item in items:
        try:
            result.items.append(fn(item))
        except Exception as e:
            result.failed += 1
            logger.warning(f"Skipping {label} {item!r}: {e}")
    return result


def get_products(tenant_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Récupère les produits d'un tenant (ou de tous les tenants).
    """
    client = get_supabase_client()

    query = client.table(get_settings().products_table).select("id, name, price, user_id")
    if tenant_id:
        query = query.eq("user_id", tenant_id)

    response = query.order("name", desc=False).execute()

    # Vérifier si response.data existe (compatible avec différentes versions de Supabase)
    if not hasattr(response, 'data'):
        raise RuntimeError("Réponse Supabase invalide: pas d'attribut 'data'")

    return response.data or []


def get_sale_items_for_product(
    product_id: str,
    start: datetime,
    end: datetime,
) -> List[Dict[str, Any]]:
    """
    Récupère les lignes de vente d'un produit dont la vente parente
    tombe dans [start, end].
    """
    settings = get_settings()
    client = get_supabase_client()

    response = (
        client.table(settings.sale_items_table)
        .select(f"price, quantity, {settings.sales_table}!inner(created_at)")
        .eq("product_id", product_id)
        .gte(f"{settings.sales_table}.created_at", _iso(start))
        .lte(f"{settings.sales_table}.created_at", _iso(end))
        .execute()
    )

    if not hasattr(response, 'data'):
        raise RuntimeError("Réponse Supabase invalide: pas d'attribut 'data'")

    return response.data or []


def _parse_sale_item(row: Dict[str, Any], sales_table: str) -> Optional[SaleRecord]:
    price = _safe_float(row.get("price"))
    quantity = _safe_int(row.get("quantity"))

    sale = row.get(sales_table) or {}
    if isinstance(sale, list):
        sale = sale[0] if sale else {}
    occurred_at = parse_timestamp(sale.get("created_at"))

    if price is None or quantity < 1 or occurred_at is None:
        return None
    return SaleRecord(price=price, quantity=quantity, occurred_at=occurred_at)


def _build_product_history(
    product: Dict[str, Any],
    start: datetime,
    end: datetime,
) -> ProductSalesHistory:
    product_id = str(product["id"])
    sales_table = get_settings().sales_table

    rows = get_sale_items_for_product(product_id, start, end)
    records = [r for r in (_parse_sale_item(row, sales_table) for row in rows) if r is not None]
    if len(records) < len(rows):
        logger.debug(f"Product {product_id}: ignored {len(rows) - len(records)} invalid sale rows")

    records.sort(key=lambda r: r.occurred_at)

    return ProductSalesHistory(
        product_id=product_id,
        product_name=product.get("name") or "",
        current_price=_safe_float(product.get("price")) or 0.0,
        sales=records,
    )


def fetch_product_sales_histories(
    start: datetime,
    end: datetime,
    tenant_id: Optional[str] = None,
) -> PartialResult[ProductSalesHistory]:
    """
    Construit l'historique de ventes de chaque produit sur [start, end].

    Un produit dont la lecture échoue est ignoré (loggé) et compté dans
    `failed` ; le lot n'est jamais interrompu pour une ligne en erreur.
    """
    products = get_products(tenant_id)
    result = collect_with_partial_failure(
        products,
        lambda p: _build_product_history(p, start, end),
        label="product",
    )
    if result.failed:
        logger.warning(
            f"Fetched sales history for {len(result.items)} products, "
            f"{result.failed} skipped after errors"
        )
    return result


def get_sales_for_date_range(
    start: datetime,
    end: datetime,
    tenant_id: Optional[str] = None,
) -> List[SaleTotal]:
    """
    Récupère les montants des ventes sur [start, end], triés par date.

    En cas d'erreur de lecture, l'erreur est loggée et une liste vide
    est renvoyée.
    """
    try:
        client = get_supabase_client()
        query = (
            client.table(get_settings().sales_table)
            .select("id, created_at, total_amount")
            .gte("created_at", _iso(start))
            .lte("created_at", _iso(end))
        )
        if tenant_id:
            query = query.eq("user_id", tenant_id)
        response = query.order("created_at", desc=False).execute()
        rows = response.data or []
    except Exception as e:
        logger.error(f"Error fetching sales between {start} and {end}: {e}")
        return []

    totals: List[SaleTotal] = []
    for row in rows:
        occurred_at = parse_timestamp(row.get("created_at"))
        if occurred_at is None:
            continue
        totals.append(
            SaleTotal(
                sale_id=str(row.get("id", "")),
                occurred_at=occurred_at,
                total_amount=_safe_float(row.get("total_amount")) or 0.0,
            )
        )
    totals.sort(key=lambda s: s.occurred_at)
    return totals


def _parse_transaction_item(row: Dict[str, Any], products_table: str) -> Optional[TransactionItem]:
    product = row.get(products_table)
    if isinstance(product, list):
        product = product[0] if product else None
    if not product or product.get("id") is None:
        return None

    price = _safe_float(row.get("price"))
    if price is None:
        price = _safe_float(product.get("price")) or 0.0

    return TransactionItem(
        product_id=str(product["id"]),
        product_name=product.get("name") or "",
        price=price,
        quantity=_safe_int(row.get("quantity")),
    )


def get_sale_transactions(
    start: datetime,
    end: datetime,
    tenant_id: Optional[str] = None,
) -> List[SaleTransaction]:
    """
    Récupère les ventes sur [start, end] avec leurs lignes et produits,
    triées par date.

    Les lignes dont le produit a été supprimé sont ignorées, ainsi que les
    ventes sans aucune ligne valide. En cas d'erreur de lecture, l'erreur
    est loggée et une liste vide est renvoyée.
    """
    settings = get_settings()
    try:
        client = get_supabase_client()
        query = (
            client.table(settings.sales_table)
            .select(
                f"id, created_at, {settings.sale_items_table}"
                f"(price, quantity, {settings.products_table}(id, name, price))"
            )
            .gte("created_at", _iso(start))
            .lte("created_at", _iso(end))
        )
        if tenant_id:
            query = query.eq("user_id", tenant_id)
        response = query.order("created_at", desc=False).execute()
        rows = response.data or []
    except Exception as e:
        logger.error(f"Error fetching sale transactions between {start} and {end}: {e}")
        return []

    transactions: List[SaleTransaction] = []
    for row in rows:
        occurred_at = parse_timestamp(row.get("created_at"))
        if occurred_at is None:
            continue
        items = [
            item
            for item in (
                _parse_transaction_item(r, settings.products_table)
                for r in row.get(settings.sale_items_table) or []
            )
            if item is not None
        ]
        if not items:
            continue
        transactions.append(
            SaleTransaction(sale_id=str(row.get("id", "")), occurred_at=occurred_at, items=items)
        )
    transactions.sort(key=lambda t: t.occurred_at)
    return transactions


def _get_boundary_sale_date(tenant_id: Optional[str], newest: bool) -> Optional[datetime]:
    client = get_supabase_client()
    query = client.table(get_settings().sales_table).select("created_at")
    if tenant_id:
        query = query.eq("user_id", tenant_id)
    response = query.order("created_at", desc=newest).limit(1).execute()
    rows = response.data or []
    if not rows:
        return None
    return parse_timestamp(rows[0].get("created_at"))


def get_sale_date_bounds(
    tenant_id: Optional[str] = None,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Dates de la plus ancienne et de la plus récente vente.

    Retourne (None, None) s'il n'y a aucune vente ou en cas d'erreur.
    """
    try:
        oldest = _get_boundary_sale_date(tenant_id, newest=False)
        newest = _get_boundary_sale_date(tenant_id, newest=True)
    except Exception as e:
        logger.error(f"Error fetching sale date bounds: {e}")
        return None, None
    return oldest, newest
