"""
Construction des dataframes utilisés par les calculateurs.

Ce module transforme les enregistrements lus en base
(`SaleRecord`, `SaleTotal`, `SaleTransaction`) en `pandas.DataFrame` et fournit
l'agrégation par période commune aux séries de revenus.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import pandas as pd  # type: ignore

from .interfaces.data_access import SaleRecord, SaleTotal, SaleTransaction


SALE_RECORD_COLUMNS = ["price", "quantity", "occurred_at", "revenue"]
SALE_TOTAL_COLUMNS = ["sale_id", "occurred_at", "total_amount"]
TRANSACTION_ITEM_COLUMNS = [
    "sale_id",
    "occurred_at",
    "day_index",
    "product_id",
    "product_name",
    "price",
    "quantity",
]


def build_sale_records_dataframe(records: Sequence[SaleRecord]) -> pd.DataFrame:
    """
    Dataframe (une ligne par vente) avec le prix arrondi au centime.
    """
    if not records:
        return pd.DataFrame(columns=SALE_RECORD_COLUMNS)

    df = pd.DataFrame(
        {
            "price": [round(r.price, 2) for r in records],
            "quantity": [r.quantity for r in records],
            "occurred_at": [r.occurred_at for r in records],
        }
    )
    df["revenue"] = df["price"] * df["quantity"]
    return df


def build_sale_totals_dataframe(sales: Sequence[SaleTotal]) -> pd.DataFrame:
    if not sales:
        return pd.DataFrame(columns=SALE_TOTAL_COLUMNS)

    df = pd.DataFrame(
        {
            "sale_id": [s.sale_id for s in sales],
            "occurred_at": [s.occurred_at for s in sales],
            "total_amount": [float(s.total_amount) for s in sales],
        }
    )
    return df.sort_values("occurred_at").reset_index(drop=True)


def build_transaction_items_dataframe(transactions: Sequence[SaleTransaction]) -> pd.DataFrame:
    """
    Une ligne par ligne de ticket. `day_index` : 0 = dimanche ... 6 = samedi.
    """
    rows = [
        {
            "sale_id": t.sale_id,
            "occurred_at": t.occurred_at,
            "day_index": (t.occurred_at.weekday() + 1) % 7,
            "product_id": item.product_id,
            "product_name": item.product_name,
            "price": item.price,
            "quantity": item.quantity,
        }
        for t in transactions
        for item in t.items
    ]
    if not rows:
        return pd.DataFrame(columns=TRANSACTION_ITEM_COLUMNS)
    return pd.DataFrame(rows, columns=TRANSACTION_ITEM_COLUMNS)


def aggregate_by_period(
    df: pd.DataFrame,
    period_key: Callable,
    periods: Optional[List[str]] = None,
) -> pd.DataFrame:
    """
    Agrège un dataframe de ventes par période.

    - `period_key` : fonction datetime -> clé de période,
    - `periods` : clés attendues, dans l'ordre ; les périodes sans vente
      sont présentes avec value = 0 et count = 0 ; sans `periods`, seules
      les périodes ayant au moins une vente sont renvoyées (ordre des clés).

    Retourne un dataframe indexé par clé avec les colonnes `value` et `count`.
    """
    if df.empty:
        grouped = pd.DataFrame(columns=["value", "count"], dtype=float)
    else:
        keyed = df.assign(period=df["occurred_at"].map(period_key))
        grouped = keyed.groupby("period")["total_amount"].agg(["sum", "count"])
        grouped = grouped.rename(columns={"sum": "value"})

    if periods is not None:
        grouped = grouped.reindex(periods, fill_value=0)
    grouped["value"] = grouped["value"].astype(float)
    grouped["count"] = grouped["count"].astype(int)
    return grouped
