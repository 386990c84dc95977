"""
Script de lancement des calculateurs d'analyse pricing.

Usage (depuis la racine du projet) :

    python -m scripts.run_price_recommendations --time-range 90 --confidence high
    python -m scripts.run_price_recommendations --report earnings --time-range 30 --tenant-id TENANT_ID
    python -m scripts.run_price_recommendations --report sales --confidence low

Le rapport est affiché en JSON sur stdout (logs sur stderr).
"""

import argparse
import json
import logging
import sys

from pricing_analytics.config import CONFIDENCE_FILTER_ALL
from pricing_analytics.price_recommendations import calculate_price_recommendations
from pricing_analytics.projected_earnings import calculate_projected_earnings
from pricing_analytics.revenue_over_time import analyze_revenue
from pricing_analytics.sales_recommendations import calculate_sales_recommendations
from pricing_analytics.settings import Settings

REPORTS = ("recommendations", "earnings", "revenue", "sales")


def main() -> None:
    parser = argparse.ArgumentParser(description="Calcule les recommandations de prix et les projections de revenus.")
    parser.add_argument("--time-range", type=int, default=90, help="Profondeur d'historique en jours (0 = tout).")
    parser.add_argument("--tenant-id", default=None, help="ID du tenant (facultatif, tous par défaut).")
    parser.add_argument(
        "--confidence",
        default=CONFIDENCE_FILTER_ALL,
        choices=["high", "medium", "low", CONFIDENCE_FILTER_ALL],
        help="Niveau de confiance des recommandations.",
    )
    parser.add_argument("--report", default="recommendations", choices=REPORTS, help="Rapport à calculer.")
    parser.add_argument("--forecast", action="store_true", help="Ajoute une prévision (rapport revenue).")

    args = parser.parse_args()

    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    try:
        if args.report == "earnings":
            report = calculate_projected_earnings(args.time_range, tenant_id=args.tenant_id)
        elif args.report == "revenue":
            report = analyze_revenue(args.time_range, tenant_id=args.tenant_id, include_forecast=args.forecast)
        elif args.report == "sales":
            # "all" n'existe pas pour les bundles : niveau medium par défaut
            min_confidence = "medium" if args.confidence == CONFIDENCE_FILTER_ALL else args.confidence
            report = calculate_sales_recommendations(
                args.time_range,
                tenant_id=args.tenant_id,
                min_confidence=min_confidence,
            )
        else:
            report = calculate_price_recommendations(
                args.time_range,
                tenant_id=args.tenant_id,
                confidence=args.confidence,
            )

        # Uniquement le JSON sur stdout pour pouvoir le parser
        print(json.dumps(report.to_dict(), ensure_ascii=False))

    except Exception as e:
        error_response = {
            "error": True,
            "error_type": type(e).__name__,
            "error_message": str(e),
            "details": {
                "report": args.report,
                "time_range": args.time_range,
                "tenant_id": args.tenant_id,
            },
        }
        print(json.dumps(error_response, ensure_ascii=False))
        sys.exit(1)


if __name__ == "__main__":
    main()
