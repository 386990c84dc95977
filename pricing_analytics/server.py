"""
Serveur Python persistant pour le moteur d'analyse pricing.

Le process reste ouvert et traite les requêtes reçues sur stdin.
Une requête en erreur est loggée et renvoyée sous forme de JSON d'erreur,
le serveur ne s'arrête pas.

Communication :
- Entrée : JSON ligne par ligne sur stdin
- Sortie : JSON ligne par ligne sur stdout
- Logs : stderr
"""

import json
import logging
import os
import sys
from typing import Any, Dict

from .errors import DatabaseConnectionError, InsufficientDataError
from .optimizer import optimize_price_for_revenue
from .price_recommendations import calculate_price_recommendations
from .projected_earnings import calculate_projected_earnings
from .revenue_over_time import analyze_revenue
from .sales_recommendations import calculate_sales_recommendations, get_optimal_products
from .sample_data import SAMPLE_DATA_NOTE, get_sample_price_recommendations
from .settings import Settings

logger = logging.getLogger(__name__)

ACTION_PRICE_RECOMMENDATIONS = "price_recommendations"
ACTION_PROJECTED_EARNINGS = "projected_earnings"
ACTION_REVENUE_OVER_TIME = "revenue_over_time"
ACTION_SALES_RECOMMENDATIONS = "sales_recommendations"
ACTION_OPTIMAL_PRODUCTS = "optimal_products"
ACTION_OPTIMIZE_PRICE = "optimize_price"

DEFAULT_TIME_RANGE = 90


def _parse_time_range(value: Any) -> int:
    if value is None or value == "":
        return DEFAULT_TIME_RANGE
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"timeRange doit être un entier: {value!r}") from None


def _parse_float(data: Dict[str, Any], key: str, default: Any = None) -> float:
    value = data.get(key, default)
    if value is None or value == "":
        raise ValueError(f"{key} est obligatoire")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} doit être un nombre: {value!r}") from None


def _optimize_price(data: Dict[str, Any]) -> Dict[str, Any]:
    result = optimize_price_for_revenue(
        _parse_float(data, "currentPrice"),
        _parse_float(data, "priceElasticity"),
        min_price_change=_parse_float(data, "minPriceChange", -0.2),
        max_price_change=_parse_float(data, "maxPriceChange", 0.2),
        cost_price=_parse_float(data, "costPrice", 0),
    )
    return result.to_dict()


def process_request(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Traite une requête JSON unique.

    Format attendu :
    {
        "action": "price_recommendations",  # ou projected_earnings, revenue_over_time,
                                            # sales_recommendations, optimal_products,
                                            # optimize_price
        "timeRange": 90,
        "tenantId": "uuid",          # optionnel
        "confidence": "all",         # optionnel (recommandations, bundles)
        "includeForecast": false,    # optionnel (revenue_over_time)
        "currentPrice": 100,         # optimize_price
        "priceElasticity": -2.0      # optimize_price (+ minPriceChange, maxPriceChange, costPrice)
    }

    Retourne :
    {
        "status": "success",
        "statusCode": 200,
        "data": {...}
    }
    """
    if not isinstance(data, dict):
        raise ValueError("La requête doit être un objet JSON")

    action = data.get("action", ACTION_PRICE_RECOMMENDATIONS)

    if action == ACTION_OPTIMIZE_PRICE:
        return {"status": "success", "statusCode": 200, "data": _optimize_price(data)}

    time_range = _parse_time_range(data.get("timeRange"))
    tenant_id = data.get("tenantId")

    if action == ACTION_PRICE_RECOMMENDATIONS:
        payload = calculate_price_recommendations(
            time_range,
            tenant_id=tenant_id,
            confidence=data.get("confidence") or "all",
        ).to_dict()
    elif action == ACTION_PROJECTED_EARNINGS:
        payload = calculate_projected_earnings(time_range, tenant_id=tenant_id).to_dict()
    elif action == ACTION_REVENUE_OVER_TIME:
        payload = analyze_revenue(
            time_range,
            tenant_id=tenant_id,
            include_forecast=bool(data.get("includeForecast", False)),
        ).to_dict()
    elif action == ACTION_SALES_RECOMMENDATIONS:
        payload = calculate_sales_recommendations(
            time_range,
            tenant_id=tenant_id,
            min_confidence=data.get("confidence") or "medium",
        ).to_dict()
    elif action == ACTION_OPTIMAL_PRODUCTS:
        products = get_optimal_products(
            time_range,
            min_confidence=data.get("confidence") or "medium",
            tenant_id=tenant_id,
        )
        payload = [p.to_dict() for p in products]
    else:
        raise ValueError(f"Action inconnue: {action}")

    return {"status": "success", "statusCode": 200, "data": payload}


def _error_response(error: Exception, status_code: int) -> Dict[str, Any]:
    return {
        "error": str(error),
        "status": "error",
        "statusCode": status_code,
        "type": type(error).__name__,
    }


def handle_request(data: Any) -> Dict[str, Any]:
    """
    Traite une requête et traduit les erreurs métier en code HTTP :
    - base injoignable : 503,
    - historique insuffisant : données d'exemple (recommandations) ou 404,
    - requête invalide : 400,
    - autre erreur : 500.
    """
    try:
        return process_request(data)
    except DatabaseConnectionError as e:
        logger.error(f"Database unavailable: {e}")
        return _error_response(e, 503)
    except InsufficientDataError as e:
        action = data.get("action", ACTION_PRICE_RECOMMENDATIONS)
        if action == ACTION_PRICE_RECOMMENDATIONS:
            logger.warning(f"Insufficient data, returning sample recommendations: {e}")
            return {
                "status": "success",
                "statusCode": 200,
                "data": get_sample_price_recommendations(),
                "note": SAMPLE_DATA_NOTE,
            }
        return _error_response(e, 404)
    except ValueError as e:
        return _error_response(e, 400)
    except Exception as e:
        logger.exception(f"Erreur traitement requête: {e}")
        return _error_response(e, 500)


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )
    logger.info(f"Service Python Pricing Analytics démarré (PID: {os.getpid()})")

    # Boucle infinie de lecture sur stdin
    while True:
        try:
            line = sys.stdin.readline()
            if not line:
                break  # Fin du flux (le process parent a fermé stdin)

            line = line.strip()
            if not line:
                continue

            try:
                request_data = json.loads(line)
            except json.JSONDecodeError as e:
                response_data = _error_response(e, 400)
            else:
                response_data = handle_request(request_data)

            sys.stdout.write(json.dumps(response_data) + "\n")
            sys.stdout.flush()

        except KeyboardInterrupt:
            break
        except Exception as global_error:
            logger.exception(f"Erreur critique boucle principale: {global_error}")


if __name__ == "__main__":
    main()
