"""
Données d'exemple renvoyées par le serveur quand l'historique est insuffisant.
"""

import copy
from datetime import datetime
from typing import Any, Dict, Optional

from .models.revenue_model import calculate_revenue_projections

SAMPLE_DATA_NOTE = "Using sample data due to insufficient historical data."

SAMPLE_RECOMMENDATIONS = [
    {
        "productId": "prod_1",
        "productName": "Premium T-Shirt",
        "currentPrice": 24.99,
        "recommendedPrice": 29.99,
        "confidence": "high",
        "potentialRevenue": 5998,
        "currentRevenue": 4998,
        "revenueDifference": 1000,
        "percentageChange": 20,
    },
    {
        "productId": "prod_2",
        "productName": "Canvas Tote Bag",
        "currentPrice": 19.99,
        "recommendedPrice": 14.99,
        "confidence": "medium",
        "potentialRevenue": 3747.5,
        "currentRevenue": 2998.5,
        "revenueDifference": 749,
        "percentageChange": -25,
    },
    {
        "productId": "prod_3",
        "productName": "Vintage Hoodie",
        "currentPrice": 49.99,
        "recommendedPrice": 44.99,
        "confidence": "medium",
        "potentialRevenue": 6748.5,
        "currentRevenue": 6248.75,
        "revenueDifference": 499.75,
        "percentageChange": -10,
    },
    {
        "productId": "prod_4",
        "productName": "Embroidered Cap",
        "currentPrice": 17.99,
        "recommendedPrice": 21.99,
        "confidence": "high",
        "potentialRevenue": 4398,
        "currentRevenue": 3598,
        "revenueDifference": 800,
        "percentageChange": 22.2,
    },
]

SAMPLE_BASELINE_REVENUE = 17844.25
SAMPLE_OPTIMIZED_REVENUE = 20892.00


def get_sample_price_recommendations(now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Rapport d'exemple au format de `PriceRecommendationReport.to_dict()`.

    Les projections partent du mois suivant `now`.
    """
    projections = calculate_revenue_projections(
        [SAMPLE_BASELINE_REVENUE],
        [SAMPLE_OPTIMIZED_REVENUE],
        now=now,
    )
    return {
        "recommendations": copy.deepcopy(SAMPLE_RECOMMENDATIONS),
        "revenueProjections": [
            {
                "date": p.period_label,
                "currentRevenue": round(p.current_revenue, 2),
                "optimizedRevenue": round(p.optimized_revenue, 2),
            }
            for p in projections
        ],
    }
