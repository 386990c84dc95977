"""
Tests unitaires pour optimizer.py
"""

import dataclasses
import math
from unittest.mock import patch

import pytest

from pricing_analytics.config import AnalyticsConfig
from pricing_analytics.interfaces.data_access import SaleRecord
from pricing_analytics.optimizer import (
    PriceRecommendation,
    choose_price_change,
    estimate_monthly_revenue,
    generate_price_recommendation,
    optimize_price_for_revenue,
)

CONFIG = AnalyticsConfig()
LOW = CONFIG.get_tier("low")
MEDIUM = CONFIG.get_tier("medium")
HIGH = CONFIG.get_tier("high")


class TestEstimateMonthlyRevenue:
    """Tests pour estimate_monthly_revenue."""

    def test_revenue_per_sale_day_times_thirty(self, make_history):
        # 5 x 100 x 10 + 5 x 150 x 8 = 11000 sur 10 jours distincts
        history = make_history("p1", [(100.0, 10, 5), (150.0, 8, 5)])
        assert estimate_monthly_revenue(history) == pytest.approx(33000.0)

    def test_same_day_sales_counted_once(self, make_history):
        history = make_history("p1", [(10.0, 1, 4)])
        same_day = history.sales[0].occurred_at
        history.sales = [SaleRecord(price=s.price, quantity=s.quantity, occurred_at=same_day) for s in history.sales]
        assert estimate_monthly_revenue(history) == pytest.approx(40.0 * 30)

    def test_no_sales(self, make_history):
        assert estimate_monthly_revenue(make_history("p1", [])) == 0.0


class TestChoosePriceChange:
    """Tests de la règle de direction."""

    def test_inelastic_demand_increases_price(self):
        assert choose_price_change(-0.4, LOW) == pytest.approx(0.10)
        assert choose_price_change(0.5, HIGH) == pytest.approx(0.25)

    def test_elastic_demand_decreases_price(self):
        assert choose_price_change(-1.0, MEDIUM) == pytest.approx(-0.15)
        assert choose_price_change(-3.0, HIGH) == pytest.approx(-0.25)


class TestGeneratePriceRecommendation:
    """Tests pour generate_price_recommendation."""

    def test_price_increase(self, make_history):
        history = make_history("p1", [(100.0, 10, 5), (150.0, 8, 5)], current_price=100.0)

        rec = generate_price_recommendation(history, LOW, CONFIG)

        assert rec is not None
        assert rec.confidence == "low"
        assert rec.current_price == 100.0
        assert rec.recommended_price == pytest.approx(110.0)
        assert rec.percentage_change == 10.0
        assert rec.current_revenue == pytest.approx(33000.0)
        assert rec.potential_revenue == pytest.approx(33000.0 * 1.1 * 0.96)
        assert rec.revenue_difference == pytest.approx(rec.potential_revenue - rec.current_revenue)

    def test_price_decrease(self, elastic_history):
        rec = generate_price_recommendation(elastic_history, HIGH, CONFIG)

        assert rec is not None
        assert rec.recommended_price == pytest.approx(75.0)
        assert rec.percentage_change == -25.0
        assert rec.revenue_difference > 0

    def test_percentage_change_matches_threshold(self, inelastic_history):
        for tier in (LOW, MEDIUM, HIGH):
            rec = generate_price_recommendation(inelastic_history, tier, CONFIG)
            assert rec is not None
            assert abs(rec.percentage_change) == tier.threshold_percent
            assert rec.recommended_price == pytest.approx(
                inelastic_history.current_price * (1 + tier.threshold_fraction)
            )

    def test_not_enough_sales_for_tier(self, small_history):
        assert generate_price_recommendation(small_history, MEDIUM, CONFIG) is None
        assert generate_price_recommendation(small_history, HIGH, CONFIG) is None
        assert generate_price_recommendation(small_history, LOW, CONFIG) is not None

    def test_single_price_history(self, make_history):
        history = make_history("p1", [(120.0, 1, 30)], current_price=100.0)
        assert generate_price_recommendation(history, HIGH, CONFIG) is None

    @patch("pricing_analytics.optimizer.estimate_price_elasticity")
    def test_too_inelastic(self, mock_elasticity, inelastic_history):
        mock_elasticity.return_value = 0.05
        assert generate_price_recommendation(inelastic_history, HIGH, CONFIG) is None

    @patch("pricing_analytics.optimizer.estimate_price_elasticity")
    def test_non_finite_elasticity(self, mock_elasticity, inelastic_history):
        mock_elasticity.return_value = float("nan")
        assert generate_price_recommendation(inelastic_history, HIGH, CONFIG) is None

    @patch("pricing_analytics.optimizer.estimate_price_elasticity")
    def test_change_that_loses_revenue_is_skipped(self, mock_elasticity, inelastic_history):
        # E = -0.95 : hausse recommandée mais 1.25 * (1 - 0.2375) < 1
        mock_elasticity.return_value = -0.95
        assert generate_price_recommendation(inelastic_history, HIGH, CONFIG) is None

    def test_to_dict_keys(self, inelastic_history):
        rec = generate_price_recommendation(inelastic_history, HIGH, CONFIG)
        assert set(rec.to_dict().keys()) == {
            "productId",
            "productName",
            "currentPrice",
            "recommendedPrice",
            "confidence",
            "currentRevenue",
            "potentialRevenue",
            "revenueDifference",
            "percentageChange",
        }

    def test_recommendation_fields_match_payload(self):
        fields = {f.name for f in dataclasses.fields(PriceRecommendation)}
        assert "elasticity" not in fields
        assert len(fields) == 9


class TestOptimizePriceForRevenue:
    """Tests pour optimize_price_for_revenue."""

    def test_revenue_optimum_clamped_to_upper_bound(self):
        # p* = 100 * -2 / -1 = 200, borné à 120
        result = optimize_price_for_revenue(100.0, -2.0)

        assert result.optimized_price == pytest.approx(120.0)
        assert result.expected_sales_change == pytest.approx(-40.0)
        assert result.expected_revenue_change == pytest.approx(1.2 * 0.6 * 100 - 100)

    def test_inelastic_optimum_clamped_to_lower_bound(self):
        # p* = 100 * -0.5 / 0.5 = -100, borné à 80
        result = optimize_price_for_revenue(100.0, -0.5)

        assert result.optimized_price == pytest.approx(80.0)
        assert result.expected_sales_change == pytest.approx(10.0)
        assert result.expected_revenue_change == pytest.approx(-12.0)

    def test_custom_bounds(self):
        result = optimize_price_for_revenue(100.0, -3.0, min_price_change=-0.15, max_price_change=0.15)
        assert result.optimized_price == pytest.approx(115.0)

    def test_cost_price_maximizes_margin(self):
        # p* = 66 / (1 - 1/4) = 88, dans les bornes
        result = optimize_price_for_revenue(100.0, -4.0, cost_price=66.0)

        assert result.optimized_price == pytest.approx(88.0)
        assert result.expected_sales_change == pytest.approx(48.0)
        assert result.expected_revenue_change == pytest.approx(0.88 * 1.48 * 100 - 100)

    def test_unit_elasticity_stays_within_bounds(self):
        assert optimize_price_for_revenue(100.0, -1.0).optimized_price == pytest.approx(80.0)
        assert optimize_price_for_revenue(100.0, -1.0, cost_price=50.0).optimized_price == pytest.approx(120.0)

    @pytest.mark.parametrize("elasticity", [0.0, 0.5, math.nan])
    def test_invalid_elasticity_keeps_price(self, elasticity):
        result = optimize_price_for_revenue(100.0, elasticity)

        assert result.optimized_price == 100.0
        assert result.expected_sales_change == 0.0
        assert result.expected_revenue_change == 0.0

    def test_to_dict_keys(self):
        payload = optimize_price_for_revenue(50.0, -2.0).to_dict()
        assert payload == {
            "currentPrice": 50.0,
            "optimizedPrice": pytest.approx(60.0),
            "expectedSalesChange": pytest.approx(-40.0),
            "expectedRevenueChange": pytest.approx(-28.0),
        }


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
