"""
Tests unitaires pour price_recommendations.py
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from pricing_analytics.config import AnalyticsConfig
from pricing_analytics.errors import (
    AnalyticsCalculationError,
    DatabaseConnectionError,
    InsufficientDataError,
)
from pricing_analytics.interfaces.data_access import PartialResult
from pricing_analytics.price_recommendations import (
    calculate_price_recommendations,
    get_price_recommendations,
)

FETCH = "pricing_analytics.price_recommendations.fetch_product_sales_histories"
DB_CHECK = "pricing_analytics.price_recommendations.check_database_connection"


@pytest.fixture
def config():
    return AnalyticsConfig()


class TestCalculatePriceRecommendations:
    """Tests pour calculate_price_recommendations."""

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_database_unreachable(self, mock_db_check, mock_fetch, config, now):
        mock_db_check.side_effect = DatabaseConnectionError()

        with pytest.raises(DatabaseConnectionError) as exc_info:
            calculate_price_recommendations(90, config=config, now=now)

        assert "Unable to connect to the database" in str(exc_info.value)
        mock_fetch.assert_not_called()

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_single_sale_product_is_insufficient(self, mock_db_check, mock_fetch, make_history, config, now):
        mock_fetch.return_value = PartialResult(items=[make_history("p1", [(10.0, 1, 1)])])

        with pytest.raises(InsufficientDataError):
            calculate_price_recommendations(90, config=config, now=now)

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_no_products(self, mock_db_check, mock_fetch, config, now):
        mock_fetch.return_value = PartialResult(items=[], failed=2)

        with pytest.raises(InsufficientDataError):
            calculate_price_recommendations(90, config=config, now=now)

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_high_filter(self, mock_db_check, mock_fetch, inelastic_history, small_history, config, now):
        mock_fetch.return_value = PartialResult(items=[inelastic_history, small_history])

        report = calculate_price_recommendations(90, confidence="high", config=config, now=now)

        assert [r.product_id for r in report.recommendations] == ["inelastic"]
        assert report.recommendations[0].confidence == "high"
        assert report.recommendations[0].percentage_change == 25.0

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_low_filter(self, mock_db_check, mock_fetch, inelastic_history, small_history, config, now):
        mock_fetch.return_value = PartialResult(items=[inelastic_history, small_history])

        report = calculate_price_recommendations(90, confidence="low", config=config, now=now)

        assert {r.product_id for r in report.recommendations} == {"inelastic", "small"}
        assert all(r.confidence == "low" for r in report.recommendations)

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_all_filter_uses_highest_tier_once(
        self, mock_db_check, mock_fetch, inelastic_history, small_history, elastic_history, config, now
    ):
        mock_fetch.return_value = PartialResult(items=[inelastic_history, small_history, elastic_history])

        report = calculate_price_recommendations(90, config=config, now=now)

        by_id = {r.product_id: r for r in report.recommendations}
        assert len(report.recommendations) == 3
        assert by_id["inelastic"].confidence == "high"
        assert by_id["elastic"].confidence == "high"
        assert by_id["small"].confidence == "low"

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_direction_and_bounded_change(
        self, mock_db_check, mock_fetch, inelastic_history, elastic_history, config, now
    ):
        mock_fetch.return_value = PartialResult(items=[inelastic_history, elastic_history])

        report = calculate_price_recommendations(90, config=config, now=now)

        by_id = {r.product_id: r for r in report.recommendations}
        assert by_id["inelastic"].recommended_price > by_id["inelastic"].current_price
        assert by_id["elastic"].recommended_price < by_id["elastic"].current_price
        for rec in report.recommendations:
            change = abs(rec.recommended_price / rec.current_price - 1)
            assert change <= 0.25 + 1e-9

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_sorted_by_impact(self, mock_db_check, mock_fetch, inelastic_history, elastic_history, config, now):
        mock_fetch.return_value = PartialResult(items=[inelastic_history, elastic_history])

        report = calculate_price_recommendations(90, config=config, now=now)

        differences = [abs(r.revenue_difference) for r in report.recommendations]
        assert differences == sorted(differences, reverse=True)

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_revenue_projections(
        self, mock_db_check, mock_fetch, inelastic_history, make_history, config, now
    ):
        flat = make_history("flat", [(50.0, 2, 10)], current_price=50.0)
        mock_fetch.return_value = PartialResult(items=[inelastic_history, flat])

        report = calculate_price_recommendations(90, config=config, now=now)

        projections = report.revenue_projections
        assert len(projections) == 6
        assert projections[0].period_label == "Jun 2024"
        rec = report.recommendations[0]
        # Le produit sans recommandation garde son revenu actuel : 10 x 100 / 10 jours x 30
        assert projections[0].current_revenue == pytest.approx(rec.current_revenue + 3000.0)
        assert projections[0].optimized_revenue == pytest.approx(rec.potential_revenue + 3000.0)
        for previous, current in zip(projections, projections[1:]):
            assert current.current_revenue >= previous.current_revenue
        assert all(p.optimized_revenue > p.current_revenue for p in projections)

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_default_window(self, mock_db_check, mock_fetch, inelastic_history, config, now):
        mock_fetch.return_value = PartialResult(items=[inelastic_history])

        calculate_price_recommendations(0, tenant_id="tenant-1", config=config, now=now)

        start, end, tenant_id = mock_fetch.call_args[0]
        assert end == now
        assert start == now - timedelta(days=90)
        assert tenant_id == "tenant-1"

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_unexpected_error_is_wrapped(self, mock_db_check, mock_fetch, config, now):
        mock_fetch.side_effect = RuntimeError("boom")

        with pytest.raises(AnalyticsCalculationError) as exc_info:
            calculate_price_recommendations(30, config=config, now=now)

        assert str(exc_info.value) == "Failed to calculate price recommendations. boom"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_skipped_products_reported(self, mock_db_check, mock_fetch, inelastic_history, config, now):
        mock_fetch.return_value = PartialResult(items=[inelastic_history], failed=1)

        report = calculate_price_recommendations(30, config=config, now=now)

        assert report.skipped_products == 1
        assert len(report.recommendations) == 1

    @patch(DB_CHECK)
    def test_invalid_confidence(self, mock_db_check, config, now):
        with pytest.raises(ValueError):
            calculate_price_recommendations(30, confidence="certain", config=config, now=now)
        mock_db_check.assert_not_called()

    @patch(FETCH)
    @patch(DB_CHECK)
    def test_to_dict(self, mock_db_check, mock_fetch, inelastic_history, config, now):
        mock_fetch.return_value = PartialResult(items=[inelastic_history])

        payload = calculate_price_recommendations(30, config=config, now=now).to_dict()

        assert set(payload.keys()) == {"recommendations", "revenueProjections"}
        assert payload["recommendations"][0]["productName"] == "Canvas Tote Bag"


class TestConfigResolution:
    """La configuration par défaut est lue une seule fois par calcul."""

    @patch(FETCH)
    @patch(DB_CHECK)
    @patch("pricing_analytics.price_recommendations.get_default_analytics_config")
    def test_default_config_resolved_once(
        self, mock_config, mock_db_check, mock_fetch, inelastic_history, elastic_history, now
    ):
        mock_config.return_value = AnalyticsConfig()
        mock_fetch.return_value = PartialResult(items=[inelastic_history, elastic_history])

        report = calculate_price_recommendations(90, now=now)

        assert len(report.recommendations) == 2
        mock_config.assert_called_once_with()


class TestGetPriceRecommendations:
    """Tests pour la variante simplifiée."""

    @patch("pricing_analytics.price_recommendations.calculate_price_recommendations")
    def test_returns_empty_list_on_error(self, mock_calculate):
        mock_calculate.side_effect = DatabaseConnectionError()
        assert get_price_recommendations(30) == []

    @patch(FETCH)
    @patch(DB_CHECK)
    @patch("pricing_analytics.price_recommendations.get_default_analytics_config")
    def test_returns_dicts(self, mock_config, mock_db_check, mock_fetch, inelastic_history):
        mock_config.return_value = AnalyticsConfig()
        mock_fetch.return_value = PartialResult(items=[inelastic_history])

        result = get_price_recommendations(30, confidence="medium")

        assert len(result) == 1
        assert result[0]["confidence"] == "medium"
        assert result[0]["percentageChange"] == 15.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
