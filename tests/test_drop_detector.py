"""Tests for the fare drop decision."""
from decimal import Decimal
from types import SimpleNamespace

from droptracker.services.drop_detector import CandidateRequest, evaluate


def _flight(original="500.00", flight_id=7):
    return SimpleNamespace(id=flight_id, original_price=Decimal(original))


def _obs(price):
    return SimpleNamespace(price=Decimal(price))


class TestEvaluate:
    def test_lower_price_is_a_drop(self):
        result = evaluate(_flight(), _obs("450.00"))

        assert result.is_drop
        assert result.candidate == CandidateRequest(
            flight_id=7,
            original_price=Decimal("500.00"),
            new_price=Decimal("450.00"),
        )
        assert result.savings == Decimal("50.00")

    def test_equal_price_is_not_a_drop(self):
        result = evaluate(_flight(), _obs("500.00"))

        assert not result.is_drop
        assert result.candidate is None
        assert result.savings == Decimal("0")

    def test_higher_price_is_not_a_drop(self):
        assert not evaluate(_flight(), _obs("620.00")).is_drop

    def test_one_cent_counts(self):
        result = evaluate(_flight(), _obs("499.99"))
        assert result.is_drop
        assert result.candidate.price_difference == Decimal("0.01")

    def test_measured_against_original_not_previous(self):
        # Price rose from 400 to 450 but is still below the 500 booking
        result = evaluate(_flight(), _obs("450.00"))
        assert result.savings == Decimal("50.00")

    def test_accepts_float_and_string_prices(self):
        flight = SimpleNamespace(id=1, original_price=300.5)
        result = evaluate(flight, SimpleNamespace(price="250.25"))
        assert result.savings == Decimal("50.25")
