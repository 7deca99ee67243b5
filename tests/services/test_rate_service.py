"""Tests for RateService: standard rate lookup and maintenance."""

from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.exceptions import ConfigurationMissingError
from billing_kernel.services.rate_service import RateService

ACTOR_ID = uuid4()


class TestStandardRate:

    def test_lookup(self, session, rates):
        assert RateService(session).standard_rate(2025) == Decimal("37.70")

    def test_missing_year_is_fatal(self, session, rates, captured_logs):
        with pytest.raises(ConfigurationMissingError) as exc_info:
            RateService(session).standard_rate(2030)

        assert exc_info.value.year == 2030
        assert exc_info.value.code == "CONFIGURATION_MISSING"
        assert any(
            r["message"] == "standard_rate_missing" and r["year"] == 2030
            for r in captured_logs()
        )


class TestSetStandardRate:

    def test_insert_new_year(self, session):
        info = RateService(session).set_standard_rate(2027, Decimal("40.10"), ACTOR_ID, "indexed")
        assert info.year == 2027
        assert info.amount == Decimal("40.10")
        assert info.description == "indexed"

    def test_replace_existing_year(self, session, rates):
        service = RateService(session)
        service.set_standard_rate(2025, Decimal("38.00"), ACTOR_ID)
        assert service.standard_rate(2025) == Decimal("38.00")

    def test_amount_is_rounded_to_cents(self, session):
        info = RateService(session).set_standard_rate(2027, Decimal("40.105"), ACTOR_ID)
        assert info.amount == Decimal("40.11")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1.00")])
    def test_non_positive_rejected(self, session, amount):
        with pytest.raises(ValueError):
            RateService(session).set_standard_rate(2027, amount, ACTOR_ID)

    def test_float_rejected(self, session):
        with pytest.raises(TypeError):
            RateService(session).set_standard_rate(2027, 40.1, ACTOR_ID)


class TestSeedRates:

    def test_seed_inserts_missing_years_only(self, session, rates):
        service = RateService(session)
        service.set_standard_rate(2025, Decimal("38.00"), ACTOR_ID)

        inserted = service.seed_rates(
            {2025: Decimal("37.70"), 2027: Decimal("40.00")}, ACTOR_ID
        )

        assert inserted == [2027]
        # Operator change survives re-seeding
        assert service.standard_rate(2025) == Decimal("38.00")

    def test_list_rates_ordered_by_year(self, session, rates):
        years = [rate.year for rate in RateService(session).list_rates()]
        assert years == [2024, 2025, 2026]
