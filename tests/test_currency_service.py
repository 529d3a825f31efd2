"""
Tests for currencies, exchange rates and conversions.
"""

from datetime import datetime, timedelta, timezone

import pytest

from freelance_marketplace_api.app.core.exceptions import NotFoundError, ValidationError
from freelance_marketplace_api.app.schemas.budget import BudgetCreate
from freelance_marketplace_api.app.services.budget_service import BudgetService
from freelance_marketplace_api.app.services.currency_service import CurrencyService, round_to_decimal_places


@pytest.mark.parametrize(
    "value, places, expected",
    [(2.675, 2, 2.68), (1.005, 2, 1.01), (1494.56, 0, 1495.0), (0.125, 2, 0.13), (10, 2, 10.0)],
)
def test_round_half_up(value, places, expected):
    assert round_to_decimal_places(value, places) == expected


class TestCurrencies:
    @pytest.mark.asyncio
    async def test_seeded_currencies(self):
        currencies = await CurrencyService.get_supported_currencies()
        assert len(currencies) == 20
        assert currencies[0].code == "USD"
        assert currencies[0].is_base is True
        decimals = {c.code: c.decimal_places for c in currencies}
        assert decimals["JPY"] == 0
        assert decimals["EUR"] == 2

    @pytest.mark.asyncio
    async def test_validate_currency(self):
        valid = await CurrencyService.validate_currency("GBP")
        assert valid.is_valid is True
        assert valid.currency.symbol == "£"

        invalid = await CurrencyService.validate_currency("XYZ")
        assert invalid.is_valid is False
        assert invalid.error == "Currency XYZ not found or inactive"

    @pytest.mark.asyncio
    async def test_format_currency_amount(self):
        assert await CurrencyService.format_currency_amount(1234.5, "EUR") == "€1234.50"
        assert await CurrencyService.format_currency_amount(1234.5, "JPY") == "¥1235"
        assert await CurrencyService.format_currency_amount(99.999, "USD", include_symbol=False) == "100.00"
        with pytest.raises(ValidationError, match="Currency XYZ not found or inactive"):
            await CurrencyService.format_currency_amount(1, "XYZ")


class TestExchangeRates:
    @pytest.mark.asyncio
    async def test_same_currency(self):
        rate = await CurrencyService.get_exchange_rate("EUR", "EUR")
        assert rate.rate == 1
        assert rate.source == "SAME_CURRENCY"

    @pytest.mark.asyncio
    async def test_unknown_currency(self):
        with pytest.raises(ValidationError, match="One or both currencies not found or inactive"):
            await CurrencyService.get_exchange_rate("USD", "XYZ")

    @pytest.mark.asyncio
    async def test_missing_rate(self):
        with pytest.raises(ValidationError, match="No active exchange rate found for USD to EUR"):
            await CurrencyService.get_exchange_rate("USD", "EUR")

    @pytest.mark.asyncio
    async def test_update_replaces_active_rate(self):
        first = await CurrencyService.update_exchange_rate("USD", "EUR", 0.91, user_id=None, source="ECB")
        assert first.old_rate is None

        second = await CurrencyService.update_exchange_rate("USD", "EUR", 0.92, user_id=None)
        assert second.old_rate == 0.91
        assert second.new_rate == 0.92

        current = await CurrencyService.get_exchange_rate("USD", "EUR")
        assert current.rate == 0.92
        assert current.source == "MANUAL"

        history = await CurrencyService.get_conversion_history("USD", "EUR")
        assert [h.rate for h in history] == [0.92, 0.91]
        assert [h.is_active for h in history] == [True, False]

    @pytest.mark.asyncio
    async def test_rates_are_directional(self):
        await CurrencyService.update_exchange_rate("USD", "EUR", 0.92, user_id=None)
        with pytest.raises(ValidationError, match="No active exchange rate found for EUR to USD"):
            await CurrencyService.get_exchange_rate("EUR", "USD")

    @pytest.mark.asyncio
    async def test_expired_rate_is_ignored(self):
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)
        await CurrencyService.update_exchange_rate("USD", "GBP", 0.79, user_id=None, expiry_date=yesterday)
        with pytest.raises(ValidationError, match="No active exchange rate found"):
            await CurrencyService.get_exchange_rate("USD", "GBP")

    @pytest.mark.asyncio
    async def test_rate_must_be_positive(self):
        with pytest.raises(ValidationError, match="Exchange rate must be greater than 0"):
            await CurrencyService.update_exchange_rate("USD", "EUR", 0, user_id=None)


class TestConversion:
    @pytest.mark.asyncio
    async def test_convert_rounds_to_target_decimals(self):
        await CurrencyService.update_exchange_rate("USD", "JPY", 149.456, user_id=None)
        result = await CurrencyService.convert_currency(10, "USD", "JPY")
        assert result.converted_amount == 1495
        assert result.exchange_rate == 149.456
        assert result.original_amount == 10
        assert result.target_currency == "JPY"

    @pytest.mark.asyncio
    async def test_convert_same_currency(self):
        result = await CurrencyService.convert_currency(12.345, "USD", "USD")
        assert result.converted_amount == 12.345
        assert result.exchange_rate == 1

    @pytest.mark.asyncio
    async def test_convert_same_zero_decimal_currency(self):
        result = await CurrencyService.convert_currency(123.456, "JPY", "JPY")
        assert result.exchange_rate == 1
        assert result.converted_amount == 123.456
        assert result.original_currency == result.target_currency == "JPY"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code, rate, expected",
        [("JPY", 150.25, 1503), ("KRW", 1330.04, 13300), ("HUF", 355.56, 3556)],
    )
    async def test_zero_decimal_targets_round_half_up(self, code, rate, expected):
        await CurrencyService.update_exchange_rate("USD", code, rate, user_id=None)
        result = await CurrencyService.convert_currency(10, "USD", code)
        assert result.converted_amount == expected
        assert result.converted_amount == int(result.converted_amount)

    @pytest.mark.asyncio
    async def test_amount_must_be_positive(self):
        with pytest.raises(ValidationError, match="Amount must be greater than 0"):
            await CurrencyService.convert_currency(0, "USD", "EUR")

    @pytest.mark.asyncio
    async def test_budget_in_multiple_currencies(self, accounts, job):
        await BudgetService.create_budget(job.id, BudgetCreate(type="FIXED", amount=5000), accounts["client"].id)
        await CurrencyService.update_exchange_rate("USD", "EUR", 0.9, user_id=None)

        result = await CurrencyService.get_budget_in_multiple_currencies(job.id, ["USD", "EUR", "GBP"])
        assert result.base_budget.formatted_amount == "$5000.00"
        # USD is the budget's own currency and GBP has no rate
        assert len(result.converted_budgets) == 1
        euro = result.converted_budgets[0]
        assert euro.currency == "EUR"
        assert euro.amount == 4500
        assert euro.formatted_amount == "€4500.00"

    @pytest.mark.asyncio
    async def test_budget_in_multiple_currencies_without_budget(self, job):
        with pytest.raises(NotFoundError, match="Budget not found for this job"):
            await CurrencyService.get_budget_in_multiple_currencies(job.id, ["EUR"])
