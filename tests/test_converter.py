"""Tests for CurrencyConverter."""

from decimal import Decimal
from itertools import permutations

import pytest

from evoke.services.converter import CurrencyConverter
from evoke.services.currency import SUPPORTED_CURRENCIES, UnsupportedCurrencyError
from evoke.services.rate_service import RateCache, RateService, RateSource

from conftest import T0

PAIRS = list(permutations(SUPPORTED_CURRENCIES, 2))
AMOUNTS = [Decimal("0.01"), Decimal("100"), Decimal("1234.56"), Decimal("99999.99")]


@pytest.fixture
def live_converter(live_provider):
    return CurrencyConverter(RateService(RateCache(live_provider, clock=lambda: T0)))


class TestIdentity:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", SUPPORTED_CURRENCIES)
    async def test_same_currency_returns_amount(self, converter, code):
        result = await converter.convert_detailed(Decimal("250.75"), code, code)
        assert result.converted_amount == Decimal("250.75")
        assert result.rate == Decimal("1")
        assert result.rate_source == RateSource.IDENTITY

    @pytest.mark.asyncio
    async def test_zero_amount_needs_no_rate(self, make_provider):
        provider = make_provider()
        conv = CurrencyConverter(RateService(RateCache(provider)))

        result = await conv.convert_detailed(0, "EUR", "GBP")
        assert result.converted_amount == Decimal("0")
        assert result.rate_source == RateSource.IDENTITY
        assert provider.calls == 0


class TestConversion:

    @pytest.mark.asyncio
    async def test_eur_to_usd_static(self, converter):
        """100 EUR at the static 1.08 is 108.00 USD."""
        result = await converter.convert_detailed(100, "EUR", "USD")
        assert result.converted_amount == Decimal("108.00")
        assert result.rate_source == RateSource.STATIC

    @pytest.mark.asyncio
    async def test_eur_to_usd_live(self, live_converter):
        result = await live_converter.convert_detailed(Decimal("100"), "EUR", "USD")
        assert result.converted_amount == Decimal("110.00")
        assert result.rate_source == RateSource.LIVE
        assert result.fetched_at == T0

    @pytest.mark.asyncio
    async def test_result_rounded_to_cents(self, converter):
        # 10.05 * 0.86 = 8.643
        assert await converter.convert(Decimal("10.05"), "EUR", "GBP") == Decimal("8.64")

    @pytest.mark.asyncio
    async def test_half_cent_rounds_up(self, converter):
        # 0.625 * 1.08 = 0.675
        assert await converter.convert(Decimal("0.625"), "EUR", "USD") == Decimal("0.68")

    @pytest.mark.asyncio
    async def test_codes_are_case_insensitive(self, converter):
        result = await converter.convert_detailed(100, "eur", "Usd")
        assert result.source_currency == "EUR"
        assert result.target_currency == "USD"
        assert result.converted_amount == Decimal("108.00")

    @pytest.mark.asyncio
    async def test_float_input_has_no_binary_artefacts(self, converter):
        assert await converter.convert(0.1, "EUR", "CHF") == Decimal("0.10")


class TestRoundTrip:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("source,target", PAIRS)
    async def test_static_round_trip_within_two_cents(self, converter, source, target):
        for amount in AMOUNTS:
            there = await converter.convert(amount, source, target)
            back = await converter.convert(there, target, source)
            assert abs(back - amount) <= Decimal("0.02")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("source,target", PAIRS)
    async def test_live_round_trip_within_two_cents(self, live_converter, source, target):
        for amount in AMOUNTS:
            there = await live_converter.convert(amount, source, target)
            back = await live_converter.convert(there, target, source)
            assert abs(back - amount) <= Decimal("0.02")


class TestRejections:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["JPY", "", None, "  "])
    async def test_unsupported_currency(self, converter, code):
        with pytest.raises(UnsupportedCurrencyError):
            await converter.convert(100, code, "EUR")
        with pytest.raises(UnsupportedCurrencyError):
            await converter.convert(100, "EUR", code)

    @pytest.mark.asyncio
    async def test_negative_amount(self, converter):
        with pytest.raises(ValueError, match="negative"):
            await converter.convert(Decimal("-1"), "EUR", "USD")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["abc", Decimal("NaN"), Decimal("Infinity")])
    async def test_non_numeric_amount(self, converter, amount):
        with pytest.raises(ValueError, match="Invalid amount"):
            await converter.convert(amount, "EUR", "USD")
