"""
Currency conversion on top of RateService.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from evoke.services.currency import normalize_currency, round_money, to_amount
from evoke.services.rate_service import RateService, RateSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Conversion:
    amount: Decimal
    source_currency: str
    target_currency: str
    converted_amount: Decimal
    rate: Decimal
    rate_source: RateSource
    fetched_at: datetime | None


class CurrencyConverter:
    """Convert money between the supported currencies."""

    def __init__(self, rates: RateService):
        self.rates = rates

    async def convert_detailed(self, amount, source: str, target: str) -> Conversion:
        """
        Convert *amount* from *source* into *target*, rounded to cents.

        Zero amounts and same-currency conversions return *amount* unchanged
        without a rate lookup, reported with the identity rate source.
        """
        value = to_amount(amount)

        src = normalize_currency(source)
        dst = normalize_currency(target)

        if value == 0 or src == dst:
            return Conversion(
                amount=value,
                source_currency=src,
                target_currency=dst,
                converted_amount=value,
                rate=Decimal("1"),
                rate_source=RateSource.IDENTITY,
                fetched_at=None,
            )

        lookup = await self.rates.lookup_rate(src, dst)
        converted = round_money(value * lookup.rate)

        logger.debug(
            "Converted %s %s -> %s %s at %s (%s)",
            value, src, converted, dst, lookup.rate, lookup.source.value,
        )
        return Conversion(
            amount=value,
            source_currency=src,
            target_currency=dst,
            converted_amount=converted,
            rate=lookup.rate,
            rate_source=lookup.source,
            fetched_at=lookup.fetched_at,
        )

    async def convert(self, amount, source: str, target: str) -> Decimal:
        conversion = await self.convert_detailed(amount, source, target)
        return conversion.converted_amount
