"""
Exchange rate endpoints.

Public, read-only views of the rate table in use and one-off conversions.
Upstream outages never surface here: the response carries a rate source of
``live``, ``cached`` or ``static`` instead.
"""

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from evoke.api.deps import get_converter, get_rate_service
from evoke.schemas.rate import ConversionResponse, RateTableResponse
from evoke.services.converter import CurrencyConverter
from evoke.services.currency import BASE_CURRENCY, UnsupportedCurrencyError
from evoke.services.rate_service import RateService, RateUnavailableError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/current", response_model=RateTableResponse)
async def get_current_rates(rates: RateService = Depends(get_rate_service)):
    """Return the cross-rate matrix currently used for conversions."""
    table = await rates.get_table()
    return RateTableResponse(
        base=BASE_CURRENCY,
        rates=table.rates,
        source=table.source.value,
        fetched_at=table.fetched_at,
    )


@router.get("/convert", response_model=ConversionResponse)
async def convert_amount(
    amount: Decimal = Query(..., ge=0, description="Amount in source currency", examples=[100]),
    source: str = Query(..., description="EUR, USD, GBP or CHF", examples=["EUR"]),
    target: str = Query(..., description="EUR, USD, GBP or CHF", examples=["USD"]),
    converter: CurrencyConverter = Depends(get_converter),
):
    """Convert an amount, rounded to cents, and report the rate used."""
    try:
        conversion = await converter.convert_detailed(amount, source, target)
    except UnsupportedCurrencyError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{exc}. Supported currencies: EUR, USD, GBP, CHF.",
        )
    except RateUnavailableError as exc:
        logger.error("Conversion failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        )

    return ConversionResponse(
        amount=conversion.amount,
        source_currency=conversion.source_currency,
        target_currency=conversion.target_currency,
        converted_amount=conversion.converted_amount,
        rate=conversion.rate,
        rate_source=conversion.rate_source.value,
        fetched_at=conversion.fetched_at,
    )
