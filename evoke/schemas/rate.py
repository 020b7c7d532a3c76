"""
Pydantic schemas for exchange rate tables and conversions.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class RateTableResponse(BaseModel):
    """The cross-rate matrix currently in use."""
    base: str
    rates: dict[str, dict[str, Decimal]]
    source: str
    fetched_at: datetime


class ConversionResponse(BaseModel):
    """A single conversion with the rate that produced it."""
    amount: Decimal
    source_currency: str
    target_currency: str
    converted_amount: Decimal
    rate: Decimal
    rate_source: str
    fetched_at: datetime | None
