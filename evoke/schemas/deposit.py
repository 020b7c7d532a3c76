"""
Pydantic schemas for SEPA deposit creation, listing, and status changes.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from evoke.models.deposit import DepositStatus
from evoke.services.currency import normalize_currency


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class DepositCreateRequest(BaseModel):
    """Schema for registering a new SEPA deposit."""
    user_id: int = Field(..., gt=0, examples=[42])
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2, examples=[1000])
    currency: str = Field("EUR", examples=["EUR"])
    referral_code: str | None = Field(None, max_length=32, examples=["A64S"])
    contractor_id: int | None = Field(None, gt=0)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return normalize_currency(v)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class BankDetails(BaseModel):
    """Platform account the client transfers to."""
    name: str
    iban: str
    bic: str
    address: str


class DepositAmounts(BaseModel):
    original: Decimal
    commission: Decimal
    net: Decimal
    currency: str
    converted: Decimal
    settlement_currency: str
    exchange_rate: Decimal
    rate_source: str


class DepositResponse(BaseModel):
    """A deposit with its amount breakdown."""
    id: int
    reference: str
    user_id: int
    amounts: DepositAmounts
    referral_code: str | None
    contractor_id: int | None
    contractor_commission: Decimal | None
    status: str
    completed_at: datetime | None
    created_at: datetime
    bank_details: BankDetails | None = None


class DepositListResponse(BaseModel):
    items: list[DepositResponse]
    total: int


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class DepositStatusUpdate(BaseModel):
    """Admin request to move a deposit along its lifecycle."""
    status: DepositStatus
