"""
Pydantic schemas for contractor analytics and admin commission reports.
"""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from evoke.services.commission_service import validate_commission_rate


class ContractorSummary(BaseModel):
    """Commission totals over a contractor's referred deposits."""
    contractor_id: int
    referral_code: str | None
    commission_rate: Decimal
    total_commission_earned: Decimal
    pending_commissions: Decimal
    total_referred_deposits: Decimal
    active_referrals: int
    referral_count: int


class ContractorDeposit(BaseModel):
    id: int
    reference: str
    user_id: int
    amount: Decimal
    net_amount: Decimal
    currency: str
    commission: Decimal
    status: str


class ContractorUpdate(BaseModel):
    """Admin changes to a user's contractor settings."""
    is_contractor: bool | None = None
    referral_code: str | None = Field(None, min_length=3, max_length=32)
    contractor_commission_rate: Decimal | None = Field(None, examples=["0.0085"])

    @field_validator("contractor_commission_rate")
    @classmethod
    def validate_rate(cls, v: Decimal | None) -> Decimal | None:
        if v is None:
            return v
        return validate_commission_rate(v)


class ContractorResponse(BaseModel):
    id: int
    username: str
    is_contractor: bool
    referral_code: str | None
    contractor_commission_rate: Decimal | None


class CurrencyCommissionTotals(BaseModel):
    currency: str
    deposits: int
    platform_commission: Decimal
    contractor_commission: Decimal


class CommissionReport(BaseModel):
    """Platform-wide commission totals over completed deposits."""
    totals: list[CurrencyCommissionTotals]
