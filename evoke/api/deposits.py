"""
SEPA deposit endpoints — register, get, and list client deposits.

Create flow:
  1. Validate amount and currency (schema)
  2. Attribute the deposit to a contractor, if any
  3. Split commission and convert the net amount into the user's
     settlement currency
  4. Store the PENDING deposit
  5. Return the breakdown with the platform's bank details
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from evoke.api.deps import get_converter
from evoke.database import get_db
from evoke.models.deposit import DepositStatus, SepaDeposit
from evoke.schemas.deposit import (
    BankDetails,
    DepositAmounts,
    DepositCreateRequest,
    DepositListResponse,
    DepositResponse,
)
from evoke.services import deposit_service
from evoke.services.converter import CurrencyConverter
from evoke.services.currency import UnsupportedCurrencyError
from evoke.services.deposit_service import DepositNotFoundError, UserNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_deposit_response(
    deposit: SepaDeposit,
    bank_details: BankDetails | None = None,
) -> DepositResponse:
    """Build a DepositResponse from an ORM SepaDeposit."""
    status_val = deposit.status
    if isinstance(status_val, DepositStatus):
        status_val = status_val.value

    return DepositResponse(
        id=deposit.id,
        reference=deposit.reference,
        user_id=deposit.user_id,
        amounts=DepositAmounts(
            original=deposit.amount,
            commission=deposit.commission_fee,
            net=deposit.net_amount,
            currency=deposit.currency,
            converted=deposit.converted_amount,
            settlement_currency=deposit.settlement_currency,
            exchange_rate=deposit.exchange_rate,
            rate_source=deposit.rate_source,
        ),
        referral_code=deposit.referral_code,
        contractor_id=deposit.contractor_id,
        contractor_commission=deposit.contractor_commission,
        status=status_val,
        completed_at=deposit.completed_at,
        created_at=deposit.created_at,
        bank_details=bank_details,
    )


# ---------------------------------------------------------------------------
# POST / — Create deposit
# ---------------------------------------------------------------------------


@router.post("/", response_model=DepositResponse, status_code=status.HTTP_201_CREATED)
async def create_deposit(
    payload: DepositCreateRequest,
    db: AsyncSession = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
):
    """Register a SEPA deposit and return the transfer instructions."""
    try:
        deposit = await deposit_service.create_deposit(
            db,
            converter,
            user_id=payload.user_id,
            amount=payload.amount,
            currency=payload.currency,
            referral_code=payload.referral_code,
            contractor_id=payload.contractor_id,
        )
    except UserNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except UnsupportedCurrencyError as exc:
        # The user's stored settlement currency is outside the supported set.
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    return build_deposit_response(
        deposit, BankDetails(**deposit_service.bank_details()),
    )


# ---------------------------------------------------------------------------
# GET /{deposit_id}
# ---------------------------------------------------------------------------


@router.get("/{deposit_id}", response_model=DepositResponse)
async def get_deposit(deposit_id: int, db: AsyncSession = Depends(get_db)):
    try:
        deposit = await deposit_service.get_deposit(db, deposit_id)
    except DepositNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))

    return build_deposit_response(
        deposit, BankDetails(**deposit_service.bank_details()),
    )


# ---------------------------------------------------------------------------
# GET / — List a user's deposits
# ---------------------------------------------------------------------------


@router.get("/", response_model=DepositListResponse)
async def list_deposits(
    user_id: int = Query(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    """A user's deposits, newest first."""
    deposits = await deposit_service.list_user_deposits(db, user_id)
    return DepositListResponse(
        items=[build_deposit_response(d) for d in deposits],
        total=len(deposits),
    )
