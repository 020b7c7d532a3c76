"""
Back-office endpoints.

Deposit status changes (completion credits the client's balance),
contractor settings, and platform-wide commission totals.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from evoke.api.deposits import build_deposit_response
from evoke.api.deps import get_converter
from evoke.database import get_db
from evoke.models.deposit import InvalidStatusTransitionError
from evoke.schemas.contractor import (
    CommissionReport,
    ContractorResponse,
    ContractorUpdate,
    CurrencyCommissionTotals,
)
from evoke.schemas.deposit import DepositResponse, DepositStatusUpdate
from evoke.services import analytics_service, deposit_service
from evoke.services.analytics_service import ContractorNotFoundError
from evoke.services.converter import CurrencyConverter
from evoke.services.currency import UnsupportedCurrencyError
from evoke.services.deposit_service import DepositNotFoundError, UserNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.patch("/deposits/{deposit_id}/status", response_model=DepositResponse)
async def update_deposit_status(
    deposit_id: int,
    payload: DepositStatusUpdate,
    db: AsyncSession = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
):
    """Move a deposit along pending -> processing -> completed/failed."""
    try:
        deposit = await deposit_service.transition_deposit(
            db, converter, deposit_id, payload.status,
        )
    except (DepositNotFoundError, UserNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except InvalidStatusTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except UnsupportedCurrencyError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    logger.info("Deposit %s moved to %s", deposit.reference, payload.status.value)
    return build_deposit_response(deposit)


@router.patch("/contractors/{user_id}", response_model=ContractorResponse)
async def update_contractor(
    user_id: int,
    payload: ContractorUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await analytics_service.update_contractor(
            db,
            user_id,
            is_contractor=payload.is_contractor,
            referral_code=payload.referral_code,
            contractor_commission_rate=payload.contractor_commission_rate,
        )
    except ContractorNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Referral code is already in use",
        )

    return ContractorResponse(
        id=user.id,
        username=user.username,
        is_contractor=user.is_contractor,
        referral_code=user.referral_code,
        contractor_commission_rate=user.contractor_commission_rate,
    )


@router.get("/commissions", response_model=CommissionReport)
async def get_commission_report(db: AsyncSession = Depends(get_db)):
    """Platform and contractor commission per currency, completed deposits only."""
    totals = await analytics_service.commission_report(db)
    return CommissionReport(totals=[CurrencyCommissionTotals(**t) for t in totals])
