"""
Contractor analytics endpoints.

Commission totals and the deposit list for a referring contractor.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from evoke.database import get_db
from evoke.schemas.contractor import ContractorDeposit, ContractorSummary
from evoke.services import analytics_service
from evoke.services.analytics_service import ContractorNotFoundError

router = APIRouter()


@router.get("/{contractor_id}/summary", response_model=ContractorSummary)
async def get_summary(contractor_id: int, db: AsyncSession = Depends(get_db)):
    """
    Commission earned (completed deposits), commission still pending,
    referred volume, and referral counts.
    """
    try:
        summary = await analytics_service.contractor_summary(db, contractor_id)
    except ContractorNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return ContractorSummary(**summary)


@router.get("/{contractor_id}/deposits", response_model=list[ContractorDeposit])
async def list_referred_deposits(contractor_id: int, db: AsyncSession = Depends(get_db)):
    try:
        contractor = await analytics_service.get_contractor(db, contractor_id)
    except ContractorNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))

    deposits = await analytics_service.contractor_deposits(db, contractor)
    rate = contractor.effective_contractor_rate
    return [
        ContractorDeposit(
            id=d.id,
            reference=d.reference,
            user_id=d.user_id,
            amount=d.amount,
            net_amount=d.net_amount,
            currency=d.currency,
            commission=analytics_service.deposit_commission_for(d, contractor.id, rate),
            status=d.status.value,
        )
        for d in deposits
    ]
