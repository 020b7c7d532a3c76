"""
Commission analytics for contractors and administrators.

A contractor's deposits are those attributed to them by id plus those
carrying their referral code. Commission is only counted on deposits
attributed to the contractor; rows created before contractor commission
was stored are recomputed from their net amount.
"""

import logging
from collections import defaultdict
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from evoke.config import settings
from evoke.models.deposit import DepositStatus, SepaDeposit
from evoke.models.user import User
from evoke.services.commission_service import contractor_commission
from evoke.services.currency import to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

OPEN_STATUSES = (DepositStatus.PENDING, DepositStatus.PROCESSING)


class ContractorNotFoundError(Exception):
    pass


def deposit_commission_for(deposit: SepaDeposit, contractor_id: int, rate: Decimal) -> Decimal:
    """The commission *contractor_id* earns on *deposit* (0 if not attributed)."""
    if deposit.contractor_id != contractor_id:
        return ZERO
    if deposit.contractor_commission is not None:
        return to_decimal(deposit.contractor_commission)
    return contractor_commission(deposit.net_amount, rate)


# ---------------------------------------------------------------------------
# Contractor view
# ---------------------------------------------------------------------------


async def get_contractor(db: AsyncSession, contractor_id: int) -> User:
    """Load a user that acts as a contractor (flagged, or owning a code)."""
    result = await db.execute(select(User).where(User.id == contractor_id))
    user = result.scalar_one_or_none()
    if user is None or not (user.is_contractor or user.referral_code):
        raise ContractorNotFoundError(f"Contractor {contractor_id} not found")
    return user


async def contractor_deposits(db: AsyncSession, contractor: User) -> list[SepaDeposit]:
    conditions = [SepaDeposit.contractor_id == contractor.id]
    if contractor.referral_code:
        conditions.append(SepaDeposit.referral_code == contractor.referral_code)

    result = await db.execute(
        select(SepaDeposit)
        .where(or_(*conditions))
        .order_by(SepaDeposit.created_at.desc())
    )
    # A deposit can match both conditions; keep one row per id.
    unique: dict[int, SepaDeposit] = {}
    for deposit in result.scalars().all():
        unique.setdefault(deposit.id, deposit)
    return list(unique.values())


async def count_referrals(db: AsyncSession, contractor: User) -> int:
    if not contractor.referral_code:
        return 0
    result = await db.execute(
        select(func.count(User.id)).where(User.referred_by == contractor.referral_code)
    )
    return int(result.scalar_one() or 0)


def summarize_contractor(
    contractor: User,
    deposits: list[SepaDeposit],
    referral_count: int = 0,
) -> dict:
    rate = contractor.effective_contractor_rate
    earned = pending = referred = ZERO

    for deposit in deposits:
        commission = deposit_commission_for(deposit, contractor.id, rate)
        if deposit.status == DepositStatus.COMPLETED:
            earned += commission
            referred += to_decimal(deposit.amount)
        elif deposit.status in OPEN_STATUSES:
            pending += commission

    return {
        "contractor_id": contractor.id,
        "referral_code": contractor.referral_code,
        "commission_rate": rate,
        "total_commission_earned": earned,
        "pending_commissions": pending,
        "total_referred_deposits": referred,
        "active_referrals": len({d.user_id for d in deposits}),
        "referral_count": referral_count,
    }


async def contractor_summary(db: AsyncSession, contractor_id: int) -> dict:
    contractor = await get_contractor(db, contractor_id)
    deposits = await contractor_deposits(db, contractor)
    referral_count = await count_referrals(db, contractor)
    return summarize_contractor(contractor, deposits, referral_count)


async def update_contractor(
    db: AsyncSession,
    user_id: int,
    is_contractor: bool | None = None,
    referral_code: str | None = None,
    contractor_commission_rate: Decimal | None = None,
) -> User:
    """Apply admin changes; the rate arrives already validated by the schema."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise ContractorNotFoundError(f"User {user_id} not found")

    if is_contractor is not None:
        user.is_contractor = is_contractor
    if referral_code is not None:
        user.referral_code = referral_code
    if contractor_commission_rate is not None:
        user.contractor_commission_rate = contractor_commission_rate

    await db.flush()
    logger.info(
        "Updated contractor settings for user %s: contractor=%s code=%s rate=%s",
        user.id, user.is_contractor, user.referral_code, user.contractor_commission_rate,
    )
    return user


# ---------------------------------------------------------------------------
# Admin view
# ---------------------------------------------------------------------------


def summarize_commissions(rows) -> list[dict]:
    """
    Fold ``(deposit, contractor_rate)`` rows into per-currency totals.

    *contractor_rate* is the attributed contractor's stored rate (or None).
    """
    totals: dict[str, dict] = defaultdict(lambda: {
        "deposits": 0,
        "platform_commission": ZERO,
        "contractor_commission": ZERO,
    })

    for deposit, stored_rate in rows:
        bucket = totals[deposit.currency]
        bucket["deposits"] += 1
        bucket["platform_commission"] += to_decimal(deposit.commission_fee)
        if deposit.contractor_id is not None:
            rate = (
                settings.CONTRACTOR_COMMISSION_RATE
                if stored_rate is None else to_decimal(stored_rate)
            )
            bucket["contractor_commission"] += deposit_commission_for(
                deposit, deposit.contractor_id, rate,
            )

    return [
        {"currency": currency, **values}
        for currency, values in sorted(totals.items())
    ]


async def commission_report(db: AsyncSession) -> list[dict]:
    result = await db.execute(
        select(SepaDeposit, User.contractor_commission_rate)
        .outerjoin(User, SepaDeposit.contractor_id == User.id)
        .where(SepaDeposit.status == DepositStatus.COMPLETED)
    )
    return summarize_commissions(result.all())
