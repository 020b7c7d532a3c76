"""
Deposit settlement — commission split, contractor attribution, conversion
into the settlement currency, and balance credits on completion.

Create flow:
  1. Load the depositing user
  2. Resolve the referring contractor (once; never re-attributed)
  3. Split the platform commission off the raw amount
  4. Convert the net amount into the user's settlement currency
  5. Compute the contractor's cut of the net amount
  6. Store a PENDING deposit with a PAY-<user>-<digits> reference

Completion credits the net amount to the depositor and pays the
attributed contractor their commission.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from evoke.config import settings
from evoke.models.deposit import DepositStatus, SepaDeposit
from evoke.models.user import User
from evoke.services.commission_service import contractor_commission, split_commission
from evoke.services.converter import CurrencyConverter
from evoke.services.currency import normalize_currency, round_money, to_amount, to_decimal
from evoke.services.rate_service import RateSource

logger = logging.getLogger(__name__)

# Telegram group invite codes are tracked on the deposit but pay no one.
TELEGRAM_GROUP_PREFIX = "TG-GRP-"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DepositError(Exception):
    """Base class for deposit lookup failures."""
    pass


class UserNotFoundError(DepositError):
    pass


class DepositNotFoundError(DepositError):
    pass


# ---------------------------------------------------------------------------
# Calculation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DepositCalculation:
    amount: Decimal
    currency: str
    commission_rate: Decimal
    commission_fee: Decimal
    net_amount: Decimal
    settlement_currency: str
    exchange_rate: Decimal
    converted_amount: Decimal
    rate_source: RateSource
    contractor_commission: Decimal | None


async def calculate_deposit_amounts(
    converter: CurrencyConverter,
    amount,
    currency: str,
    settlement_currency: str,
    commission_rate,
    contractor_rate=None,
) -> DepositCalculation:
    """
    Work out every figure stored on a deposit.

    The platform commission comes off the raw amount first; conversion and
    the contractor's cut both apply to what remains.
    """
    raw = to_amount(amount)
    src = normalize_currency(currency)
    dst = normalize_currency(settlement_currency)

    fee, net = split_commission(raw, commission_rate)
    conversion = await converter.convert_detailed(net, src, dst)

    contractor_fee = None
    if contractor_rate is not None:
        contractor_fee = contractor_commission(net, contractor_rate)

    return DepositCalculation(
        amount=raw,
        currency=src,
        commission_rate=to_decimal(commission_rate),
        commission_fee=fee,
        net_amount=net,
        settlement_currency=dst,
        exchange_rate=conversion.rate,
        converted_amount=conversion.converted_amount,
        rate_source=conversion.rate_source,
        contractor_commission=contractor_fee,
    )


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def _get_user(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_deposit(db: AsyncSession, deposit_id: int) -> SepaDeposit:
    result = await db.execute(select(SepaDeposit).where(SepaDeposit.id == deposit_id))
    deposit = result.scalar_one_or_none()
    if deposit is None:
        raise DepositNotFoundError(f"Deposit {deposit_id} not found")
    return deposit


async def list_user_deposits(db: AsyncSession, user_id: int) -> list[SepaDeposit]:
    result = await db.execute(
        select(SepaDeposit)
        .where(SepaDeposit.user_id == user_id)
        .order_by(SepaDeposit.created_at.desc())
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Contractor attribution
# ---------------------------------------------------------------------------


async def resolve_contractor(
    db: AsyncSession,
    user: User,
    referral_code: str | None = None,
    contractor_id: int | None = None,
) -> tuple[User | None, str | None]:
    """
    Find the contractor a new deposit is attributed to.

    Returns ``(contractor, referral_code_to_record)``. A direct contractor id
    takes precedence; otherwise the code captured at registration beats the
    one sent with the request. Only users flagged ``is_contractor`` qualify.
    """
    code = user.referred_by or referral_code

    if contractor_id is not None:
        contractor = await _get_user(db, contractor_id)
        if contractor is None or not contractor.is_contractor:
            logger.info("Contractor id %s is not a valid contractor", contractor_id)
            return None, code
        return contractor, code

    if not code:
        return None, None

    if code.startswith(TELEGRAM_GROUP_PREFIX):
        logger.info("Telegram group referral %s recorded without contractor", code)
        return None, code

    result = await db.execute(select(User).where(User.referral_code == code))
    contractor = result.scalar_one_or_none()
    if contractor is None or not contractor.is_contractor:
        logger.info("Referral code %s does not belong to a contractor", code)
        return None, code

    return contractor, code


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_deposit(
    db: AsyncSession,
    converter: CurrencyConverter,
    user_id: int,
    amount,
    currency: str,
    referral_code: str | None = None,
    contractor_id: int | None = None,
) -> SepaDeposit:
    user = await _get_user(db, user_id)
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found")

    contractor, code = await resolve_contractor(db, user, referral_code, contractor_id)

    calc = await calculate_deposit_amounts(
        converter,
        amount,
        currency,
        user.balance_currency,
        settings.PLATFORM_COMMISSION_RATE,
        contractor.effective_contractor_rate if contractor else None,
    )

    deposit = SepaDeposit(
        reference=SepaDeposit.generate_reference(user.id),
        user_id=user.id,
        amount=calc.amount,
        currency=calc.currency,
        commission_rate=calc.commission_rate,
        commission_fee=calc.commission_fee,
        net_amount=calc.net_amount,
        settlement_currency=calc.settlement_currency,
        exchange_rate=calc.exchange_rate,
        converted_amount=calc.converted_amount,
        rate_source=calc.rate_source.value,
        referral_code=code,
        contractor_id=contractor.id if contractor else None,
        contractor_commission=calc.contractor_commission,
        status=DepositStatus.PENDING,
    )
    db.add(deposit)
    await db.flush()

    logger.info(
        "Created deposit %s: %s %s, commission %s, net %s -> %s %s (%s rate)",
        deposit.reference, calc.amount, calc.currency, calc.commission_fee,
        calc.net_amount, calc.converted_amount, calc.settlement_currency,
        calc.rate_source.value,
    )
    return deposit


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def credit_user_balance(
    db: AsyncSession,
    converter: CurrencyConverter,
    deposit: SepaDeposit,
) -> Decimal:
    """
    Add a completed deposit's net amount to the owner's balance.

    The amount quoted at creation is credited when the user still settles
    in the same currency; otherwise the net amount is converted afresh.
    """
    result = await db.execute(
        select(User).where(User.id == deposit.user_id).with_for_update()
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise UserNotFoundError(f"User {deposit.user_id} not found")

    if user.balance_currency == deposit.settlement_currency:
        credited = to_decimal(deposit.converted_amount)
    else:
        credited = await converter.convert(
            deposit.net_amount, deposit.currency, user.balance_currency,
        )

    previous = to_decimal(user.balance or 0)
    user.balance = round_money(previous + credited)

    logger.info(
        "Credited %s %s to user %s for deposit %s (balance %s -> %s)",
        credited, user.balance_currency, user.id, deposit.reference,
        previous, user.balance,
    )
    return credited


async def credit_contractor_commission(
    db: AsyncSession,
    converter: CurrencyConverter,
    deposit: SepaDeposit,
) -> Decimal | None:
    """
    Pay the attributed contractor's commission into their balance.

    The commission is denominated in the deposit currency and converted
    into the contractor's balance currency when the two differ. Rows
    created before the commission was stored get it computed now, at the
    contractor's current rate, and recorded on the deposit.
    """
    if deposit.contractor_id is None:
        return None

    result = await db.execute(
        select(User).where(User.id == deposit.contractor_id).with_for_update()
    )
    contractor = result.scalar_one_or_none()
    if contractor is None:
        logger.warning(
            "Contractor %s for deposit %s no longer exists, commission not paid",
            deposit.contractor_id, deposit.reference,
        )
        return None

    if deposit.contractor_commission is None:
        deposit.contractor_commission = contractor_commission(
            deposit.net_amount, contractor.effective_contractor_rate,
        )

    credited = await converter.convert(
        deposit.contractor_commission, deposit.currency, contractor.balance_currency,
    )

    previous = to_decimal(contractor.balance or 0)
    contractor.balance = round_money(previous + credited)

    logger.info(
        "Paid contractor %s commission %s %s for deposit %s (balance %s -> %s)",
        contractor.id, credited, contractor.balance_currency, deposit.reference,
        previous, contractor.balance,
    )
    return credited


async def transition_deposit(
    db: AsyncSession,
    converter: CurrencyConverter,
    deposit_id: int,
    new_status: DepositStatus,
) -> SepaDeposit:
    """Apply a status change; completing a deposit credits the user and pays the contractor."""
    deposit = await get_deposit(db, deposit_id)
    deposit.transition_to(new_status)

    if new_status == DepositStatus.COMPLETED:
        await credit_user_balance(db, converter, deposit)
        await credit_contractor_commission(db, converter, deposit)

    await db.flush()
    return deposit


def bank_details() -> dict:
    return {
        "name": settings.BANK_ACCOUNT_NAME,
        "iban": settings.BANK_IBAN,
        "bic": settings.BANK_BIC,
        "address": settings.BANK_ADDRESS,
    }
