"""
Platform and contractor commission arithmetic.

Rates are fractions (0.16 for 16%, 0.0085 for 0.85%) in ``[0, 1)``. Fees
are rounded to cents half-up; the net amount is whatever remains, so
``fee + net == amount`` holds exactly for cent-denominated amounts.
"""

from dataclasses import dataclass
from decimal import Decimal

from evoke.services.currency import round_money, to_amount, to_decimal

ZERO = Decimal("0")
ONE = Decimal("1")


class InvalidCommissionRateError(ValueError):
    """Raised for commission rates outside [0, 1)."""
    pass


@dataclass(frozen=True)
class CommissionSplit:
    fee: Decimal
    net: Decimal

    def __iter__(self):
        return iter((self.fee, self.net))


def validate_commission_rate(rate) -> Decimal:
    """Return *rate* as a Decimal, or raise if it is not a fraction in [0, 1)."""
    try:
        value = to_decimal(rate)
    except ArithmeticError as exc:
        raise InvalidCommissionRateError(f"Invalid commission rate: {rate!r}") from exc
    if not value.is_finite() or not (ZERO <= value < ONE):
        raise InvalidCommissionRateError(
            f"Commission rate must be in [0, 1), got {rate}"
        )
    return value


def split_commission(raw_amount, commission_rate) -> CommissionSplit:
    """Split a raw deposit into the platform fee and the net amount."""
    amount = to_amount(raw_amount)
    rate = validate_commission_rate(commission_rate)
    fee = round_money(amount * rate)
    return CommissionSplit(fee=fee, net=amount - fee)


def contractor_commission(net_amount, contractor_rate) -> Decimal:
    """A referring contractor's cut of a deposit's net amount."""
    amount = to_amount(net_amount)
    rate = validate_commission_rate(contractor_rate)
    return round_money(amount * rate)
