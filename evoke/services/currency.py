"""
Supported currencies and money rounding helpers.
"""

from decimal import Decimal, ROUND_HALF_UP

SUPPORTED_CURRENCIES: tuple[str, ...] = ("EUR", "USD", "GBP", "CHF")

# Upstream quotes are requested against this currency.
BASE_CURRENCY = "EUR"

CENT = Decimal("0.01")


class UnsupportedCurrencyError(ValueError):
    """Raised when a currency code is outside SUPPORTED_CURRENCIES."""

    def __init__(self, code):
        self.code = code
        super().__init__(f"Unsupported currency: {code!r}")


def normalize_currency(code: str | None) -> str:
    """Upper-case *code* and check it is supported."""
    if not isinstance(code, str) or not code.strip():
        raise UnsupportedCurrencyError(code)
    normalized = code.strip().upper()
    if normalized not in SUPPORTED_CURRENCIES:
        raise UnsupportedCurrencyError(code)
    return normalized


def to_decimal(value) -> Decimal:
    """Coerce ints, floats and strings to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_amount(value) -> Decimal:
    """Coerce a money amount to a finite, non-negative Decimal or raise ValueError."""
    try:
        amount = to_decimal(value)
    except ArithmeticError as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    if amount < 0:
        raise ValueError("Amount must not be negative")
    return amount
