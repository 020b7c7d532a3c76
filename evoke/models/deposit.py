"""
SEPA deposit model — a client's bank transfer into the platform.

Amounts are fixed when the deposit is created:
- ``amount`` is the raw transfer in ``currency``
- ``commission_fee`` + ``net_amount`` == ``amount``
- ``converted_amount`` is ``net_amount`` in ``settlement_currency`` at
  ``exchange_rate``, with ``rate_source`` recording live/cached/static
- ``contractor_id`` / ``contractor_commission`` are attributed once and
  never re-assigned
"""

import enum
import random
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Enum as SAEnum,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from evoke.database import Base

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DepositStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Status transition map
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[DepositStatus, set[DepositStatus]] = {
    DepositStatus.PENDING: {
        DepositStatus.PROCESSING,
        DepositStatus.COMPLETED,
        DepositStatus.FAILED,
    },
    DepositStatus.PROCESSING: {
        DepositStatus.COMPLETED,
        DepositStatus.FAILED,
    },
    DepositStatus.COMPLETED: set(),
    DepositStatus.FAILED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when a deposit cannot move to the requested status."""
    pass


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class SepaDeposit(Base):
    __tablename__ = "sepa_deposits"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        CheckConstraint("commission_fee >= 0", name="commission_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    reference: Mapped[str] = mapped_column(
        String(32), unique=True, index=True, nullable=False,
    )

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), index=True, nullable=False,
    )

    # Amounts in the deposit currency
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=6, scale=5), nullable=False,
    )
    commission_fee: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), nullable=False,
    )
    net_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), nullable=False,
    )

    # Settlement leg
    settlement_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=10), nullable=False,
    )
    converted_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), nullable=False,
    )
    rate_source: Mapped[str] = mapped_column(String(10), nullable=False)

    # Referral attribution
    referral_code: Mapped[str | None] = mapped_column(String(32), index=True)
    contractor_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id"), index=True, nullable=True,
    )
    contractor_commission: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=18, scale=2), nullable=True,
    )

    status: Mapped[DepositStatus] = mapped_column(
        SAEnum(DepositStatus, name="depositstatus", values_callable=lambda e: [m.value for m in e]),
        default=DepositStatus.PENDING,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", back_populates="deposits", foreign_keys=[user_id])
    contractor = relationship("User", foreign_keys=[contractor_id])

    # ------------------------------------------------------------------
    # Reference generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_reference(user_id: int) -> str:
        """PAY-<user id>-<7 digits>, quoted by the client on the bank transfer."""
        suffix = str(random.randint(0, 9_999_999)).zfill(7)
        return f"PAY-{user_id}-{suffix}"

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    @staticmethod
    def is_valid_transition(from_status: DepositStatus, to_status: DepositStatus) -> bool:
        return to_status in VALID_TRANSITIONS.get(from_status, set())

    def transition_to(self, new_status: DepositStatus) -> None:
        """
        Move to *new_status* or raise InvalidStatusTransitionError.

        Stamps ``completed_at`` when the deposit completes.
        """
        if not self.is_valid_transition(self.status, new_status):
            raise InvalidStatusTransitionError(
                f"Invalid transition: {self.status.value} -> {new_status.value}"
            )
        self.status = new_status
        if new_status == DepositStatus.COMPLETED:
            self.completed_at = datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return (
            f"<SepaDeposit {self.reference} "
            f"{self.amount} {self.currency} "
            f"status={self.status.value if self.status else 'N/A'}>"
        )


# ---------------------------------------------------------------------------
# Auto-set Python-side defaults on construction
# ---------------------------------------------------------------------------


@event.listens_for(SepaDeposit, "init")
def _set_deposit_defaults(target, args, kwargs):
    if "status" not in kwargs:
        target.status = DepositStatus.PENDING
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
