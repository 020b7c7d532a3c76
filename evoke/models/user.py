"""
User model — a platform account with a settlement-currency balance.

Contractors are users with ``is_contractor`` set and their own
``referral_code``; clients carry the code they registered with in
``referred_by``.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    Numeric,
    String,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from evoke.config import settings
from evoke.database import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "contractor_commission_rate IS NULL OR "
            "(contractor_commission_rate >= 0 AND contractor_commission_rate < 1)",
            name="contractor_rate_fraction",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True)

    # Balance, denominated in the settlement currency
    balance: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), default=Decimal("0"),
    )
    balance_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Referral
    is_contractor: Mapped[bool] = mapped_column(Boolean, default=False)
    referral_code: Mapped[str | None] = mapped_column(String(32), unique=True, index=True)
    referred_by: Mapped[str | None] = mapped_column(String(32), index=True)
    contractor_commission_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=6, scale=5), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    deposits = relationship(
        "SepaDeposit",
        back_populates="user",
        foreign_keys="SepaDeposit.user_id",
    )

    @property
    def effective_contractor_rate(self) -> Decimal:
        """The contractor's own rate, or the platform default when unset."""
        if self.contractor_commission_rate is None:
            return settings.CONTRACTOR_COMMISSION_RATE
        return Decimal(str(self.contractor_commission_rate))

    def __repr__(self) -> str:
        return f"<User {self.id} {self.username} {self.balance} {self.balance_currency}>"


@event.listens_for(User, "init")
def _set_user_defaults(target, args, kwargs):
    if "balance" not in kwargs:
        target.balance = Decimal("0")
    if "balance_currency" not in kwargs:
        target.balance_currency = settings.DEFAULT_SETTLEMENT_CURRENCY
    if "is_contractor" not in kwargs:
        target.is_contractor = False
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
