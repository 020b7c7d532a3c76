"""SQLAlchemy ORM models for the EvokeEssence deposit ledger."""

from evoke.models.user import User
from evoke.models.deposit import DepositStatus, SepaDeposit

__all__ = [
    "User",
    "SepaDeposit", "DepositStatus",
]
