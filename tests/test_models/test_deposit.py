"""Tests for the SepaDeposit model — status transitions and reference generation."""

import re
from decimal import Decimal

import pytest

from evoke.models.deposit import (
    DepositStatus,
    InvalidStatusTransitionError,
    SepaDeposit,
    VALID_TRANSITIONS,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def deposit():
    """A minimal SepaDeposit instance."""
    return SepaDeposit(
        reference=SepaDeposit.generate_reference(42),
        user_id=42,
        amount=Decimal("1000.00"),
        currency="EUR",
        commission_rate=Decimal("0.16"),
        commission_fee=Decimal("160.00"),
        net_amount=Decimal("840.00"),
        settlement_currency="USD",
        exchange_rate=Decimal("1.08"),
        converted_amount=Decimal("907.20"),
        rate_source="static",
    )


# ---------------------------------------------------------------------------
# Creation & Reference
# ---------------------------------------------------------------------------


class TestDepositCreation:
    def test_defaults(self, deposit):
        """New deposits start pending with timestamps set."""
        assert deposit.status == DepositStatus.PENDING
        assert deposit.completed_at is None
        assert deposit.contractor_id is None
        assert deposit.created_at is not None

    def test_reference_format(self, deposit):
        assert re.match(r"^PAY-42-\d{7}$", deposit.reference)

    def test_generate_reference_pads_digits(self):
        for _ in range(50):
            assert re.match(r"^PAY-7-\d{7}$", SepaDeposit.generate_reference(7))

    def test_repr_contains_reference(self, deposit):
        r = repr(deposit)
        assert deposit.reference in r
        assert "pending" in r


# ---------------------------------------------------------------------------
# Status Transitions
# ---------------------------------------------------------------------------


class TestStatusTransitions:

    def test_pending_to_processing(self, deposit):
        deposit.transition_to(DepositStatus.PROCESSING)
        assert deposit.status == DepositStatus.PROCESSING
        assert deposit.completed_at is None

    def test_processing_to_completed(self, deposit):
        deposit.transition_to(DepositStatus.PROCESSING)
        deposit.transition_to(DepositStatus.COMPLETED)
        assert deposit.status == DepositStatus.COMPLETED
        assert deposit.completed_at is not None

    def test_pending_to_completed(self, deposit):
        deposit.transition_to(DepositStatus.COMPLETED)
        assert deposit.completed_at is not None

    def test_pending_to_failed(self, deposit):
        deposit.transition_to(DepositStatus.FAILED)
        assert deposit.status == DepositStatus.FAILED
        assert deposit.completed_at is None

    def test_processing_to_failed(self, deposit):
        deposit.transition_to(DepositStatus.PROCESSING)
        deposit.transition_to(DepositStatus.FAILED)
        assert deposit.status == DepositStatus.FAILED

    # -- Invalid transitions raise ----------------------------------------

    @pytest.mark.parametrize("target", list(DepositStatus))
    def test_completed_is_terminal(self, deposit, target):
        deposit.transition_to(DepositStatus.COMPLETED)
        with pytest.raises(InvalidStatusTransitionError, match="Invalid transition"):
            deposit.transition_to(target)

    @pytest.mark.parametrize("target", list(DepositStatus))
    def test_failed_is_terminal(self, deposit, target):
        deposit.transition_to(DepositStatus.FAILED)
        with pytest.raises(InvalidStatusTransitionError):
            deposit.transition_to(target)

    def test_processing_back_to_pending_raises(self, deposit):
        deposit.transition_to(DepositStatus.PROCESSING)
        with pytest.raises(InvalidStatusTransitionError):
            deposit.transition_to(DepositStatus.PENDING)

    def test_error_is_value_error(self):
        assert issubclass(InvalidStatusTransitionError, ValueError)

    def test_all_statuses_in_transition_map(self):
        for s in DepositStatus:
            assert s in VALID_TRANSITIONS, f"{s} missing from VALID_TRANSITIONS"


class TestEnums:
    def test_status_values(self):
        assert [s.value for s in DepositStatus] == [
            "pending", "processing", "completed", "failed",
        ]
