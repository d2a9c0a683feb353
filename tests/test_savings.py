from __future__ import annotations

from decimal import Decimal

import pytest

from budget_tracker.errors import CapacityExceeded, InvalidAllocation, ValidationError
from budget_tracker.models import Allocation
from budget_tracker.savings import SavingsLedger
from tests.helpers.records import make_tx

DEPOSIT = make_tx(7, "120", category="Savings", description="Monthly transfer")


def test_overallocation_fails_and_leaves_ledger_unchanged():
    ledger = SavingsLedger()
    ledger.allocate(DEPOSIT, "Trip", 100)

    with pytest.raises(CapacityExceeded, match=r"Cannot allocate 50\.00\. Only 20\.00 remaining\."):
        ledger.allocate(DEPOSIT, "Emergency", 50)

    assert ledger.allocations_for(7) == (Allocation("Trip", Decimal(100)),)
    assert ledger.total_allocated(7) == 100
    assert ledger.unallocated(DEPOSIT) == 20


def test_allocating_exactly_the_remainder_is_allowed():
    ledger = SavingsLedger()
    ledger.allocate(DEPOSIT, "Trip", "100")
    ledger.allocate(DEPOSIT, " Emergency ", "20")

    assert [a.purpose for a in ledger.allocations_for(7)] == ["Trip", "Emergency"]
    assert ledger.unallocated(DEPOSIT) == 0


def test_conservation_holds_after_every_successful_allocate():
    ledger = SavingsLedger()
    for amount in ["10", "0.01", "55.5", "60", "30", "24.49", "0.01"]:
        try:
            ledger.allocate(DEPOSIT, "Pot", amount)
        except CapacityExceeded:
            pass
        assert ledger.total_allocated(7) <= DEPOSIT.amount
    assert ledger.total_allocated(7) == DEPOSIT.amount


@pytest.mark.parametrize(
    ("purpose", "amount"),
    [("", 10), ("   ", 10), ("Trip", 0), ("Trip", -5), ("Trip", "abc"), ("Trip", "NaN")],
)
def test_invalid_allocations_raise_validation_errors(purpose, amount):
    ledger = SavingsLedger()
    with pytest.raises(InvalidAllocation) as excinfo:
        ledger.allocate(DEPOSIT, purpose, amount)

    assert isinstance(excinfo.value, ValidationError)
    assert isinstance(excinfo.value, CapacityExceeded)
    assert len(ledger) == 0


def test_float_amounts_are_taken_at_face_value():
    ledger = SavingsLedger()
    ledger.allocate(DEPOSIT, "Gift", 0.1)
    assert ledger.total_allocated(7) == Decimal("0.1")


def test_deallocate_removes_position_and_empty_entries():
    ledger = SavingsLedger()
    ledger.allocate(DEPOSIT, "Trip", 50)
    ledger.allocate(DEPOSIT, "Car", 20)

    assert ledger.deallocate(7, 0) == Allocation("Trip", Decimal(50))
    assert ledger.allocations_for(7) == (Allocation("Car", Decimal(20)),)

    ledger.deallocate(7, 0)
    assert 7 not in ledger
    assert ledger.total_allocated(7) == 0


def test_deallocate_out_of_range_raises_index_error():
    ledger = SavingsLedger({7: [Allocation("Trip", Decimal(5))]})
    with pytest.raises(IndexError):
        ledger.deallocate(7, 1)
    with pytest.raises(IndexError):
        ledger.deallocate(99, 0)
    assert len(ledger) == 1


def test_copy_is_independent():
    ledger = SavingsLedger()
    ledger.allocate(DEPOSIT, "Trip", 5)
    clone = ledger.copy()
    clone.allocate(DEPOSIT, "Car", 5)

    assert ledger.total_allocated(7) == 5
    assert clone.total_allocated(7) == 10
    assert ledger != clone
