"""Savings allocation sub-ledger.

For each savings deposit the ledger keeps an ordered list of
:class:`~budget_tracker.models.Allocation` entries. The conservation rule is
enforced on every write: the allocated total of a transaction never exceeds
its amount. Anything left over is reported as ``"Unallocated"`` by the
aggregation layer.

Whether a transaction may carry allocations at all (savings category and a
positive amount) is checked by the caller before calling :meth:`allocate`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation

from .errors import CapacityExceeded, InvalidAllocation
from .models import Allocation, Transaction

_ZERO = Decimal(0)


def to_amount(value: Decimal | int | float | str) -> Decimal:
    """Coerce user input to ``Decimal`` (floats go through ``str``)."""

    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise InvalidAllocation(f"Invalid amount: {value!r}") from exc


class SavingsLedger:
    """Per-transaction allocation lists for one account partition."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[int, Iterable[Allocation]] | None = None) -> None:
        self._entries: dict[int, list[Allocation]] = {}
        for tid, allocations in (entries or {}).items():
            items = list(allocations)
            if items:
                self._entries[tid] = items

    def allocations_for(self, transaction_id: int) -> tuple[Allocation, ...]:
        return tuple(self._entries.get(transaction_id, ()))

    def total_allocated(self, transaction_id: int) -> Decimal:
        return sum((a.amount for a in self._entries.get(transaction_id, ())), _ZERO)

    def unallocated(self, transaction: Transaction) -> Decimal:
        return transaction.amount - self.total_allocated(transaction.id)

    def allocate(
        self,
        transaction: Transaction,
        purpose: str,
        amount: Decimal | int | float | str,
    ) -> Allocation:
        """Append an allocation, or raise without touching the ledger.

        Raises
        ------
        InvalidAllocation
            ``purpose`` is empty after trimming or ``amount`` is not positive.
        CapacityExceeded
            The new total would exceed ``transaction.amount``.
        """

        purpose = purpose.strip()
        if not purpose:
            raise InvalidAllocation("Allocation purpose cannot be empty")
        value = to_amount(amount)
        if not value.is_finite() or value <= 0:
            raise InvalidAllocation("Allocation amount must be greater than zero")

        current = self.total_allocated(transaction.id)
        if current + value > transaction.amount:
            remaining = transaction.amount - current
            raise CapacityExceeded(
                f"Cannot allocate {value:.2f}. Only {remaining:.2f} remaining."
            )

        allocation = Allocation(purpose=purpose, amount=value)
        self._entries.setdefault(transaction.id, []).append(allocation)
        return allocation

    def deallocate(self, transaction_id: int, index: int) -> Allocation:
        """Remove the allocation at ``index``; drop the entry once it is empty."""

        allocations = self._entries.get(transaction_id)
        if not allocations or not 0 <= index < len(allocations):
            raise IndexError(f"no allocation #{index} for transaction {transaction_id}")
        removed = allocations.pop(index)
        if not allocations:
            del self._entries[transaction_id]
        return removed

    def items(self) -> list[tuple[int, tuple[Allocation, ...]]]:
        return [(tid, tuple(allocs)) for tid, allocs in self._entries.items()]

    def copy(self) -> SavingsLedger:
        return SavingsLedger(self._entries)

    def to_dict(self) -> dict[int, list[Allocation]]:
        return {tid: list(allocs) for tid, allocs in self._entries.items()}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, transaction_id: object) -> bool:
        return transaction_id in self._entries

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SavingsLedger):
            return NotImplemented
        return self._entries == other._entries

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:  # pragma: no cover - trivial repr
        return f"SavingsLedger({self._entries!r})"


__all__ = ["SavingsLedger", "to_amount"]
