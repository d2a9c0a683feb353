"""Data models for ``budget_tracker``.

Two layers live here:

- In-memory domain records (frozen ``dataclass`` types): :class:`Transaction`,
  :class:`Allocation`, :class:`Account`, plus the :class:`IdSource` used to
  stamp new transactions and accounts.
- Pydantic DTOs describing the persisted snapshot document exchanged with a
  :class:`~budget_tracker.persistence.SnapshotGateway`. Field names are
  snake_case in Python and camelCase on the wire (``accountsData``,
  ``activeAccountId``, ...), matching documents written by earlier clients.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

UNCATEGORIZED = "Uncategorized"
"""Category sentinel: no rule matched and none was set manually."""

UNALLOCATED = "Unallocated"
"""Bucket label for the part of a savings deposit without an allocation."""

DEFAULT_ACCOUNT_ID = "default"
DEFAULT_ACCOUNT_NAME = "Main Account"

SAVINGS_MARKER = "savings"


# ---------------------------------------------------------------------------
# Domain records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """A single transaction row of one account partition.

    ``date`` is kept as the ``DD/MM/YYYY`` text it was imported with and is
    only parsed when filtering or grouping. ``amount`` is signed: negative is
    spending, zero or positive is an inflow.
    """

    id: int
    date: str
    description: str
    category: str
    amount: Decimal
    type: str = ""
    state: str = ""

    @property
    def is_savings_deposit(self) -> bool:
        """True for positive transactions whose category mentions savings."""

        return SAVINGS_MARKER in self.category.lower() and self.amount > 0


@dataclass(frozen=True, slots=True)
class Allocation:
    """A named portion of a savings deposit earmarked for a purpose."""

    purpose: str
    amount: Decimal


@dataclass(frozen=True, slots=True)
class Account:
    """Display metadata for an account partition."""

    id: str
    name: str


class IdSource:
    """Monotonic creation-order ids derived from a millisecond clock.

    Ids handed out by one source never repeat, even when several are drawn
    within the same millisecond (an import batch) or the clock steps back.
    Call :meth:`observe` with ids loaded from storage so new ids sort after
    them.
    """

    __slots__ = ("_clock", "_last")

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0

    def next_id(self) -> int:
        candidate = int(self._clock() * 1000)
        if candidate <= self._last:
            candidate = self._last + 1
        self._last = candidate
        return candidate

    def observe(self, ids: Iterable[int]) -> None:
        for i in ids:
            if i > self._last:
                self._last = i


# ---------------------------------------------------------------------------
# DTOs for snapshot documents
# ---------------------------------------------------------------------------


def _lenient_decimal(v: Any) -> Any:
    # Documents written by a JS client carry amounts as JSON numbers; route
    # floats through ``str`` so 4.1 stays Decimal("4.1").
    if v is None:
        return Decimal(0)
    if isinstance(v, float):
        return str(v)
    return v


# Amounts are Decimal in memory and plain JSON numbers on the wire.
DocAmount = Annotated[
    Decimal,
    BeforeValidator(_lenient_decimal),
    PlainSerializer(float, return_type=float, when_used="json"),
]


class _DocModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class TransactionDoc(_DocModel):
    id: int
    date: str = ""
    description: str = ""
    category: str = UNCATEGORIZED
    amount: DocAmount = Decimal(0)
    type: str = ""
    state: str = ""

    @field_validator("date", "description", "category", "type", "state", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @classmethod
    def from_transaction(cls, tx: Transaction) -> TransactionDoc:
        return cls(
            id=tx.id,
            date=tx.date,
            description=tx.description,
            category=tx.category,
            amount=tx.amount,
            type=tx.type,
            state=tx.state,
        )

    def to_transaction(self) -> Transaction:
        return Transaction(
            id=self.id,
            date=self.date,
            description=self.description,
            category=self.category or UNCATEGORIZED,
            amount=self.amount,
            type=self.type,
            state=self.state,
        )


class AllocationDoc(_DocModel):
    purpose: str
    amount: DocAmount


class AccountDoc(_DocModel):
    id: str
    name: str


class PartitionDoc(_DocModel):
    """Collections owned by one account partition."""

    transactions: list[TransactionDoc] = Field(default_factory=list)
    category_rules: dict[str, str] = Field(default_factory=dict)
    # Keys are transaction ids rendered as strings (JSON object keys).
    savings_allocations: dict[str, list[AllocationDoc]] = Field(default_factory=dict)

    @field_validator("transactions", "category_rules", "savings_allocations", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return [] if info.field_name == "transactions" else {}
        return v


class Snapshot(_DocModel):
    """Full persisted state for one user.

    Current documents carry ``accounts``/``accountsData``/``activeAccountId``.
    Legacy documents only carry a flat ``transactions``/``categoryRules`` pair;
    :func:`budget_tracker.persistence.state_from_snapshot` migrates those into
    the ``"default"`` partition.
    """

    accounts: list[AccountDoc] | None = None
    accounts_data: dict[str, PartitionDoc] | None = None
    active_account_id: str | None = None
    last_updated: str | None = None

    # Legacy single-account shape
    transactions: list[TransactionDoc] | None = None
    category_rules: dict[str, str] | None = None

    @property
    def is_legacy(self) -> bool:
        return self.accounts_data is None

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-compatible wire document (camelCase keys)."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = [
    "UNCATEGORIZED",
    "UNALLOCATED",
    "DEFAULT_ACCOUNT_ID",
    "DEFAULT_ACCOUNT_NAME",
    "SAVINGS_MARKER",
    "Transaction",
    "Allocation",
    "Account",
    "IdSource",
    "TransactionDoc",
    "AllocationDoc",
    "AccountDoc",
    "PartitionDoc",
    "Snapshot",
]
