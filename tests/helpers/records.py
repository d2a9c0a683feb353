"""Small builders for domain records used across tests."""

from __future__ import annotations

from decimal import Decimal

from budget_tracker.models import UNCATEGORIZED, Transaction


def make_tx(
    id: int,
    amount: str | int,
    *,
    category: str = UNCATEGORIZED,
    description: str = "",
    date: str = "01/02/2024",
    type: str = "",
    state: str = "COMPLETED",
) -> Transaction:
    return Transaction(
        id=id,
        date=date,
        description=description,
        category=category,
        amount=Decimal(str(amount)),
        type=type,
        state=state,
    )
