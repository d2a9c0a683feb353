"""CSV export of a partition's transactions.

Output layout (exact)::

    Date,Description,Category,Amount,Type,State
    <one line per transaction, in partition order>

Fields are joined with ``,`` as-is (no quoting or escaping) and lines with
``\\n``. Text without embedded commas survives an export → import round trip.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from ..models import Transaction

EXPORT_HEADER: tuple[str, ...] = ("Date", "Description", "Category", "Amount", "Type", "State")


def format_amount(amount: Decimal) -> str:
    # Fixed-point so values like Decimal("1E+2") don't leak exponent notation.
    return format(amount, "f")


def export_csv(transactions: Iterable[Transaction]) -> str:
    lines = [",".join(EXPORT_HEADER)]
    for t in transactions:
        lines.append(
            ",".join(
                [t.date, t.description, t.category, format_amount(t.amount), t.type, t.state]
            )
        )
    return "\n".join(lines)


def export_filename(today: date) -> str:
    """Default download name, e.g. ``budget-export-2024-02-01.csv``."""

    return f"budget-export-{today.isoformat()}.csv"


__all__ = ["EXPORT_HEADER", "export_csv", "export_filename", "format_amount"]
