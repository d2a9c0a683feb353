"""Lenient field parsing shared by the importer and the filter engine.

Malformed amounts and dates never raise. Amount parsing returns the value
together with an optional diagnostic string; date splitting returns empty
parts for anything missing so callers can decide how to treat it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

ZERO = Decimal(0)
_NUMERIC_PREFIX = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True, slots=True)
class ParseDiagnostic:
    """A field that fell back to a benign value during import."""

    line: int
    column: str
    raw: str
    fallback: str
    reason: str

    def __str__(self) -> str:
        return f"line {self.line}: {self.column}={self.raw!r} -> {self.fallback} ({self.reason})"


def parse_amount(raw: str | None) -> tuple[Decimal, str | None]:
    """Parse a signed decimal amount.

    Text after a leading number (``"4.50 EUR"``) is dropped and the number is
    kept; anything without one falls back to ``0``. Both cases come back with
    a reason.
    """

    if raw is None:
        return ZERO, "missing amount"
    s = raw.strip()
    if not s:
        return ZERO, "empty amount"
    try:
        d = Decimal(s)
    except InvalidOperation:
        m = _NUMERIC_PREFIX.match(s)
        if m is None:
            return ZERO, "not a decimal number"
        return Decimal(m.group()), "trailing text ignored"
    if not d.is_finite():
        return ZERO, "not a finite number"
    return d, None


def date_parts(value: str) -> tuple[str, str, str]:
    """Split ``DD/MM/YYYY`` into ``(day, month, year)``.

    Missing parts come back as ``""``; parts beyond the third are ignored.
    """

    parts = value.split("/")
    parts += [""] * (3 - len(parts))
    return parts[0], parts[1], parts[2]


def calendar_date(day: str, month: str, year: str) -> date | None:
    """Build a ``date`` from text parts, or ``None`` when they don't form one."""

    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def month_key(year: str, month: str) -> str:
    """Sortable ``YYYY-MM`` key (month zero-padded)."""

    return f"{year}-{month.rjust(2, '0')}"


__all__ = [
    "ParseDiagnostic",
    "parse_amount",
    "date_parts",
    "calendar_date",
    "month_key",
]
