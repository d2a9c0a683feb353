"""Filtering and derived views over a partition's transactions.

Every function here is pure: the same records, ledger and filter always give
the same result, and nothing is cached or mutated. Callers are free to
memoize on their inputs.

Filtering
---------
A record passes :func:`filter_transactions` when all of these hold:

1. the category set is empty, or contains the record's category;
2. the description filter is empty, or is a case-insensitive substring of the
   description;
3. the category search is empty, or is a case-insensitive substring of the
   category;
4. the date scope accepts the record. Dates are split on ``/`` into
   day/month/year; when any part is missing the record passes every date
   scope. ``year`` compares the year text exactly, ``month`` compares
   ``YYYY-MM`` (month zero-padded), and ``range`` compares the calendar date
   inclusively against both bounds. Parts that don't form a calendar date
   (non-numeric, 31/02) also pass.

Views
-----
Category breakdown, monthly series and savings breakdown round their values to
two decimals for display. Summary statistics are left unrounded.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal, get_args

from .ingest.lenient import calendar_date, date_parts, month_key
from .models import UNALLOCATED, Transaction
from .savings import SavingsLedger

type DateScope = Literal["all", "year", "month", "range"]

_ZERO = Decimal(0)
_CENT = Decimal("0.01")
_MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def round2(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Filter specification
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """Filter controls; hashable so it can key a memo."""

    categories: frozenset[str] = frozenset()
    description: str = ""
    category_search: str = ""
    date_scope: DateScope = "all"
    year: str = ""
    month: str = ""
    start: date | None = None
    end: date | None = None

    def __post_init__(self) -> None:
        if self.date_scope not in get_args(DateScope.__value__):
            raise ValueError(f"unknown date scope: {self.date_scope!r}")
        if not isinstance(self.categories, frozenset):
            object.__setattr__(self, "categories", frozenset(self.categories))


def _passes_date_scope(tx_date: str, spec: FilterSpec) -> bool:
    if not tx_date:
        return True
    day, month, year = date_parts(tx_date)
    if not (day and month and year):
        return True

    if spec.date_scope == "year" and spec.year:
        return year == spec.year
    if spec.date_scope == "month" and spec.month:
        return month_key(year, month) == spec.month
    if spec.date_scope == "range" and spec.start and spec.end:
        d = calendar_date(day, month, year)
        if d is None:
            return True
        return spec.start <= d <= spec.end
    return True


def matches(t: Transaction, spec: FilterSpec) -> bool:
    if spec.categories and t.category not in spec.categories:
        return False
    if spec.description and spec.description.lower() not in t.description.lower():
        return False
    if spec.category_search and spec.category_search.lower() not in t.category.lower():
        return False
    return _passes_date_scope(t.date, spec)


def filter_transactions(records: Iterable[Transaction], spec: FilterSpec) -> list[Transaction]:
    return [t for t in records if matches(t, spec)]


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NamedValue:
    name: str
    value: Decimal


@dataclass(frozen=True, slots=True)
class MonthlyPoint:
    month: str
    spending: Decimal
    income: Decimal

    @property
    def label(self) -> str:
        return format_month(self.month)


@dataclass(frozen=True, slots=True)
class Summary:
    total: Decimal
    spending: Decimal
    income: Decimal


def _ranked(totals: dict[str, Decimal]) -> list[NamedValue]:
    rows = [NamedValue(name, round2(v)) for name, v in totals.items()]
    rows.sort(key=lambda r: r.value, reverse=True)
    return rows


def category_breakdown(records: Iterable[Transaction]) -> list[NamedValue]:
    """Spending per category (absolute values), largest first."""

    totals: dict[str, Decimal] = {}
    for t in records:
        if t.amount < 0:
            totals[t.category] = totals.get(t.category, _ZERO) + abs(t.amount)
    return _ranked(totals)


def monthly_series(records: Iterable[Transaction]) -> list[MonthlyPoint]:
    """Spending and income per ``YYYY-MM``, oldest month first."""

    spending: dict[str, Decimal] = {}
    income: dict[str, Decimal] = {}
    for t in records:
        _day, month, year = date_parts(t.date)
        if not (year and month):
            continue
        key = month_key(year, month)
        spending.setdefault(key, _ZERO)
        income.setdefault(key, _ZERO)
        if t.amount < 0:
            spending[key] += abs(t.amount)
        else:
            income[key] += t.amount
    return [
        MonthlyPoint(month=key, spending=round2(spending[key]), income=round2(income[key]))
        for key in sorted(spending)
    ]


def savings_breakdown(records: Iterable[Transaction], ledger: SavingsLedger) -> list[NamedValue]:
    """Savings deposits split into allocation purposes plus ``"Unallocated"``."""

    buckets: dict[str, Decimal] = {}
    for t in records:
        if not t.is_savings_deposit:
            continue
        allocated = _ZERO
        for a in ledger.allocations_for(t.id):
            buckets[a.purpose] = buckets.get(a.purpose, _ZERO) + a.amount
            allocated += a.amount
        remainder = t.amount - allocated
        if remainder > 0:
            buckets[UNALLOCATED] = buckets.get(UNALLOCATED, _ZERO) + remainder
    return _ranked(buckets)


def summary_stats(records: Iterable[Transaction]) -> Summary:
    total = spending = income = _ZERO
    for t in records:
        total += t.amount
        if t.amount < 0:
            spending += abs(t.amount)
        elif t.amount > 0:
            income += t.amount
    return Summary(total=total, spending=spending, income=income)


# ---------------------------------------------------------------------------
# Filter-control options (computed from the unfiltered partition)
# ---------------------------------------------------------------------------


def distinct_categories(records: Iterable[Transaction]) -> list[str]:
    return sorted({t.category for t in records})


def distinct_months(records: Iterable[Transaction]) -> list[str]:
    keys: set[str] = set()
    for t in records:
        _day, month, year = date_parts(t.date)
        if year and month:
            keys.add(month_key(year, month))
    return sorted(keys, reverse=True)


def distinct_years(records: Iterable[Transaction]) -> list[str]:
    years = {date_parts(t.date)[2] for t in records}
    years.discard("")
    return sorted(years, reverse=True)


def format_month(key: str) -> str:
    """``"2024-02"`` → ``"Feb-2024"``; keys that don't parse are returned as-is."""

    year, _, month = key.partition("-")
    try:
        index = int(month)
    except ValueError:
        return key
    if not 1 <= index <= 12:
        return key
    return f"{_MONTH_NAMES[index - 1]}-{year}"


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DerivedViews:
    filtered: tuple[Transaction, ...]
    summary: Summary
    categories: list[NamedValue] = field(default_factory=list)
    monthly: list[MonthlyPoint] = field(default_factory=list)
    savings: list[NamedValue] = field(default_factory=list)
    category_options: list[str] = field(default_factory=list)
    month_options: list[str] = field(default_factory=list)
    year_options: list[str] = field(default_factory=list)


def compute_views(
    records: Sequence[Transaction],
    ledger: SavingsLedger,
    spec: FilterSpec | None = None,
) -> DerivedViews:
    """Filter ``records`` and compute every view from the filtered set."""

    spec = spec or FilterSpec()
    filtered = filter_transactions(records, spec)
    return DerivedViews(
        filtered=tuple(filtered),
        summary=summary_stats(filtered),
        categories=category_breakdown(filtered),
        monthly=monthly_series(filtered),
        savings=savings_breakdown(filtered, ledger),
        category_options=distinct_categories(records),
        month_options=distinct_months(records),
        year_options=distinct_years(records),
    )


__all__ = [
    "DateScope",
    "FilterSpec",
    "NamedValue",
    "MonthlyPoint",
    "Summary",
    "DerivedViews",
    "matches",
    "filter_transactions",
    "category_breakdown",
    "monthly_series",
    "savings_breakdown",
    "summary_stats",
    "distinct_categories",
    "distinct_months",
    "distinct_years",
    "format_month",
    "round2",
    "compute_views",
]
