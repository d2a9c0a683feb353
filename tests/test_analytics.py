from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from budget_tracker.analytics import (
    FilterSpec,
    MonthlyPoint,
    NamedValue,
    category_breakdown,
    compute_views,
    distinct_categories,
    distinct_months,
    distinct_years,
    filter_transactions,
    format_month,
    monthly_series,
    savings_breakdown,
    summary_stats,
)
from budget_tracker.models import Allocation
from budget_tracker.savings import SavingsLedger
from tests.helpers.records import make_tx


def _ids(records):
    return [t.id for t in records]


def test_category_filter_and_breakdown_example():
    records = [make_tx(1, -10, category="Dining"), make_tx(2, -5, category="Groceries")]
    spec = FilterSpec(categories=frozenset({"Dining"}), date_scope="all")

    filtered = filter_transactions(records, spec)

    assert _ids(filtered) == [1]
    assert category_breakdown(filtered) == [NamedValue("Dining", Decimal("10.00"))]


def test_text_filters_are_case_insensitive_substrings():
    records = [
        make_tx(1, -1, category="Dining Out", description="Pret A Manger"),
        make_tx(2, -1, category="Groceries", description="Tesco Metro"),
    ]
    assert _ids(filter_transactions(records, FilterSpec(description="pret"))) == [1]
    assert _ids(filter_transactions(records, FilterSpec(category_search="GROC"))) == [2]
    spec = FilterSpec(categories=frozenset({"Groceries"}), category_search="dining")
    assert filter_transactions(records, spec) == []


def test_year_and_month_scopes():
    records = [
        make_tx(1, -1, date="15/02/2024"),
        make_tx(2, -1, date="3/2/2024"),
        make_tx(3, -1, date="01/03/2024"),
        make_tx(4, -1, date="01/02/2023"),
    ]
    assert _ids(filter_transactions(records, FilterSpec(date_scope="year", year="2024"))) == [
        1,
        2,
        3,
    ]
    spec = FilterSpec(date_scope="month", month="2024-02")
    assert _ids(filter_transactions(records, spec)) == [1, 2]


def test_malformed_dates_always_pass_date_scopes():
    records = [
        make_tx(1, -1, date=""),
        make_tx(2, -1, date="2024-02-01"),
        make_tx(3, -1, date="01/02"),
        make_tx(4, -1, date="01/02/2023"),
    ]
    spec = FilterSpec(date_scope="year", year="2024")
    assert _ids(filter_transactions(records, spec)) == [1, 2, 3]


def test_range_scope_is_inclusive_and_tolerates_impossible_dates():
    records = [
        make_tx(1, -1, date="01/02/2024"),
        make_tx(2, -1, date="29/02/2024"),
        make_tx(3, -1, date="01/03/2024"),
        make_tx(4, -1, date="31/02/2024"),
        make_tx(5, -1, date="aa/bb/cccc"),
        make_tx(6, -1, date="31/01/2024"),
    ]
    spec = FilterSpec(date_scope="range", start=date(2024, 2, 1), end=date(2024, 2, 29))
    assert _ids(filter_transactions(records, spec)) == [1, 2, 4, 5]


def test_range_scope_needs_both_bounds():
    records = [make_tx(1, -1, date="01/01/2020")]
    spec = FilterSpec(date_scope="range", start=date(2024, 1, 1))
    assert _ids(filter_transactions(records, spec)) == [1]


def test_filter_spec_validation_and_hashing():
    with pytest.raises(ValueError):
        FilterSpec(date_scope="weekly")  # type: ignore[arg-type]
    spec = FilterSpec(categories=["A", "B"])  # type: ignore[arg-type]
    assert spec.categories == frozenset({"A", "B"})
    assert hash(spec) == hash(FilterSpec(categories=frozenset({"B", "A"})))


def test_category_breakdown_ignores_inflows_and_sorts_descending():
    records = [
        make_tx(1, "-2.345", category="Coffee"),
        make_tx(2, "-10", category="Rent"),
        make_tx(3, "-1.005", category="Coffee"),
        make_tx(4, "500", category="Salary"),
    ]
    assert category_breakdown(records) == [
        NamedValue("Rent", Decimal("10.00")),
        NamedValue("Coffee", Decimal("3.35")),
    ]


def test_monthly_series_groups_by_padded_month_key():
    records = [
        make_tx(1, "-10", date="15/01/2024"),
        make_tx(2, "-5.5", date="1/1/2024"),
        make_tx(3, "100", date="02/12/2023"),
        make_tx(4, "0", date="03/02/2024"),
        make_tx(5, "-1", date="bad"),
    ]
    series = monthly_series(records)

    assert series == [
        MonthlyPoint("2023-12", Decimal("0.00"), Decimal("100.00")),
        MonthlyPoint("2024-01", Decimal("15.50"), Decimal("0.00")),
        MonthlyPoint("2024-02", Decimal("0.00"), Decimal("0.00")),
    ]
    assert [p.label for p in series] == ["Dec-2023", "Jan-2024", "Feb-2024"]


def test_savings_breakdown_splits_allocations_and_remainder():
    deposit = make_tx(1, "120", category="Savings")
    full = make_tx(2, "30", category="Emergency savings")
    spend = make_tx(3, "-40", category="Savings")
    other = make_tx(4, "999", category="Salary")
    ledger = SavingsLedger(
        {
            1: [Allocation("Trip", Decimal(100))],
            2: [Allocation("Trip", Decimal(10)), Allocation("Car", Decimal(20))],
            3: [Allocation("Ignored", Decimal(1))],
        }
    )

    result = savings_breakdown([deposit, full, spend, other], ledger)

    assert result == [
        NamedValue("Trip", Decimal("110.00")),
        NamedValue("Unallocated", Decimal("20.00")),
        NamedValue("Car", Decimal("20.00")),
    ]


def test_savings_breakdown_omits_fully_allocated_remainder():
    deposit = make_tx(1, "50", category="savings pot")
    ledger = SavingsLedger({1: [Allocation("House", Decimal(50))]})
    assert savings_breakdown([deposit], ledger) == [NamedValue("House", Decimal("50.00"))]


def test_summary_stats_are_not_rounded():
    s = summary_stats([make_tx(1, "-1.005"), make_tx(2, "2.5"), make_tx(3, "0")])
    assert s.total == Decimal("1.495")
    assert s.spending == Decimal("1.005")
    assert s.income == Decimal("2.5")


def test_distinct_options():
    records = [
        make_tx(1, -1, category="b", date="01/02/2024"),
        make_tx(2, -1, category="a", date="1/12/2023"),
        make_tx(3, -1, category="b", date="05/2/2024"),
        make_tx(4, -1, category="c", date=""),
    ]
    assert distinct_categories(records) == ["a", "b", "c"]
    assert distinct_months(records) == ["2024-02", "2023-12"]
    assert distinct_years(records) == ["2024", "2023"]


@pytest.mark.parametrize(
    ("key", "label"),
    [("2024-02", "Feb-2024"), ("2023-12", "Dec-2023"), ("2024-13", "2024-13"), ("x", "x")],
)
def test_format_month(key, label):
    assert format_month(key) == label


def test_compute_views_uses_unfiltered_options():
    records = [
        make_tx(1, -10, category="Dining", date="01/01/2024"),
        make_tx(2, -5, category="Groceries", date="01/02/2023"),
    ]
    views = compute_views(records, SavingsLedger(), FilterSpec(categories=frozenset({"Dining"})))

    assert _ids(views.filtered) == [1]
    assert views.summary.spending == 10
    assert views.category_options == ["Dining", "Groceries"]
    assert views.year_options == ["2024", "2023"]
    assert [p.month for p in views.monthly] == ["2024-01"]
    assert views.savings == []
    assert compute_views(records, SavingsLedger()) == compute_views(records, SavingsLedger())
