from __future__ import annotations

import pytest

from budget_tracker.categorization import CategoryRules, normalize_pattern
from budget_tracker.errors import ValidationError
from tests.helpers.records import make_tx


def test_first_matching_rule_in_insertion_order_wins():
    rules = CategoryRules([("coffee", "Dining"), ("coffee shop", "Cafe")])
    assert rules.classify("Coffee Shop London") == "Dining"

    reordered = CategoryRules([("coffee shop", "Cafe"), ("coffee", "Dining")])
    assert reordered.classify("Coffee Shop London") == "Cafe"


def test_classify_without_match_is_uncategorized_and_deterministic():
    rules = CategoryRules({"tesco": "Groceries"})
    assert rules.classify("Shell Garage") == "Uncategorized"
    assert rules.classify("TESCO EXPRESS") == rules.classify("TESCO EXPRESS") == "Groceries"
    assert CategoryRules().classify("anything") == "Uncategorized"


def test_learn_adds_new_patterns_without_overwriting():
    rules = CategoryRules({"tesco": "Groceries"})
    records = [
        make_tx(1, -5, category="Food", description="Tesco"),
        make_tx(2, -9, category="Transport", description="  Uber Trip "),
        make_tx(3, -1, description="Unknown shop"),
        make_tx(4, -1, category="Misc", description="   "),
        make_tx(5, -1, category="Misc", description=""),
    ]

    assert rules.learn(records) == 1
    assert rules.items() == [("tesco", "Groceries"), ("uber trip", "Transport")]


def test_reapply_only_touches_uncategorized_records():
    rules = CategoryRules({"netflix": "Subscriptions"})
    records = [
        make_tx(1, -10, description="NETFLIX.COM"),
        make_tx(2, -10, category="Entertainment", description="Netflix gift"),
        make_tx(3, -3, description="Bakery"),
    ]

    out = rules.reapply(records)

    assert [t.category for t in out] == ["Subscriptions", "Entertainment", "Uncategorized"]
    assert out[1] is records[1]
    assert out[2] is records[2]
    assert [t.category for t in rules.reapply(out)] == [t.category for t in out]


def test_add_normalizes_and_overwrite_keeps_position():
    rules = CategoryRules()
    assert rules.add("  Coffee ", "Dining") == "coffee"
    rules.add("rent", "Housing")
    rules.add("COFFEE", " Cafe ")

    assert rules.items() == [("coffee", "Cafe"), ("rent", "Housing")]
    assert "coffee" in rules
    assert len(rules) == 2
    assert list(rules) == ["coffee", "rent"]


@pytest.mark.parametrize(("pattern", "category"), [("", "Dining"), ("  ", "Dining"), ("tea", " ")])
def test_add_rejects_empty_pattern_or_category(pattern, category):
    rules = CategoryRules()
    with pytest.raises(ValidationError):
        rules.add(pattern, category)
    assert len(rules) == 0


def test_remove_and_copy():
    rules = CategoryRules({"a": "A", "b": "B"})
    clone = rules.copy()

    assert rules.remove("a") is True
    assert rules.remove("missing") is False
    assert rules.to_dict() == {"b": "B"}
    assert clone.to_dict() == {"a": "A", "b": "B"}


def test_equality_is_order_sensitive():
    assert CategoryRules([("a", "A"), ("b", "B")]) == CategoryRules([("a", "A"), ("b", "B")])
    assert CategoryRules([("a", "A"), ("b", "B")]) != CategoryRules([("b", "B"), ("a", "A")])


def test_normalize_pattern():
    assert normalize_pattern("  Mixed Case  ") == "mixed case"
