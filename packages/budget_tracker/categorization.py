"""Substring-rule categorization engine.

A :class:`CategoryRules` instance maps lower-cased description patterns to
category names. Matching is case-insensitive substring containment, and the
first matching rule wins, so the enumeration order of the rules is part of
the contract: rules enumerate in insertion order, and overwriting an existing
pattern keeps its original position.

Rules come from two places:

- ``learn``: every categorized transaction contributes its own description as
  a pattern, unless that exact pattern already exists. Learning never
  overwrites.
- ``add``: manual edits (rule management or a saved row edit). These may
  overwrite an existing pattern's category.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import replace

from .errors import ValidationError
from .logging_setup import get_logger
from .models import UNCATEGORIZED, Transaction

_logger = get_logger("budget_tracker.categorization")


def normalize_pattern(text: str) -> str:
    """Return the rule key for ``text``: trimmed and lower-cased."""

    return text.strip().lower()


class CategoryRules:
    """Ordered pattern → category rules for one account partition."""

    __slots__ = ("_rules",)

    def __init__(self, rules: Mapping[str, str] | Iterable[tuple[str, str]] | None = None) -> None:
        # Stored keys are kept verbatim so snapshots round-trip unchanged.
        self._rules: dict[str, str] = dict(rules or {})

    @classmethod
    def from_mapping(cls, rules: Mapping[str, str] | None) -> CategoryRules:
        return cls(rules)

    # ---- matching ---------------------------------------------------------

    def classify(self, description: str) -> str:
        """Return the category of the first rule contained in ``description``."""

        desc = description.lower()
        for pattern, category in self._rules.items():
            if pattern.lower() in desc:
                return category
        return UNCATEGORIZED

    def reapply(self, records: Iterable[Transaction]) -> list[Transaction]:
        """Reclassify ``Uncategorized`` records; leave every other record as is."""

        out: list[Transaction] = []
        for t in records:
            if t.category == UNCATEGORIZED:
                category = self.classify(t.description)
                if category != UNCATEGORIZED:
                    t = replace(t, category=category)
            out.append(t)
        return out

    # ---- mutation ---------------------------------------------------------

    def learn(self, records: Iterable[Transaction]) -> int:
        """Add a rule per categorized description not yet present as a pattern.

        Returns the number of rules added.
        """

        added = 0
        for t in records:
            if not t.description or not t.category or t.category == UNCATEGORIZED:
                continue
            pattern = normalize_pattern(t.description)
            if not pattern or pattern in self._rules:
                continue
            self._rules[pattern] = t.category
            added += 1
        if added:
            _logger.debug("learned %d rule(s); %d total", added, len(self._rules))
        return added

    def add(self, pattern: str, category: str) -> str:
        """Set ``pattern → category``, overwriting any existing category.

        Returns the normalized pattern key.
        """

        key = normalize_pattern(pattern)
        if not key:
            raise ValidationError("Rule pattern cannot be empty")
        category = category.strip()
        if not category:
            raise ValidationError("Rule category cannot be empty")
        self._rules[key] = category
        return key

    def remove(self, pattern: str) -> bool:
        """Delete a rule by its stored pattern; unknown patterns are a no-op."""

        if pattern in self._rules:
            del self._rules[pattern]
            return True
        return False

    # ---- container protocol ----------------------------------------------

    def items(self) -> list[tuple[str, str]]:
        return list(self._rules.items())

    def get(self, pattern: str) -> str | None:
        return self._rules.get(pattern)

    def copy(self) -> CategoryRules:
        return CategoryRules(self._rules)

    def to_dict(self) -> dict[str, str]:
        return dict(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._rules))

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._rules

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CategoryRules):
            return NotImplemented
        # Order is observable through ``classify``; compare it too.
        return list(self._rules.items()) == list(other._rules.items())

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:  # pragma: no cover - trivial repr
        return f"CategoryRules({self._rules!r})"


__all__ = ["CategoryRules", "normalize_pattern"]
