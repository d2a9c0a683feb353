"""Importer for bank-exported transaction CSV text.

Contract
--------
- The first line is a header row; header cells are trimmed and looked up
  case-sensitively by name, never by position.
- Remaining lines are split on ``\\n`` and then on ``,``. There is no quote
  handling: this mirrors the exporter, which writes fields unquoted.
- Lines that are blank after trimming are skipped.
- Recognized columns:

  ``Description``; ``Categories`` then ``Category`` (first non-empty wins);
  ``Started Date`` then ``Date`` (first non-empty wins); ``Amount``;
  ``Type``; ``State``.

  Values are trimmed; a column missing from the header or from a short row
  yields ``""``.
- A row's category is its imported category when non-empty, otherwise the
  result of :meth:`CategoryRules.classify` on its description.
- Every parsed row, including ``REVERTED`` and ``PENDING`` ones, is fed to
  rule learning; those two states are then dropped from the result.

Failure mode
------------
None. An unparsable amount becomes ``0`` and is reported as a
:class:`~budget_tracker.ingest.lenient.ParseDiagnostic`; the batch always
completes.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field

from ..categorization import CategoryRules
from ..logging_setup import get_logger
from ..models import IdSource, Transaction
from .lenient import ParseDiagnostic, parse_amount

DROPPED_STATES: frozenset[str] = frozenset({"REVERTED", "PENDING"})

_logger = get_logger("budget_tracker.ingest.bank_csv")


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Outcome of one import batch.

    ``transactions`` is what enters the partition; ``parsed`` holds every
    row before state filtering (the set used for rule learning).
    """

    transactions: list[Transaction]
    parsed: list[Transaction]
    learned: int = 0
    diagnostics: list[ParseDiagnostic] = field(default_factory=list)

    @property
    def dropped(self) -> int:
        return len(self.parsed) - len(self.transactions)


def _first_non_empty(values: Sequence[str | None]) -> str:
    for v in values:
        if v:
            return v
    return ""


def read_rows(text: str) -> Iterator[tuple[int, dict[str, str]]]:
    """Yield ``(line_number, row)`` for every non-blank record line.

    ``line_number`` is 1-based within ``text`` (the header is line 1).
    """

    lines = text.lstrip("\ufeff").split("\n")
    headers = [h.strip() for h in lines[0].split(",")]
    for line_no, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        values = line.split(",")
        yield line_no, {
            header: (values[i].strip() if i < len(values) else "")
            for i, header in enumerate(headers)
        }


def parse_transactions(
    text: str,
    rules: CategoryRules,
    ids: IdSource,
) -> tuple[list[Transaction], list[ParseDiagnostic]]:
    """Parse every record line into a :class:`Transaction` (no state filter)."""

    parsed: list[Transaction] = []
    diagnostics: list[ParseDiagnostic] = []
    for line_no, row in read_rows(text):
        parsed.append(_row_to_transaction(row, line_no, rules, ids, diagnostics))
    return parsed, diagnostics


def _row_to_transaction(
    row: Mapping[str, str],
    line_no: int,
    rules: CategoryRules,
    ids: IdSource,
    diagnostics: list[ParseDiagnostic],
) -> Transaction:
    description = row.get("Description", "")
    imported_category = _first_non_empty([row.get("Categories"), row.get("Category")])

    raw_amount = row.get("Amount")
    amount, reason = parse_amount(raw_amount)
    if reason is not None:
        diagnostics.append(
            ParseDiagnostic(
                line=line_no,
                column="Amount",
                raw=raw_amount or "",
                fallback=format(amount, "f"),
                reason=reason,
            )
        )

    return Transaction(
        id=ids.next_id(),
        date=_first_non_empty([row.get("Started Date"), row.get("Date")]),
        description=description,
        category=imported_category or rules.classify(description),
        amount=amount,
        type=row.get("Type", ""),
        state=row.get("State", ""),
    )


def import_transactions(text: str, rules: CategoryRules, ids: IdSource) -> ImportResult:
    """Parse ``text``, learn rules from the whole batch, then drop dead rows.

    ``rules`` is updated in place by the learning pass, so later views see the
    freshly learned rules. The caller replaces the partition's transaction
    list with ``result.transactions``.
    """

    parsed, diagnostics = parse_transactions(text, rules, ids)
    learned = rules.learn(parsed)
    kept = [t for t in parsed if t.state not in DROPPED_STATES]

    for d in diagnostics:
        _logger.debug("import fallback: %s", d)
    if diagnostics:
        _logger.warning(
            "import: %d field(s) fell back to defaults (first: %s)",
            len(diagnostics),
            diagnostics[0],
        )
    _logger.info(
        "import: parsed=%d kept=%d dropped=%d learned_rules=%d",
        len(parsed),
        len(kept),
        len(parsed) - len(kept),
        learned,
    )
    return ImportResult(
        transactions=kept,
        parsed=parsed,
        learned=learned,
        diagnostics=diagnostics,
    )


__all__ = [
    "DROPPED_STATES",
    "ImportResult",
    "read_rows",
    "parse_transactions",
    "import_transactions",
]
