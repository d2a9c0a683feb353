"""The budget session: one owner for all mutable engine state.

:class:`BudgetSession` holds the multi-account state, the row-edit state and
the persistence wiring. Every mutation goes through a method here, runs to
completion, bumps :attr:`BudgetSession.revision` and then attempts one save.
Derived views are computed on demand by :meth:`BudgetSession.views` and
memoized on ``(revision, filter)``.

Save failures are logged and recorded on :attr:`BudgetSession.save_error`;
they never roll back or otherwise touch in-memory state. The next mutation
simply saves again.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from .accounts import ConfirmFn, MultiAccountState
from .analytics import DerivedViews, FilterSpec, compute_views
from .categorization import CategoryRules, normalize_pattern
from .errors import CapacityExceeded, ValidationError
from .ingest.bank_csv import ImportResult, import_transactions
from .ingest.export import export_csv
from .ingest.lenient import parse_amount
from .logging_setup import get_logger
from .models import UNCATEGORIZED, Account, Allocation, IdSource, Snapshot, Transaction
from .persistence import SnapshotGateway, snapshot_from_state, state_from_snapshot
from .savings import SavingsLedger

_logger = get_logger("budget_tracker.session")

NEW_TRANSACTION_TYPE = "Card Payment"
NEW_TRANSACTION_STATE = "COMPLETED"


@dataclass(frozen=True, slots=True)
class EditForm:
    """Pending field values of the row being edited."""

    date: str
    description: str
    category: str
    amount: Decimal
    type: str
    state: str

    @classmethod
    def of(cls, t: Transaction) -> EditForm:
        return cls(t.date, t.description, t.category, t.amount, t.type, t.state)


class BudgetSession:
    def __init__(
        self,
        state: MultiAccountState | None = None,
        *,
        gateway: SnapshotGateway | None = None,
        user_id: str | None = None,
        ids: IdSource | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._ids = ids or IdSource()
        self._state = state or MultiAccountState.initial(ids=self._ids)
        self.gateway = gateway
        self.user_id = user_id
        self._today = today
        self._editing_id: int | None = None
        self._edit_form: EditForm | None = None
        self._revision = 0
        self._memo: tuple[tuple[int, FilterSpec], DerivedViews] | None = None
        self.save_error: Exception | None = None

    @classmethod
    def load(
        cls,
        gateway: SnapshotGateway,
        user_id: str,
        *,
        strict: bool = False,
        ids: IdSource | None = None,
        today: Callable[[], date] = date.today,
    ) -> BudgetSession:
        """Open a session from the user's last snapshot.

        A missing snapshot gives a fresh state. A failing load is logged and
        also gives a fresh state, unless ``strict`` is set, in which case the
        error propagates (so a caller never overwrites data it could not read).
        """

        ids = ids or IdSource()
        try:
            snapshot = gateway.load(user_id)
            state = state_from_snapshot(snapshot, ids=ids)
        except Exception:
            if strict:
                raise
            _logger.error("failed to load snapshot for %s", user_id, exc_info=True)
            state = MultiAccountState.initial(ids=ids)
        return cls(state, gateway=gateway, user_id=user_id, ids=ids, today=today)

    # ---- reads ------------------------------------------------------------

    @property
    def state(self) -> MultiAccountState:
        return self._state

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return tuple(self._state.live.transactions)

    @property
    def rules(self) -> CategoryRules:
        return self._state.live.rules

    @property
    def ledger(self) -> SavingsLedger:
        return self._state.live.ledger

    @property
    def accounts(self) -> tuple[Account, ...]:
        return self._state.accounts

    @property
    def active_account_id(self) -> str:
        return self._state.active_id

    @property
    def editing_id(self) -> int | None:
        return self._editing_id

    @property
    def edit_form(self) -> EditForm | None:
        return self._edit_form

    def find(self, transaction_id: int) -> Transaction:
        for t in self._state.live.transactions:
            if t.id == transaction_id:
                return t
        raise ValidationError(f"Unknown transaction: {transaction_id}")

    def views(self, spec: FilterSpec | None = None) -> DerivedViews:
        """Derived views of the active partition under ``spec``."""

        spec = spec or FilterSpec()
        key = (self._revision, spec)
        if self._memo is not None and self._memo[0] == key:
            return self._memo[1]
        live = self._state.live
        result = compute_views(live.transactions, live.ledger, spec)
        self._memo = (key, result)
        return result

    def export_csv(self) -> str:
        return export_csv(self._state.live.transactions)

    def snapshot(self) -> Snapshot:
        return snapshot_from_state(self._state)

    # ---- persistence --------------------------------------------------------

    def save(self) -> bool:
        """Persist the current snapshot; ``False`` when skipped or failed."""

        if self.gateway is None or not self.user_id:
            return False
        try:
            self.gateway.save(self.user_id, self.snapshot())
        except Exception as exc:
            self.save_error = exc
            _logger.error("failed to save snapshot for %s", self.user_id, exc_info=True)
            return False
        self.save_error = None
        return True

    def _touch(self) -> None:
        self._revision += 1
        self._memo = None
        self.save()

    def _clear_edit(self) -> None:
        self._editing_id = None
        self._edit_form = None

    # ---- transactions -------------------------------------------------------

    def import_csv(self, text: str) -> ImportResult:
        """Replace the active partition's transactions with an import batch."""

        live = self._state.live
        result = import_transactions(text, live.rules, self._ids)
        live.transactions = list(result.transactions)
        self._clear_edit()
        self._touch()
        return result

    def add_transaction(self) -> Transaction:
        """Prepend a blank record dated today and open it for editing."""

        t = Transaction(
            id=self._ids.next_id(),
            date=self._today().strftime("%d/%m/%Y"),
            description="",
            category=UNCATEGORIZED,
            amount=Decimal(0),
            type=NEW_TRANSACTION_TYPE,
            state=NEW_TRANSACTION_STATE,
        )
        self._state.live.transactions.insert(0, t)
        self._editing_id = t.id
        self._edit_form = EditForm.of(t)
        self._touch()
        return t

    def begin_edit(self, transaction_id: int) -> EditForm:
        self._edit_form = EditForm.of(self.find(transaction_id))
        self._editing_id = transaction_id
        return self._edit_form

    def update_edit(self, **fields: str | Decimal) -> EditForm:
        """Change pending values of the open row (``amount`` may be text)."""

        if self._edit_form is None:
            raise ValidationError("No transaction is being edited")
        unknown = set(fields) - set(EditForm.__dataclass_fields__)
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")
        if "amount" in fields and not isinstance(fields["amount"], Decimal):
            amount, reason = parse_amount(str(fields["amount"]))
            if reason is not None:
                raise ValidationError(f"Invalid amount {fields['amount']!r}: {reason}")
            fields["amount"] = amount
        self._edit_form = replace(self._edit_form, **fields)
        return self._edit_form

    def save_edit(self) -> Transaction:
        """Write the open row back; learn a rule from its description.

        The rule ``description → category`` is upserted (overwriting) when the
        description is non-blank and the category is set and not
        ``"Uncategorized"``.

        Raises :class:`CapacityExceeded` (leaving the edit open) when the new
        amount is below what is already allocated from the record.
        """

        if self._editing_id is None or self._edit_form is None:
            raise ValidationError("No transaction is being edited")
        form = self._edit_form
        live = self._state.live
        allocated = live.ledger.total_allocated(self._editing_id)
        if allocated > 0 and form.amount < allocated:
            raise CapacityExceeded(
                f"Cannot set amount to {form.amount:.2f}. {allocated:.2f} is already allocated."
            )
        category = form.category.strip() or UNCATEGORIZED
        updated = Transaction(
            id=self._editing_id,
            date=form.date,
            description=form.description,
            category=category,
            amount=form.amount,
            type=form.type,
            state=form.state,
        )
        live.transactions = [updated if t.id == updated.id else t for t in live.transactions]
        if form.description.strip() and category != UNCATEGORIZED:
            live.rules.add(form.description, category)
        self._clear_edit()
        self._touch()
        return updated

    def cancel_edit(self) -> None:
        self._clear_edit()

    def delete_transaction(self, transaction_id: int) -> Transaction:
        removed = self.find(transaction_id)
        live = self._state.live
        live.transactions = [t for t in live.transactions if t.id != transaction_id]
        if self._editing_id == transaction_id:
            self._clear_edit()
        self._touch()
        return removed

    # ---- rules --------------------------------------------------------------

    def add_rule(self, pattern: str, category: str) -> str:
        key = self._state.live.rules.add(pattern, category)
        self._touch()
        return key

    def delete_rule(self, pattern: str) -> bool:
        rules = self._state.live.rules
        removed = rules.remove(pattern) or rules.remove(normalize_pattern(pattern))
        if removed:
            self._touch()
        return removed

    def reapply_rules(self) -> int:
        """Reclassify ``"Uncategorized"`` rows; return how many changed."""

        live = self._state.live
        before = live.transactions
        live.transactions = live.rules.reapply(before)
        changed = sum(1 for old, new in zip(before, live.transactions) if old != new)
        self._touch()
        return changed

    # ---- savings ------------------------------------------------------------

    def allocate(
        self, transaction_id: int, purpose: str, amount: Decimal | int | str
    ) -> Allocation:
        t = self.find(transaction_id)
        if not t.is_savings_deposit:
            raise ValidationError(
                f"Transaction {transaction_id} is not a savings deposit "
                "(needs a savings category and a positive amount)"
            )
        allocation = self._state.live.ledger.allocate(t, purpose, amount)
        self._touch()
        return allocation

    def deallocate(self, transaction_id: int, index: int) -> Allocation:
        removed = self._state.live.ledger.deallocate(transaction_id, index)
        self._touch()
        return removed

    # ---- accounts -----------------------------------------------------------

    def switch_account(self, account_id: str) -> None:
        self._state.switch_to(account_id)
        self._clear_edit()
        self._touch()

    def add_account(self, name: str) -> Account | None:
        account = self._state.add(name)
        if account is not None:
            self._clear_edit()
            self._touch()
        return account

    def delete_account(self, account_id: str, confirm: ConfirmFn | None = None) -> bool:
        was_active = account_id == self._state.active_id
        deleted = self._state.delete(account_id, confirm)
        if deleted:
            if was_active:
                self._clear_edit()
            self._touch()
        return deleted

    def rename_account(self, account_id: str, new_name: str) -> bool:
        renamed = self._state.rename(account_id, new_name)
        if renamed:
            self._touch()
        return renamed

    def logout(self) -> None:
        """Forget the user and reset to the initial empty state (nothing is saved)."""

        self.user_id = None
        self._state = MultiAccountState.initial(ids=self._ids)
        self._clear_edit()
        self._revision += 1
        self._memo = None


__all__ = ["BudgetSession", "EditForm", "NEW_TRANSACTION_TYPE", "NEW_TRANSACTION_STATE"]
