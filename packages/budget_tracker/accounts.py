"""Account partitions and the account-switch protocol.

A :class:`MultiAccountState` owns every partition's collections (transactions,
category rules, savings allocations), the ordered account list, and the id of
the active partition. The active partition's collections are exposed as the
live working set (:attr:`MultiAccountState.live`); every other partition stays
fully materialized in memory.

Switching is a single compound step: the live set is stored under the
current id, the target becomes active, and its collections become the live
set. The new state is built completely before it is assigned, so no caller
ever sees the active id changed while the collections are not.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from .categorization import CategoryRules
from .errors import LastPartition, ProtectedPartition, UnknownPartition
from .logging_setup import get_logger
from .models import DEFAULT_ACCOUNT_ID, DEFAULT_ACCOUNT_NAME, Account, IdSource, Transaction
from .savings import SavingsLedger

_logger = get_logger("budget_tracker.accounts")

type ConfirmFn = Callable[[Account], bool]


@dataclass(slots=True)
class PartitionData:
    """The three collections owned by one account partition."""

    transactions: list[Transaction] = field(default_factory=list)
    rules: CategoryRules = field(default_factory=CategoryRules)
    ledger: SavingsLedger = field(default_factory=SavingsLedger)

    def copy(self) -> PartitionData:
        return PartitionData(
            transactions=list(self.transactions),
            rules=self.rules.copy(),
            ledger=self.ledger.copy(),
        )


class MultiAccountState:
    """Ordered account partitions plus the active-partition pointer."""

    def __init__(
        self,
        accounts: Iterable[Account] | None = None,
        data: Mapping[str, PartitionData] | None = None,
        active_id: str = DEFAULT_ACCOUNT_ID,
        *,
        ids: IdSource | None = None,
    ) -> None:
        self._accounts: list[Account] = list(accounts or [])
        if not self._accounts:
            self._accounts = [Account(DEFAULT_ACCOUNT_ID, DEFAULT_ACCOUNT_NAME)]
        self._data: dict[str, PartitionData] = dict(data or {})
        for acc in self._accounts:
            self._data.setdefault(acc.id, PartitionData())
        if active_id not in self._data:
            raise UnknownPartition(f"Unknown account: {active_id!r}")
        self._active_id = active_id
        self._live = self._data[active_id]
        self._ids = ids or IdSource()

    @classmethod
    def initial(cls, *, ids: IdSource | None = None) -> MultiAccountState:
        """Fresh state: a single empty ``"default"`` partition."""

        return cls(ids=ids)

    # ---- reads ------------------------------------------------------------

    @property
    def accounts(self) -> tuple[Account, ...]:
        return tuple(self._accounts)

    @property
    def active_id(self) -> str:
        return self._active_id

    @property
    def active_account(self) -> Account:
        return self.get(self._active_id)

    @property
    def live(self) -> PartitionData:
        """Collections of the active partition (mutated in place by the session)."""

        return self._live

    def get(self, account_id: str) -> Account:
        for acc in self._accounts:
            if acc.id == account_id:
                return acc
        raise UnknownPartition(f"Unknown account: {account_id!r}")

    def has(self, account_id: str) -> bool:
        return any(acc.id == account_id for acc in self._accounts)

    def data_for(self, account_id: str) -> PartitionData:
        """Collections stored for ``account_id`` (the live set when active)."""

        if account_id == self._active_id:
            return self._live
        if account_id not in self._data:
            raise UnknownPartition(f"Unknown account: {account_id!r}")
        return self._data[account_id]

    def partitions(self) -> dict[str, PartitionData]:
        """All collections keyed by account id, live set included."""

        self.sync()
        return dict(self._data)

    def is_consistent(self) -> bool:
        ids = [acc.id for acc in self._accounts]
        return (
            len(ids) == len(set(ids))
            and set(ids) == set(self._data)
            and DEFAULT_ACCOUNT_ID in self._data
            and self._active_id in self._data
        )

    # ---- switch protocol --------------------------------------------------

    def sync(self) -> None:
        """Store the live working set under the active id."""

        self._data[self._active_id] = self._live

    def switch_to(self, account_id: str) -> PartitionData:
        """Make ``account_id`` active and return its collections as the live set."""

        if not self.has(account_id):
            raise UnknownPartition(f"Unknown account: {account_id!r}")
        data = dict(self._data)
        data[self._active_id] = self._live
        target = data.get(account_id)
        if target is None:
            target = data[account_id] = PartitionData()
        self._data, self._active_id, self._live = data, account_id, target
        _logger.info("switched to account %s", account_id)
        return target

    # ---- lifecycle ----------------------------------------------------------

    def _new_account_id(self) -> str:
        while True:
            candidate = f"account_{self._ids.next_id()}"
            if candidate not in self._data:
                return candidate

    def add(self, name: str) -> Account | None:
        """Create a partition and switch to it; blank names are ignored."""

        name = name.strip()
        if not name:
            return None
        account = Account(id=self._new_account_id(), name=name)
        self._accounts.append(account)
        self._data[account.id] = PartitionData()
        _logger.info("added account %s (%s)", account.id, name)
        self.switch_to(account.id)
        return account

    def delete(self, account_id: str, confirm: ConfirmFn | None = None) -> bool:
        """Delete a partition after the guards and ``confirm`` pass.

        Returns ``False`` when ``confirm`` declines. Deleting the active
        partition switches to ``"default"`` as part of the same call.
        """

        if account_id == DEFAULT_ACCOUNT_ID:
            raise ProtectedPartition("Cannot delete the default account")
        if len(self._accounts) <= 1:
            raise LastPartition("Cannot delete the last account")
        account = self.get(account_id)
        if confirm is not None and not confirm(account):
            return False

        if account_id == self._active_id:
            self.switch_to(DEFAULT_ACCOUNT_ID)
        self._accounts = [acc for acc in self._accounts if acc.id != account_id]
        self._data.pop(account_id, None)
        _logger.info("deleted account %s", account_id)
        return True

    def rename(self, account_id: str, new_name: str) -> bool:
        """Change the display name; blank names are ignored."""

        new_name = new_name.strip()
        if not new_name:
            return False
        self.get(account_id)
        self._accounts = [
            Account(acc.id, new_name) if acc.id == account_id else acc for acc in self._accounts
        ]
        return True


__all__ = ["ConfirmFn", "MultiAccountState", "PartitionData"]
