# ruff: noqa: I001
"""Snapshot persistence for budget_tracker.

The engine saves and loads one snapshot document per user through a
:class:`SnapshotGateway`. Two gateways ship here:

- :class:`JsonFileGateway` writes ``<user>.json`` under a data directory.
- :class:`SqlSnapshotGateway` stores the same document in the
  ``bt_user_snapshots`` table owned by ``libs/db``.

Conversion between the in-memory :class:`MultiAccountState` and the
:class:`~budget_tracker.models.Snapshot` document lives here as well.
Loading is forgiving: legacy single-account documents migrate into the
``"default"`` partition, and a document that breaks the partition invariant
is repaired (with a WARNING per repair) instead of rejected.
"""

from __future__ import annotations

import contextlib
import os
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import func

from db.client import session_scope
from db.models.budget import BtUserSnapshot
from .accounts import MultiAccountState, PartitionData
from .categorization import CategoryRules
from .logging_setup import get_logger
from .models import (
    DEFAULT_ACCOUNT_ID,
    DEFAULT_ACCOUNT_NAME,
    Account,
    AccountDoc,
    Allocation,
    AllocationDoc,
    IdSource,
    PartitionDoc,
    Snapshot,
    TransactionDoc,
)
from .savings import SavingsLedger

_logger = get_logger("budget_tracker.persistence")

_USER_ID_RE = re.compile(r"^[A-Za-z0-9_@-][A-Za-z0-9_.@-]{0,127}$")


class SnapshotGateway(Protocol):
    """Storage for one snapshot document per user id."""

    def save(self, user_id: str, snapshot: Snapshot) -> None: ...

    def load(self, user_id: str) -> Snapshot | None: ...


# ----------------------------------------------------------------------------
# State <-> document
# ----------------------------------------------------------------------------


def _timestamp(now: datetime | None) -> str:
    now = (now or datetime.now(UTC)).astimezone(UTC)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _partition_doc(data: PartitionData) -> PartitionDoc:
    return PartitionDoc(
        transactions=[TransactionDoc.from_transaction(t) for t in data.transactions],
        category_rules=data.rules.to_dict(),
        savings_allocations={
            str(tid): [AllocationDoc(purpose=a.purpose, amount=a.amount) for a in allocs]
            for tid, allocs in data.ledger.items()
        },
    )


def snapshot_from_state(state: MultiAccountState, *, now: datetime | None = None) -> Snapshot:
    """Build the persisted document for ``state`` (live set included)."""

    partitions = state.partitions()
    return Snapshot(
        accounts=[AccountDoc(id=a.id, name=a.name) for a in state.accounts],
        accounts_data={acc.id: _partition_doc(partitions[acc.id]) for acc in state.accounts},
        active_account_id=state.active_id,
        last_updated=_timestamp(now),
    )


def _ledger_from_doc(account_id: str, raw: Mapping[str, list[AllocationDoc]]) -> SavingsLedger:
    entries: dict[int, list[Allocation]] = {}
    for key, allocs in raw.items():
        try:
            tid = int(key)
        except ValueError:
            _logger.warning(
                "snapshot repair: account %s has non-numeric allocation key %r; skipped",
                account_id,
                key,
            )
            continue
        entries[tid] = [Allocation(purpose=a.purpose, amount=a.amount) for a in allocs]
    return SavingsLedger(entries)


def _partition_from_doc(account_id: str, doc: PartitionDoc) -> PartitionData:
    return PartitionData(
        transactions=[t.to_transaction() for t in doc.transactions],
        rules=CategoryRules.from_mapping(doc.category_rules),
        ledger=_ledger_from_doc(account_id, doc.savings_allocations),
    )


def _repair_accounts(snapshot: Snapshot) -> list[Account]:
    accounts: list[Account] = []
    seen: set[str] = set()
    for a in snapshot.accounts or []:
        if a.id in seen:
            _logger.warning("snapshot repair: duplicate account id %s dropped", a.id)
            continue
        seen.add(a.id)
        accounts.append(Account(a.id, a.name))
    if DEFAULT_ACCOUNT_ID not in seen:
        if snapshot.accounts:
            _logger.warning("snapshot repair: default account missing; added")
        accounts.insert(0, Account(DEFAULT_ACCOUNT_ID, DEFAULT_ACCOUNT_NAME))
    return accounts


def state_from_snapshot(
    snapshot: Snapshot | Mapping[str, Any] | None,
    *,
    ids: IdSource | None = None,
) -> MultiAccountState:
    """Rebuild a :class:`MultiAccountState` from a stored document.

    ``None`` yields the initial state. ``ids`` (when given) observes every
    loaded transaction id so freshly drawn ids sort after them.
    """

    ids = ids or IdSource()
    if snapshot is None:
        return MultiAccountState.initial(ids=ids)
    if not isinstance(snapshot, Snapshot):
        snapshot = Snapshot.model_validate(snapshot)

    if snapshot.is_legacy:
        legacy = PartitionDoc(
            transactions=snapshot.transactions or [],
            category_rules=snapshot.category_rules or {},
        )
        data = {DEFAULT_ACCOUNT_ID: _partition_from_doc(DEFAULT_ACCOUNT_ID, legacy)}
        accounts = [Account(DEFAULT_ACCOUNT_ID, DEFAULT_ACCOUNT_NAME)]
        active = DEFAULT_ACCOUNT_ID
        _logger.info("migrated legacy single-account snapshot into %s", DEFAULT_ACCOUNT_ID)
    else:
        accounts = _repair_accounts(snapshot)
        known = {a.id for a in accounts}
        data = {}
        for account_id, doc in (snapshot.accounts_data or {}).items():
            if account_id not in known:
                _logger.warning("snapshot repair: orphan data for account %s dropped", account_id)
                continue
            data[account_id] = _partition_from_doc(account_id, doc)
        if snapshot.accounts:
            for account_id in [a.id for a in accounts if a.id not in data]:
                _logger.warning("snapshot repair: account %s had no data; emptied", account_id)
        active = snapshot.active_account_id or DEFAULT_ACCOUNT_ID
        if active not in known:
            _logger.warning(
                "snapshot repair: active account %r unknown; using %s", active, DEFAULT_ACCOUNT_ID
            )
            active = DEFAULT_ACCOUNT_ID

    for partition in data.values():
        ids.observe(t.id for t in partition.transactions)
    return MultiAccountState(accounts, data, active, ids=ids)


# ----------------------------------------------------------------------------
# JSON file gateway
# ----------------------------------------------------------------------------


def _get_data_root() -> Path:
    """Return the snapshot directory.

    Default: ``./.budget_tracker`` under the current working directory.
    Override: ``BUDGET_TRACKER_DATA_DIR`` environment variable.
    """

    root = os.getenv("BUDGET_TRACKER_DATA_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".budget_tracker").resolve()


def validate_user_id(user_id: str) -> str:
    """Reject ids that are empty or could escape the data directory."""

    if not _USER_ID_RE.fullmatch(user_id or ""):
        raise ValueError(f"Invalid user id: {user_id!r}")
    return user_id


class JsonFileGateway:
    """One ``<user>.json`` snapshot document per user."""

    def __init__(self, root: str | os.PathLike[str] | None = None) -> None:
        self.root = Path(root).expanduser().resolve() if root is not None else _get_data_root()

    def path_for(self, user_id: str) -> Path:
        return self.root / f"{validate_user_id(user_id)}.json"

    def save(self, user_id: str, snapshot: Snapshot) -> None:
        path = self.path_for(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp.write_text(
                snapshot.model_dump_json(by_alias=True, exclude_none=True),
                encoding="utf-8",
            )
            os.replace(tmp, path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise

    def load(self, user_id: str) -> Snapshot | None:
        path = self.path_for(user_id)
        if not path.is_file():
            return None
        return Snapshot.model_validate_json(path.read_text(encoding="utf-8"))


# ----------------------------------------------------------------------------
# SQL gateway
# ----------------------------------------------------------------------------


class SqlSnapshotGateway:
    """Snapshot documents in ``bt_user_snapshots`` (see ``libs/db``)."""

    def __init__(self, database_url: str | None = None) -> None:
        self.database_url = database_url

    def save(self, user_id: str, snapshot: Snapshot) -> None:
        document = snapshot.to_document()
        with session_scope(database_url=self.database_url) as session:
            row = session.get(BtUserSnapshot, user_id)
            if row is None:
                session.add(
                    BtUserSnapshot(
                        user_id=user_id,
                        document=document,
                        last_updated=snapshot.last_updated,
                    )
                )
            else:
                row.document = document
                row.last_updated = snapshot.last_updated
                row.updated_at = func.now()

    def load(self, user_id: str) -> Snapshot | None:
        with session_scope(database_url=self.database_url) as session:
            row = session.get(BtUserSnapshot, user_id)
            if row is None:
                return None
            return Snapshot.model_validate(row.document)


def resolve_gateway(
    database_url: str | None = None,
    *,
    data_dir: str | os.PathLike[str] | None = None,
) -> SnapshotGateway:
    """SQL when a URL is given or ``DATABASE_URL`` is set; JSON files otherwise."""

    url = database_url or os.getenv("DATABASE_URL")
    if url:
        return SqlSnapshotGateway(url)
    return JsonFileGateway(data_dir)


__all__ = [
    "SnapshotGateway",
    "JsonFileGateway",
    "SqlSnapshotGateway",
    "snapshot_from_state",
    "state_from_snapshot",
    "validate_user_id",
    "resolve_gateway",
]
