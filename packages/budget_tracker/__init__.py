"""Public interface for the ``budget_tracker`` package.

This module exposes the engine's main types as the stable import surface.
There is no runtime logic here, only symbol re-exports.
"""

from .accounts import MultiAccountState, PartitionData
from .analytics import DerivedViews, FilterSpec, compute_views, filter_transactions
from .categorization import CategoryRules
from .errors import (
    BudgetTrackerError,
    CapacityExceeded,
    InvalidAllocation,
    LastPartition,
    PartitionError,
    ProtectedPartition,
    UnknownPartition,
    ValidationError,
)
from .models import Account, Allocation, IdSource, Snapshot, Transaction
from .persistence import JsonFileGateway, SnapshotGateway, SqlSnapshotGateway, resolve_gateway
from .savings import SavingsLedger
from .session import BudgetSession

__all__ = [
    # Engine
    "BudgetSession",
    "MultiAccountState",
    "PartitionData",
    "CategoryRules",
    "SavingsLedger",
    "FilterSpec",
    "DerivedViews",
    "compute_views",
    "filter_transactions",
    # Models
    "Transaction",
    "Allocation",
    "Account",
    "IdSource",
    "Snapshot",
    # Persistence
    "SnapshotGateway",
    "JsonFileGateway",
    "SqlSnapshotGateway",
    "resolve_gateway",
    # Errors
    "BudgetTrackerError",
    "ValidationError",
    "CapacityExceeded",
    "InvalidAllocation",
    "PartitionError",
    "ProtectedPartition",
    "LastPartition",
    "UnknownPartition",
]
