"""Error taxonomy for ``budget_tracker``.

Validation and capacity errors are raised to the caller so a front end can
turn them into user-facing messages. Malformed CSV fields are never raised;
they are reported as :class:`~budget_tracker.ingest.lenient.ParseDiagnostic`
records instead.
"""

from __future__ import annotations


class BudgetTrackerError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(BudgetTrackerError, ValueError):
    """Rejected input: empty names/patterns/purposes, unknown ids, bad targets."""


class CapacityExceeded(BudgetTrackerError):
    """An allocation would push a transaction's allocated total past its amount."""


class InvalidAllocation(ValidationError, CapacityExceeded):
    """Non-positive allocation amount or empty purpose.

    Catchable both as a validation failure and as a rejected allocation.
    """


class PartitionError(BudgetTrackerError):
    """Base class for account-partition guards."""


class ProtectedPartition(PartitionError):
    """The ``"default"`` partition cannot be deleted."""


class LastPartition(PartitionError):
    """The only remaining partition cannot be deleted."""


class UnknownPartition(PartitionError, ValidationError):
    """No partition with the given id exists."""


__all__ = [
    "BudgetTrackerError",
    "ValidationError",
    "CapacityExceeded",
    "InvalidAllocation",
    "PartitionError",
    "ProtectedPartition",
    "LastPartition",
    "UnknownPartition",
]
