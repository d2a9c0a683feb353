"""Shared SQLAlchemy models registry for the workspace database.

Currently holds the snapshot table used by ``budget_tracker.persistence``.
"""

from .budget import Base, BtUserSnapshot

__all__ = [
    "Base",
    "BtUserSnapshot",
]
