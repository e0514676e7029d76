"""Persistence for memories and memoizable models."""

from memoizable.infrastructure.persistence.database import (
    Base,
    DatabaseManager,
    get_db_manager,
)
from memoizable.infrastructure.persistence.event_listeners import (
    LockedRecordError,
    register_memoizable_listeners,
)
from memoizable.infrastructure.persistence.mixin import (
    DetachedEntityError,
    MemoizableMixin,
)
from memoizable.infrastructure.persistence.models import MemoryModel
from memoizable.infrastructure.persistence.repositories import MemoryRepository

__all__ = [
    "Base",
    "DatabaseManager",
    "DetachedEntityError",
    "LockedRecordError",
    "MemoizableMixin",
    "MemoryModel",
    "MemoryRepository",
    "get_db_manager",
    "register_memoizable_listeners",
]
