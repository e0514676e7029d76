"""Memoizable - versioned snapshots of database records.

Capture a record's attributes, computed values and associations into an
immutable JSON memory, and read the record back as it was at any memory.
"""

__version__ = "0.1.0"

from memoizable.core.memory import (
    MemberDeclarationError,
    MemoizedCollection,
    MemoizedObject,
    MemorySerializer,
    Overlay,
    OverlayMode,
    UnknownMemoizableTypeError,
    get_registry,
    materialize,
    memoizable,
)
from memoizable.domain.services import MemoryService
from memoizable.infrastructure.jobs import CaptureDispatcher, get_capture_dispatcher
from memoizable.infrastructure.persistence import (
    Base,
    DetachedEntityError,
    LockedRecordError,
    MemoizableMixin,
    MemoryModel,
    MemoryRepository,
    register_memoizable_listeners,
)

__all__ = [
    "Base",
    "CaptureDispatcher",
    "DetachedEntityError",
    "LockedRecordError",
    "MemberDeclarationError",
    "MemoizableMixin",
    "MemoizedCollection",
    "MemoizedObject",
    "MemoryModel",
    "MemoryRepository",
    "MemorySerializer",
    "MemoryService",
    "Overlay",
    "OverlayMode",
    "UnknownMemoizableTypeError",
    "__version__",
    "get_capture_dispatcher",
    "get_registry",
    "materialize",
    "memoizable",
    "register_memoizable_listeners",
]
