"""Snapshot engine: declarations, capture, materialized views and overlays."""

from memoizable.core.memory.documents import (
    TYPE_KEY,
    merge_documents,
    scope_key,
    sidecar_key,
)
from memoizable.core.memory.overlay import MemoryStore, Overlay, OverlayMode
from memoizable.core.memory.registry import (
    AssociationInfo,
    MemberDeclarationError,
    MemoizableDescriptor,
    MemoizableRegistry,
    UnknownMemoizableTypeError,
    get_registry,
    memoizable,
)
from memoizable.core.memory.serializer import MemorySerializer
from memoizable.core.memory.views import (
    MemoizedCollection,
    MemoizedObject,
    materialize,
)

__all__ = [
    "TYPE_KEY",
    "AssociationInfo",
    "MemberDeclarationError",
    "MemoizableDescriptor",
    "MemoizableRegistry",
    "MemoizedCollection",
    "MemoizedObject",
    "MemorySerializer",
    "MemoryStore",
    "Overlay",
    "OverlayMode",
    "UnknownMemoizableTypeError",
    "get_registry",
    "materialize",
    "memoizable",
    "merge_documents",
    "scope_key",
    "sidecar_key",
]
