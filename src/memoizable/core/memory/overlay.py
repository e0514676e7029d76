"""Per-instance overlay state.

An overlay decides whether a live entity answers field reads with its own
current values or with the values captured in one of its memories:

    LIVE              current values (initial state)
    LOCKED            the most recent memory, whatever its state label
    AT_STATE(state)   the most recent memory captured in ``state``

The state is plain, unsynchronized instance data. Callers sharing one
entity instance across threads must serialize transitions themselves.
"""

from enum import Enum
from typing import Any, Optional, Protocol

from memoizable.core.logging import get_logger
from memoizable.core.memory.registry import MemoizableRegistry
from memoizable.core.memory.views import MemoizedObject

logger = get_logger(__name__)

_MISSING = object()


class StoredMemory(Protocol):
    """Shape of a memory row as read by the overlay."""

    id: Any
    state: Optional[str]
    payload: dict[str, Any]


class MemoryStore(Protocol):
    """The lookups an overlay needs from the snapshot store."""

    async def latest(self, subject_type: str, subject_id: str) -> Optional[StoredMemory]:
        ...

    async def latest_at_state(
        self, subject_type: str, subject_id: str, state: str
    ) -> Optional[StoredMemory]:
        ...


class OverlayMode(str, Enum):
    """Which values an overlaid entity presents."""

    LIVE = "live"
    LOCKED = "locked"
    AT_STATE = "at_state"


class Overlay:
    """Overlay state machine and per-member cache for one entity instance."""

    def __init__(
        self,
        subject_type: str,
        registry: Optional[MemoizableRegistry] = None,
    ) -> None:
        self.subject_type = subject_type
        self.registry = registry
        self.mode = OverlayMode.LIVE
        self.state: Optional[str] = None
        self.memory: Optional[StoredMemory] = None
        self._document: Optional[MemoizedObject] = None
        self._cache: dict[str, Any] = {}

    @property
    def active(self) -> bool:
        return self.mode is not OverlayMode.LIVE

    @property
    def document(self) -> Optional[MemoizedObject]:
        """The overlaid memory's payload, materialized on first use."""
        if self._document is None and self.memory is not None:
            self._document = MemoizedObject(
                dict(self.memory.payload or {}), registry=self.registry
            )
        return self._document

    def resolve(self, name: str) -> Any:
        """Read one member from the overlaid memory, caching the result."""
        value = self._cache.get(name, _MISSING)
        if value is _MISSING:
            document = self.document
            value = document.get(name) if document is not None else None
            self._cache[name] = value
        return value

    async def lock(self, store: MemoryStore, subject_id: str) -> bool:
        """Overlay the most recent memory.

        Returns:
            False (and no state change) when the subject has no memory.
        """
        memory = await store.latest(self.subject_type, subject_id)
        if memory is None:
            logger.debug(
                "Nothing to lock onto",
                subject_type=self.subject_type,
                subject_id=subject_id,
            )
            return False
        self.lock_onto(memory)
        return True

    def lock_onto(self, memory: StoredMemory) -> None:
        """Overlay a memory that was already fetched."""
        self._enter(OverlayMode.LOCKED, None, memory)

    async def view_state(self, store: MemoryStore, subject_id: str, state: str) -> bool:
        """Overlay the most recent memory captured in ``state``.

        Returns:
            False (and no state change) when no memory has that state.
        """
        memory = await store.latest_at_state(self.subject_type, subject_id, state)
        if memory is None:
            logger.debug(
                "No memory at state",
                subject_type=self.subject_type,
                subject_id=subject_id,
                state=state,
            )
            return False
        self._enter(OverlayMode.AT_STATE, state, memory)
        return True

    def release(self) -> None:
        """Return to live values."""
        if self.active:
            logger.debug(
                "Overlay released", subject_type=self.subject_type, mode=self.mode.value
            )
        self.mode = OverlayMode.LIVE
        self.state = None
        self.memory = None
        self.clear_cache()

    def observe(self, memory: StoredMemory) -> None:
        """Follow a memory that was just committed for this subject.

        A locked overlay always moves to the newest memory; an overlay at a
        state moves only when the new memory carries that state.
        """
        if self.mode is OverlayMode.LOCKED or (
            self.mode is OverlayMode.AT_STATE and memory.state == self.state
        ):
            self.memory = memory
        self.clear_cache()

    def clear_cache(self) -> None:
        self._cache.clear()
        self._document = None

    def _enter(self, mode: OverlayMode, state: Optional[str], memory: StoredMemory) -> None:
        self.mode = mode
        self.state = state
        self.memory = memory
        self.clear_cache()
        logger.debug(
            "Overlay entered",
            subject_type=self.subject_type,
            mode=mode.value,
            state=state,
            memory_id=memory.id,
        )

    def __repr__(self) -> str:
        return f"<Overlay(type={self.subject_type}, mode={self.mode.value}, state={self.state})>"
