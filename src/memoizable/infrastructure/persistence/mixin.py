"""Mixin that makes a SQLAlchemy model memoizable.

Usage:
    @memoizable("cars", "rooms", "renter", "monthly_payment")
    class User(MemoizableMixin, Base):
        __tablename__ = "users"
        ...

    await user.memoize_synchronously()   # capture + append a memory
    await user.lock()                    # present the latest memory
    user.recall("payment_frequency")     # overlay-resolved read
    await user.memory_at("approved")     # present the latest "approved" memory
    user.stop_remembering()              # back to live values
"""

from typing import Any, Optional

from sqlalchemy import Boolean, false, inspect
from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncSession, async_object_session
from sqlalchemy.orm import Mapped, mapped_column

from memoizable.core.config import get_settings
from memoizable.core.memory.documents import is_present
from memoizable.core.memory.overlay import Overlay
from memoizable.infrastructure.persistence.repositories.memory_repository import (
    MemoryRepository,
)

_OVERLAY_ATTR = "_memoizable_overlay"


class DetachedEntityError(RuntimeError):
    """Raised when an operation needs a session and the entity has none."""


class RememberedProxy:
    """Attribute-style access to ``recall``: ``user.remembered.status``."""

    __slots__ = ("_entity",)

    def __init__(self, entity: "MemoizableMixin") -> None:
        self._entity = entity

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._entity.recall(name)

    def __getitem__(self, name: str) -> Any:
        return self._entity.recall(name)


class MemoizableMixin(AsyncAttrs):
    """Overlay-aware reads, lock flag and capture entry points.

    ``locked`` is persisted but never memoized. While it is set, flushing
    changes to any other column raises ``LockedRecordError`` (see
    ``register_memoizable_listeners``).
    """

    locked: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    @property
    def overlay(self) -> Overlay:
        overlay = self.__dict__.get(_OVERLAY_ATTR)
        if overlay is None:
            overlay = Overlay(type(self).__name__)
            self.__dict__[_OVERLAY_ATTR] = overlay
        return overlay

    @property
    def remembered(self) -> RememberedProxy:
        return RememberedProxy(self)

    @property
    def memory_subject_id(self) -> str:
        identity = inspect(self).identity
        if identity is None:
            raise DetachedEntityError(
                f"{type(self).__name__} has no identity yet; flush it first"
            )
        return str(identity[0])

    def recall(self, name: str) -> Any:
        """Read a member, from the overlaid memory when one is active.

        ``recall("paid?")`` answers whether ``paid`` holds a present value.
        """
        overlay = self.overlay
        if overlay.active:
            return overlay.resolve(name)
        if name.endswith("?"):
            return is_present(getattr(self, name[:-1], None))
        value = getattr(self, name)
        if callable(value) and getattr(value, "__self__", None) is self:
            return value()
        return value

    async def lock(self, session: Optional[AsyncSession] = None) -> bool:
        """Present the most recent memory and set the persisted lock flag.

        Returns:
            False when there is nothing to lock onto.
        """
        repository = MemoryRepository(self._memory_session(session))
        if not await self.overlay.lock(repository, self.memory_subject_id):
            return False
        self.locked = True
        return True

    def unlock(self) -> None:
        """Return to live values and clear the persisted lock flag."""
        self.overlay.release()
        self.locked = False

    async def memory_at(self, state: str, session: Optional[AsyncSession] = None) -> bool:
        """Present the most recent memory captured in ``state``.

        Returns:
            False (and no change) when no memory has that state.
        """
        repository = MemoryRepository(self._memory_session(session))
        return await self.overlay.view_state(repository, self.memory_subject_id, state)

    def stop_remembering(self) -> None:
        """Return to live values. The persisted lock flag is left as is."""
        self.overlay.release()

    async def memories(
        self, session: Optional[AsyncSession] = None, state: Optional[str] = None
    ) -> list[Any]:
        """This entity's memories, newest first."""
        repository = MemoryRepository(self._memory_session(session))
        return await repository.list_for_subject(
            type(self).__name__, self.memory_subject_id, state=state
        )

    async def memoize_synchronously(
        self,
        session: Optional[AsyncSession] = None,
        created_by: Optional[str] = None,
    ) -> Any:
        """Capture this entity and append a memory now.

        Returns:
            The new memory.
        """
        from memoizable.domain.services.memory_service import MemoryService

        service = MemoryService(self._memory_session(session))
        return await service.capture_now(self, created_by=created_by)

    async def memoize(self, session: Optional[AsyncSession] = None) -> Any:
        """Capture now or hand the capture to the deferred dispatcher.

        Returns:
            The new memory when captured inline, otherwise the scheduled task.
        """
        if get_settings().captures_inline:
            return await self.memoize_synchronously(session)

        from memoizable.infrastructure.jobs.capture_dispatcher import (
            get_capture_dispatcher,
        )

        return get_capture_dispatcher().request_capture(
            type(self).__name__, self.memory_subject_id
        )

    def _memory_session(self, session: Optional[AsyncSession]) -> AsyncSession:
        session = session or async_object_session(self)
        if session is None:
            raise DetachedEntityError(
                f"{type(self).__name__} is not attached to a session"
            )
        return session
