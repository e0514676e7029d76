"""Memory service for capturing and committing snapshots.

This service ties the serializer to the memory repository: it captures an
entity into a document, labels it with the entity's current state and the
acting user, and appends it as a new memory.
"""

from enum import Enum
from typing import Any, Optional

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from memoizable.core.config import get_settings
from memoizable.core.context import get_current_actor
from memoizable.core.logging import get_logger
from memoizable.core.memory.registry import MemoizableRegistry, get_registry
from memoizable.core.memory.serializer import MemorySerializer
from memoizable.infrastructure.persistence.models.memory import MemoryModel
from memoizable.infrastructure.persistence.repositories.memory_repository import (
    MemoryRepository,
)

logger = get_logger(__name__)


class MemoryService:
    """Service for capturing entities into memories."""

    def __init__(
        self,
        session: AsyncSession,
        registry: Optional[MemoizableRegistry] = None,
    ) -> None:
        """Initialize the memory service.

        Args:
            session: SQLAlchemy async session.
            registry: Memoizable registry (defaults to the global one).
        """
        self.session = session
        self.registry = registry or get_registry()
        self.repository = MemoryRepository(session)
        self.serializer = MemorySerializer(self.registry)

    async def capture(self, entity: Any, include_all: bool = True) -> dict[str, Any]:
        """Capture an entity into a document without storing it."""
        return await self.serializer.capture(entity, include_all=include_all)

    async def commit(
        self,
        entity: Any,
        document: dict[str, Any],
        state: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> MemoryModel:
        """Append a captured document as a new memory of ``entity``.

        Args:
            entity: The entity the document was captured from.
            document: Captured document.
            state: Optional state label.
            created_by: Optional actor identifier.

        Returns:
            The appended memory.
        """
        descriptor = self.registry.describe(type(entity))
        subject_id = await self._subject_id(entity)
        memory = await self.repository.append(
            subject_type=descriptor.type_name,
            subject_id=subject_id,
            payload=document,
            state=state,
            created_by=created_by,
        )
        logger.info(
            "Memory committed",
            memory_id=memory.id,
            subject_type=descriptor.type_name,
            subject_id=subject_id,
            state=state,
        )
        return memory

    async def capture_now(
        self, entity: Any, created_by: Optional[str] = None
    ) -> MemoryModel:
        """Capture and commit in one step.

        The state label is read the same way as the captured document (see
        ``state_of``); the actor defaults to the one bound in the current
        context.

        Returns:
            The appended memory.
        """
        overlay = getattr(entity, "overlay", None)
        if overlay is not None:
            overlay.clear_cache()

        document = await self.capture(entity)
        memory = await self.commit(
            entity,
            document,
            state=self.state_of(entity),
            created_by=created_by if created_by is not None else get_current_actor(),
        )

        if overlay is not None:
            overlay.observe(memory)
        return memory

    @staticmethod
    def state_of(entity: Any) -> Optional[str]:
        """Read the state label of an entity, if it has one.

        An overlaid entity is labelled with the state of the memory it
        presents, so the label always matches the captured document.
        """
        attribute = get_settings().state_attribute
        overlay = getattr(entity, "overlay", None)
        if overlay is not None and overlay.active:
            value = entity.recall(attribute)
        else:
            value = getattr(entity, attribute, None)
        if value is None:
            return None
        if isinstance(value, Enum):
            value = value.value
        return str(value)

    async def _subject_id(self, entity: Any) -> str:
        identity = inspect(entity).identity
        if identity is None:
            await self.session.flush()
            identity = inspect(entity).identity
        return str(identity[0])
