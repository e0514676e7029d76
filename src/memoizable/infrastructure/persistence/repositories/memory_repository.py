"""Memory repository for append-only snapshot storage.

This repository provides methods to append memories and to find the most
recent memory of a subject, optionally restricted to a state label.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from memoizable.infrastructure.persistence.models.memory import MemoryModel


class MemoryRepository:
    """Repository for memory database operations.

    UPDATE and DELETE operations are intentionally not provided: memories
    are immutable once written. "Most recent" means ``created_at`` descending
    with the id as a deterministic tie-break.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def append(
        self,
        subject_type: str,
        subject_id: str,
        payload: dict[str, Any],
        state: str | None = None,
        created_by: str | None = None,
    ) -> MemoryModel:
        """Append a new memory for a subject.

        Args:
            subject_type: Type label of the memoized entity.
            subject_id: Primary key of the memoized entity.
            payload: Captured document.
            state: Optional state label.
            created_by: Optional actor identifier.

        Returns:
            The flushed memory with its id assigned.
        """
        memory = MemoryModel(
            subject_type=subject_type,
            subject_id=str(subject_id),
            payload=payload,
            state=state,
            created_by=created_by,
            created_at=datetime.now(timezone.utc),
        )
        self.session.add(memory)
        await self.session.flush()
        await self.session.refresh(memory)
        return memory

    async def get_by_id(self, memory_id: int) -> MemoryModel | None:
        """Get a memory by its id.

        Args:
            memory_id: Memory id.

        Returns:
            The memory, or None if not found.
        """
        result = await self.session.execute(
            select(MemoryModel).where(MemoryModel.id == memory_id)
        )
        return result.scalar_one_or_none()

    async def latest(self, subject_type: str, subject_id: str) -> MemoryModel | None:
        """Get the most recent memory of a subject, whatever its state."""
        result = await self.session.execute(
            self.subject_query(subject_type, subject_id).limit(1)
        )
        return result.scalar_one_or_none()

    async def latest_at_state(
        self, subject_type: str, subject_id: str, state: str
    ) -> MemoryModel | None:
        """Get the most recent memory of a subject captured in ``state``."""
        result = await self.session.execute(
            self.subject_query(subject_type, subject_id)
            .where(MemoryModel.state == state)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def exists_at_state(self, subject_type: str, subject_id: str, state: str) -> bool:
        """Check whether any memory of a subject has the given state."""
        result = await self.session.execute(
            select(MemoryModel.id)
            .where(
                MemoryModel.subject_type == subject_type,
                MemoryModel.subject_id == str(subject_id),
                MemoryModel.state == state,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def list_for_subject(
        self,
        subject_type: str,
        subject_id: str,
        state: str | None = None,
        limit: int | None = None,
    ) -> list[MemoryModel]:
        """List a subject's memories, newest first.

        Args:
            subject_type: Type label of the memoized entity.
            subject_id: Primary key of the memoized entity.
            state: Optional state label filter.
            limit: Optional maximum number of memories.

        Returns:
            Memories ordered newest first.
        """
        query = self.subject_query(subject_type, subject_id)
        if state is not None:
            query = query.where(MemoryModel.state == state)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def subject_query(subject_type: str, subject_id: str):
        """Select a subject's memories, newest first."""
        return (
            select(MemoryModel)
            .where(
                MemoryModel.subject_type == subject_type,
                MemoryModel.subject_id == str(subject_id),
            )
            .order_by(MemoryModel.created_at.desc(), MemoryModel.id.desc())
        )
