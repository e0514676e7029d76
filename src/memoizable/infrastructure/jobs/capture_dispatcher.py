"""Deferred capture dispatch.

Large entities can be expensive to capture, so ``memoize()`` normally hands
the work to this dispatcher instead of capturing inline. A capture request
is scheduled on the running event loop after a short delay; the job loads
the subject in its own session, captures and commits it. Failures are
logged and the job is dropped; retrying is left to whoever requested it.
"""

import asyncio
from typing import Any, Callable, Optional

from memoizable.core.config import get_settings
from memoizable.core.logging import LoggingContext, get_logger
from memoizable.core.memory.registry import (
    MemoizableRegistry,
    UnknownMemoizableTypeError,
    get_registry,
)
from memoizable.domain.services.memory_service import MemoryService
from memoizable.infrastructure.persistence.database import get_db_manager
from memoizable.infrastructure.persistence.models.memory import MemoryModel

logger = get_logger(__name__)


class CaptureDispatcher:
    """Schedules capture jobs as background asyncio tasks.

    Example:
        dispatcher = CaptureDispatcher(delay_seconds=0)
        dispatcher.request_capture("Loan", "42")
        await dispatcher.drain()
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Any]] = None,
        registry: Optional[MemoizableRegistry] = None,
        delay_seconds: Optional[float] = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            session_factory: Callable returning an async context manager that
                yields an AsyncSession. Defaults to ``DatabaseManager.session``.
            registry: Memoizable registry (defaults to the global one).
            delay_seconds: Delay before a job runs. Defaults to settings.
        """
        self._session_factory = session_factory
        self.registry = registry or get_registry()
        self.delay_seconds = (
            delay_seconds
            if delay_seconds is not None
            else get_settings().capture_delay_seconds
        )
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def request_capture(
        self,
        subject_type: str,
        subject_id: str,
        created_by: Optional[str] = None,
    ) -> Optional[asyncio.Task]:
        """Schedule a capture of one subject.

        Returns:
            The scheduled task, or None when no event loop is running.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop, capture request dropped",
                subject_type=subject_type,
                subject_id=subject_id,
            )
            return None

        task = loop.create_task(self._run(subject_type, str(subject_id), created_by))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.debug(
            "Capture scheduled",
            subject_type=subject_type,
            subject_id=subject_id,
            delay_seconds=self.delay_seconds,
        )
        return task

    async def perform(
        self,
        subject_type: str,
        subject_id: str,
        created_by: Optional[str] = None,
    ) -> Optional[MemoryModel]:
        """Load, capture and commit one subject.

        Returns:
            The new memory, or None when the job was dropped.
        """
        with LoggingContext(subject_type=subject_type, subject_id=subject_id):
            try:
                model = self.registry.model_for(subject_type)
            except UnknownMemoizableTypeError as e:
                logger.error("Unknown memoizable type", error=str(e))
                return None

            descriptor = self.registry.describe(model)
            try:
                identity = descriptor.coerce_identity(subject_id)
            except (TypeError, ValueError) as e:
                logger.error("Could not find subject to memoize", error=str(e))
                return None

            async with self._session() as session:
                try:
                    entity = await session.get(model, identity)
                    if entity is None:
                        logger.error("Could not find subject to memoize")
                        return None

                    memory = await MemoryService(session, self.registry).capture_now(
                        entity, created_by=created_by
                    )
                    await session.commit()
                except Exception as e:
                    await session.rollback()
                    logger.error("Error memoizing subject", error=str(e))
                    return None

            return memory

    async def drain(self) -> None:
        """Wait for every scheduled capture to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(
        self, subject_type: str, subject_id: str, created_by: Optional[str]
    ) -> Optional[MemoryModel]:
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        return await self.perform(subject_type, subject_id, created_by)

    def _session(self) -> Any:
        if self._session_factory is not None:
            return self._session_factory()
        return get_db_manager().session()


# Global dispatcher instance
_dispatcher: CaptureDispatcher | None = None


def get_capture_dispatcher() -> CaptureDispatcher:
    """Get the global capture dispatcher.

    Returns:
        CaptureDispatcher: Global dispatcher instance.
    """
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = CaptureDispatcher()
    return _dispatcher
