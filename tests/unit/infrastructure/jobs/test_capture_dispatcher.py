"""Unit tests for the deferred capture dispatcher."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from memoizable.infrastructure.jobs.capture_dispatcher import CaptureDispatcher
from memoizable.infrastructure.persistence.repositories.memory_repository import (
    MemoryRepository,
)
from tests.fixtures.rental_models import User


@pytest.fixture
def dispatcher(session_factory) -> CaptureDispatcher:
    return CaptureDispatcher(session_factory=session_factory, delay_seconds=0)


@pytest.mark.asyncio
async def test_perform_captures_and_commits(
    dispatcher: CaptureDispatcher, rental_user: User, db_session: AsyncSession
):
    memory = await dispatcher.perform("User", str(rental_user.id), created_by="worker")

    assert memory is not None
    stored = await MemoryRepository(db_session).latest("User", str(rental_user.id))
    assert stored.id == memory.id
    assert stored.created_by == "worker"
    assert len(stored.payload["cars"]) == 4


@pytest.mark.asyncio
async def test_perform_with_missing_subject_logs_and_drops(dispatcher: CaptureDispatcher):
    with patch("memoizable.infrastructure.jobs.capture_dispatcher.logger") as logger:
        memory = await dispatcher.perform("User", "9999")

    assert memory is None
    logger.error.assert_called_once_with("Could not find subject to memoize")


@pytest.mark.asyncio
async def test_perform_with_malformed_subject_id_logs_and_drops(dispatcher: CaptureDispatcher):
    with patch("memoizable.infrastructure.jobs.capture_dispatcher.logger") as logger:
        memory = await dispatcher.perform("User", "not-an-int")

    assert memory is None
    assert logger.error.call_args.args[0] == "Could not find subject to memoize"
    assert "error" in logger.error.call_args.kwargs


@pytest.mark.asyncio
async def test_perform_with_unknown_type_logs_and_drops(dispatcher: CaptureDispatcher):
    with patch("memoizable.infrastructure.jobs.capture_dispatcher.logger") as logger:
        memory = await dispatcher.perform("Spaceship", "1")

    assert memory is None
    assert logger.error.call_args.args[0] == "Unknown memoizable type"


@pytest.mark.asyncio
async def test_perform_logs_capture_errors(
    dispatcher: CaptureDispatcher, rental_user: User, db_session: AsyncSession
):
    failing = AsyncMock(side_effect=RuntimeError("boom"))

    with (
        patch("memoizable.infrastructure.jobs.capture_dispatcher.logger") as logger,
        patch(
            "memoizable.infrastructure.jobs.capture_dispatcher.MemoryService.capture_now",
            failing,
        ),
    ):
        memory = await dispatcher.perform("User", str(rental_user.id))

    assert memory is None
    logger.error.assert_called_once_with("Error memoizing subject", error="boom")
    assert await MemoryRepository(db_session).latest("User", str(rental_user.id)) is None


@pytest.mark.asyncio
async def test_request_capture_runs_in_background(
    dispatcher: CaptureDispatcher, rental_user: User, db_session: AsyncSession
):
    task = dispatcher.request_capture("User", rental_user.id)

    assert isinstance(task, asyncio.Task)
    await dispatcher.drain()

    assert dispatcher.pending == 0
    stored = await MemoryRepository(db_session).latest("User", str(rental_user.id))
    assert stored is not None


@pytest.mark.asyncio
async def test_request_capture_waits_for_delay(session_factory, rental_user: User):
    dispatcher = CaptureDispatcher(session_factory=session_factory, delay_seconds=60)

    with patch.object(dispatcher, "perform", AsyncMock()) as perform:
        task = dispatcher.request_capture("User", rental_user.id)
        await asyncio.sleep(0)

        assert dispatcher.pending == 1
        perform.assert_not_awaited()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


def test_request_capture_without_running_loop():
    dispatcher = CaptureDispatcher(delay_seconds=0)

    assert dispatcher.request_capture("User", "1") is None
    assert dispatcher.pending == 0


def test_default_delay_comes_from_settings():
    assert CaptureDispatcher().delay_seconds == 30.0
