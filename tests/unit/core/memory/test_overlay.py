"""Unit tests for the overlay state machine."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from memoizable.core.memory.overlay import Overlay, OverlayMode


def _memory(memory_id, state, **payload):
    return SimpleNamespace(
        id=memory_id, state=state, payload={"__type__": "Thing", **payload}
    )


@pytest.fixture
def store():
    store = AsyncMock()
    store.latest.return_value = _memory(3, "active", status="three")
    store.latest_at_state.side_effect = lambda subject_type, subject_id, state: {
        "draft": _memory(1, "draft", status="one"),
        "active": _memory(3, "active", status="three"),
    }.get(state)
    return store


def test_starts_live():
    overlay = Overlay("Thing")

    assert overlay.mode is OverlayMode.LIVE
    assert not overlay.active
    assert overlay.document is None
    assert overlay.resolve("status") is None


@pytest.mark.asyncio
async def test_lock_presents_latest_memory(store):
    overlay = Overlay("Thing")

    assert await overlay.lock(store, "1") is True

    assert overlay.mode is OverlayMode.LOCKED
    assert overlay.active
    assert overlay.resolve("status") == "three"
    store.latest.assert_awaited_once_with("Thing", "1")


@pytest.mark.asyncio
async def test_lock_without_memories_changes_nothing(store):
    store.latest.return_value = None
    overlay = Overlay("Thing")

    assert await overlay.lock(store, "1") is False

    assert overlay.mode is OverlayMode.LIVE


@pytest.mark.asyncio
async def test_view_state(store):
    overlay = Overlay("Thing")

    assert await overlay.view_state(store, "1", "draft") is True

    assert overlay.mode is OverlayMode.AT_STATE
    assert overlay.state == "draft"
    assert overlay.resolve("status") == "one"


@pytest.mark.asyncio
async def test_view_unknown_state_keeps_current_overlay(store):
    overlay = Overlay("Thing")
    await overlay.view_state(store, "1", "draft")

    assert await overlay.view_state(store, "1", "archived") is False

    assert overlay.state == "draft"
    assert overlay.resolve("status") == "one"


@pytest.mark.asyncio
async def test_switching_between_states(store):
    overlay = Overlay("Thing")

    await overlay.view_state(store, "1", "draft")
    assert overlay.resolve("status") == "one"

    await overlay.view_state(store, "1", "active")
    assert overlay.resolve("status") == "three"

    await overlay.lock(store, "1")
    assert overlay.mode is OverlayMode.LOCKED
    assert overlay.state is None


@pytest.mark.asyncio
async def test_release_returns_to_live(store):
    overlay = Overlay("Thing")
    await overlay.lock(store, "1")
    overlay.resolve("status")

    overlay.release()

    assert overlay.mode is OverlayMode.LIVE
    assert overlay.memory is None
    assert overlay.resolve("status") is None


@pytest.mark.asyncio
async def test_resolve_is_cached(store):
    overlay = Overlay("Thing")
    await overlay.lock(store, "1")

    first = overlay.resolve("status")
    overlay.memory.payload["status"] = "mutated"

    assert overlay.resolve("status") is first


@pytest.mark.asyncio
async def test_locked_overlay_follows_new_memories(store):
    overlay = Overlay("Thing")
    await overlay.lock(store, "1")
    overlay.resolve("status")

    overlay.observe(_memory(4, "draft", status="four"))

    assert overlay.memory.id == 4
    assert overlay.resolve("status") == "four"


@pytest.mark.asyncio
async def test_state_overlay_follows_only_matching_memories(store):
    overlay = Overlay("Thing")
    await overlay.view_state(store, "1", "draft")

    overlay.observe(_memory(4, "active", status="four"))
    assert overlay.resolve("status") == "one"

    overlay.observe(_memory(5, "draft", status="five"))
    assert overlay.resolve("status") == "five"


def test_live_overlay_ignores_new_memories():
    overlay = Overlay("Thing")

    overlay.observe(_memory(4, "draft", status="four"))

    assert overlay.memory is None
    assert not overlay.active


def test_lock_onto_fetched_memory():
    overlay = Overlay("Thing")

    overlay.lock_onto(_memory(2, "draft", status="two"))

    assert overlay.mode is OverlayMode.LOCKED
    assert overlay.resolve("status") == "two"
