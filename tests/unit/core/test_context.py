"""Tests for the capture actor context."""

import asyncio

import pytest

from memoizable.core.context import (
    clear_current_actor,
    get_current_actor,
    set_current_actor,
)


def test_actor_defaults_to_none():
    assert get_current_actor() is None


def test_set_and_clear_actor():
    set_current_actor(12)
    assert get_current_actor() == "12"

    clear_current_actor()
    assert get_current_actor() is None


@pytest.mark.asyncio
async def test_actor_is_isolated_per_task():
    async def worker(actor):
        set_current_actor(actor)
        await asyncio.sleep(0)
        return get_current_actor()

    results = await asyncio.gather(worker("a"), worker("b"))

    assert results == ["a", "b"]
    assert get_current_actor() is None
