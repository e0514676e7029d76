"""Capture context management using ContextVars.

Stores the identifier of the actor responsible for the current unit of work
so that memories can record who triggered them without passing the actor
through every call.
"""

from contextvars import ContextVar
from typing import Optional

_current_actor: ContextVar[Optional[str]] = ContextVar("current_actor", default=None)


def get_current_actor() -> Optional[str]:
    """Get the actor bound to the current context.

    Returns:
        The actor identifier or None if not set.
    """
    return _current_actor.get()


def set_current_actor(actor_id: Optional[str]) -> None:
    """Bind an actor to the current context.

    Args:
        actor_id: Identifier of the actor (usually a user id).
    """
    _current_actor.set(str(actor_id) if actor_id is not None else None)


def clear_current_actor() -> None:
    """Clear the current actor."""
    _current_actor.set(None)
