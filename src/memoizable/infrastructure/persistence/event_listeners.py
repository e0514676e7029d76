"""SQLAlchemy event listeners for memoizable models.

Three listeners are registered globally:

- ``before_flush`` on every ORM session rejects changes to a locked record
  (anything other than the ``locked`` flag itself).
- ``load`` and ``refresh`` on memoizable instances put a record persisted
  as locked back onto its latest memory; any other reloaded instance
  starts over with live values.
"""

from typing import Any, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from memoizable.core.logging import get_logger
from memoizable.infrastructure.persistence.mixin import _OVERLAY_ATTR, MemoizableMixin
from memoizable.infrastructure.persistence.repositories.memory_repository import (
    MemoryRepository,
)

logger = get_logger(__name__)

_registered = False


class LockedRecordError(RuntimeError):
    """Raised when flushing changes to a locked memoizable record."""


def _changed_columns(target: Any) -> list[str]:
    state = inspect(target)
    return [
        attr.key
        for attr in state.mapper.column_attrs
        if attr.key != "locked" and state.attrs[attr.key].history.has_changes()
    ]


def _was_locked(target: Any) -> bool:
    history = inspect(target).attrs.locked.history
    if history.deleted:
        return bool(history.deleted[0])
    return bool(target.locked)


def guard_locked_records(session: Session, flush_context: Any, instances: Any) -> None:
    """Reject flushes that modify a locked record.

    Changing only ``locked`` is always allowed, as is a flush that unlocks
    the record together with other changes.
    """
    for target in session.dirty:
        if not isinstance(target, MemoizableMixin):
            continue
        if not (_was_locked(target) and target.locked):
            continue
        changed = _changed_columns(target)
        if changed:
            logger.warning(
                "Rejected change to locked record",
                subject_type=type(target).__name__,
                columns=changed,
            )
            raise LockedRecordError(
                f"{type(target).__name__} is locked; cannot change {', '.join(changed)}"
            )


def _lock_onto_latest(target: Any, session: Optional[Session]) -> None:
    """Overlay the latest memory of a record persisted as locked."""
    identity = inspect(target).identity
    if session is None or identity is None:
        return
    query = MemoryRepository.subject_query(type(target).__name__, str(identity[0]))
    with session.no_autoflush:
        memory = session.execute(query.limit(1)).scalar_one_or_none()
    if memory is None:
        logger.warning(
            "Locked record has no memory to present",
            subject_type=type(target).__name__,
            subject_id=str(identity[0]),
        )
        return
    target.overlay.lock_onto(memory)


def restore_locked_overlay(target: Any, context: Any) -> None:
    """Present the latest memory when a locked record is loaded."""
    if target.__dict__.get("locked"):
        _lock_onto_latest(target, context.session)


def reset_overlay(target: Any, context: Any, attrs: Any) -> None:
    """Start a reloaded instance over, locked onto its latest memory if flagged.

    Partial reloads that leave ``locked`` alone keep the current overlay.
    """
    if attrs is not None and "locked" not in attrs:
        return
    target.__dict__.pop(_OVERLAY_ATTR, None)
    if target.__dict__.get("locked"):
        _lock_onto_latest(target, context.session)


def register_memoizable_listeners() -> None:
    """Register the memoizable listeners once."""
    global _registered
    if _registered:
        return
    event.listen(Session, "before_flush", guard_locked_records)
    event.listen(MemoizableMixin, "load", restore_locked_overlay, propagate=True)
    event.listen(MemoizableMixin, "refresh", reset_overlay, propagate=True)
    _registered = True
    logger.debug("Registered memoizable session listeners")
