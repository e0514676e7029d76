"""SQLAlchemy model for the memories table.

Each row is an immutable snapshot of one subject's serialized state.
Rows are only ever appended; a subject's history is read newest first.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, event, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from memoizable.infrastructure.persistence.database import Base


class MemoryModel(Base):
    """SQLAlchemy model for the memories table.

    Attributes:
        id: Primary key (auto-incrementing, also the tie-break for ordering).
        subject_type: Type label of the memoized entity.
        subject_id: Primary key of the memoized entity, as a string.
        state: Optional state label the subject was in when captured.
        payload: Captured document.
        created_by: Identifier of the actor that triggered the capture.
        created_at: Capture timestamp (UTC).
    """

    __tablename__ = "memories"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Unique identifier",
    )
    subject_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Type label of the memoized entity",
    )
    subject_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Primary key of the memoized entity",
    )
    state: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="State label at capture time",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
        comment="Captured document",
    )
    created_by: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Actor that triggered the capture",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        comment="Capture timestamp (UTC)",
    )

    __table_args__ = (
        Index("ix_memories_subject_created", "subject_type", "subject_id", "created_at"),
        Index(
            "ix_memories_subject_state_created",
            "subject_type",
            "subject_id",
            "state",
            "created_at",
        ),
        Index("ix_memories_payload", "payload", postgresql_using="gin"),
    )

    def __repr__(self) -> str:
        return (
            f"<Memory(id={self.id}, subject={self.subject_type}:{self.subject_id}, "
            f"state={self.state})>"
        )


# Memories are append-only: block UPDATE and DELETE at the database level.


@event.listens_for(MemoryModel.__table__, "after_create")
def create_immutability_triggers(target, connection, **kw):
    """Create triggers preventing UPDATE and DELETE on memories (SQLite)."""
    if connection.dialect.name != "sqlite":
        return

    connection.execute(
        text(
            """
            CREATE TRIGGER IF NOT EXISTS prevent_memories_update
            BEFORE UPDATE ON memories
            BEGIN
                SELECT RAISE(ABORT, 'Memories are immutable and cannot be updated');
            END;
            """
        )
    )
    connection.execute(
        text(
            """
            CREATE TRIGGER IF NOT EXISTS prevent_memories_delete
            BEFORE DELETE ON memories
            BEGIN
                SELECT RAISE(ABORT, 'Memories are immutable and cannot be deleted');
            END;
            """
        )
    )
