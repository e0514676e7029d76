"""SQLAlchemy models for Memoizable."""

from memoizable.infrastructure.persistence.models.memory import MemoryModel

__all__ = ["MemoryModel"]
