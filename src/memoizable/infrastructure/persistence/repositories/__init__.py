"""Repositories for Memoizable persistence."""

from memoizable.infrastructure.persistence.repositories.memory_repository import (
    MemoryRepository,
)

__all__ = ["MemoryRepository"]
