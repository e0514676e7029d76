"""Domain services for Memoizable.

Services contain the capture workflow that spans the snapshot engine and
the memory store.
"""

from memoizable.domain.services.memory_service import MemoryService

__all__ = ["MemoryService"]
