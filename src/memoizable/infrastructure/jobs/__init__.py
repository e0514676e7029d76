"""Background capture jobs."""

from memoizable.infrastructure.jobs.capture_dispatcher import (
    CaptureDispatcher,
    get_capture_dispatcher,
)

__all__ = ["CaptureDispatcher", "get_capture_dispatcher"]
