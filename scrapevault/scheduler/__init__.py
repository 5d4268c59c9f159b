"""Background job scheduling."""

from .apsched_adapter import JobQueue

__all__ = ["JobQueue"]
