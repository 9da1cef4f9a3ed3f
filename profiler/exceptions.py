"""
Profiler Exceptions

Errors raised by the profiling layer.

DESIGN RULES:
- NotFoundError always reaches the caller
- Everything else is recovered inside the profiler
"""


class ProfilerError(Exception):
    """Base class for profiler errors."""


class NotFoundError(ProfilerError, LookupError):
    """Raised when a collector name is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Collector "{name}" does not exist.')


class ConflictingHeadersError(ProfilerError):
    """Raised when proxy headers disagree about the client address."""
