# Profiler Package
from profiler.exceptions import ProfilerError, NotFoundError, ConflictingHeadersError
from profiler.profile import Profile
from profiler.profiler import Profiler, TOKEN_HEADER, PREVIOUS_TOKEN_HEADER
from profiler.storage import ProfilerStorage, create_storage
from profiler.file_storage import FileProfilerStorage
from profiler.memory_storage import InMemoryProfilerStorage
from profiler.listener import ProfilerListener

__all__ = [
    "Profile",
    "Profiler",
    "ProfilerListener",
    "ProfilerStorage",
    "FileProfilerStorage",
    "InMemoryProfilerStorage",
    "create_storage",
    "ProfilerError",
    "NotFoundError",
    "ConflictingHeadersError",
    "TOKEN_HEADER",
    "PREVIOUS_TOKEN_HEADER",
]
