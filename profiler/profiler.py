"""
Profiler

Coordinates profile creation and persistence.
Single point of profile management for the HTTP layer.

DESIGN RULES:
- Profiling never aborts request handling
- Collectors run in registration order, one at a time
- Profiles hold clones of collectors, never live instances
- collect() and every state or registry change hold the same lock
"""

import hashlib
import logging
import secrets
import time
from threading import RLock
from typing import Callable, Dict, Iterable, List, Optional

from starlette.requests import Request
from starlette.responses import Response

from collectors.base import DataCollector, LateDataCollector
from profiler.client_ip import resolve_client_ip
from profiler.dates import to_timestamp
from profiler.exceptions import ConflictingHeadersError, NotFoundError
from profiler.profile import Profile
from profiler.storage import ProfilerStorage, RowFilter


TOKEN_HEADER = "X-Debug-Token"
PREVIOUS_TOKEN_HEADER = "X-Previous-Debug-Token"

# Recorded when the client address cannot be trusted
UNKNOWN_IP = "Unknown"


def generate_token() -> str:
    """Short random token: 6 hex chars of a SHA-256 over secure random bytes."""
    return hashlib.sha256(secrets.token_bytes(32)).hexdigest()[:6]


class Profiler:
    """
    Collects profiles for requests and hands them to storage.

    Responsibilities:
    - Own the collector registry
    - Build a Profile per request/response pair
    - Run late collection and persist on save()
    - Load, search and purge stored profiles
    """

    def __init__(
        self,
        storage: ProfilerStorage,
        logger: Optional[logging.Logger] = None,
        enabled: bool = True,
        ip_resolver: Optional[Callable[[Request], Optional[str]]] = None,
    ):
        """
        Initialize profiler.

        Args:
            storage: Backend used to persist and search profiles
            logger: Where storage failures are reported. Optional.
            enabled: Initial state, restored by reset()
            ip_resolver: Resolves the client IP of a request.
                Defaults to the peer address without trusted proxies.
        """
        self._storage = storage
        self._logger = logger
        self._initially_enabled = enabled
        self._enabled = enabled
        self._ip_resolver = ip_resolver or resolve_client_ip
        self._collectors: Dict[str, DataCollector] = {}
        self._lock = RLock()

    @property
    def storage(self) -> ProfilerStorage:
        return self._storage

    @property
    def lock(self):
        """Held by collect(); hold it to make a toggle and a collect atomic."""
        return self._lock

    # --- State ---

    def enable(self) -> None:
        with self._lock:
            self._enabled = True

    def disable(self) -> None:
        with self._lock:
            self._enabled = False

    def is_enabled(self) -> bool:
        return self._enabled

    def reset(self) -> None:
        """Reset every collector and restore the initial enabled state."""
        with self._lock:
            for collector in self._collectors.values():
                collector.reset()
            self._enabled = self._initially_enabled

    # --- Collector registry ---

    def all(self) -> Dict[str, DataCollector]:
        return dict(self._collectors)

    def set(self, collectors: Iterable[DataCollector] = ()) -> None:
        """Replace the registered collectors."""
        with self._lock:
            self._collectors = {}
            for collector in collectors:
                self.add(collector)

    def add(self, collector: DataCollector) -> None:
        with self._lock:
            self._collectors[collector.name] = collector

    def has(self, name: str) -> bool:
        return name in self._collectors

    def get(self, name: str) -> DataCollector:
        """
        Get a registered collector by name.

        Raises:
            NotFoundError: if the collector is not registered
        """
        if name not in self._collectors:
            raise NotFoundError(name)
        return self._collectors[name]

    # --- Capture ---

    def collect(
        self,
        request: Request,
        response: Response,
        exception: Optional[BaseException] = None,
    ) -> Optional[Profile]:
        """
        Build a profile for a request/response pair.

        Sets the X-Debug-Token header on the response; a token already
        present moves to X-Previous-Debug-Token.

        Returns:
            The new profile, or None when the profiler is disabled.
        """
        with self._lock:
            if not self._enabled:
                return None

            profile = Profile(generate_token())
            profile.time = int(time.time())
            profile.url = str(request.url)
            profile.method = request.method
            profile.status_code = response.status_code

            try:
                profile.ip = self._ip_resolver(request)
            except ConflictingHeadersError:
                profile.ip = UNKNOWN_IP

            previous_token = response.headers.get(TOKEN_HEADER)
            if previous_token:
                response.headers[PREVIOUS_TOKEN_HEADER] = previous_token

            response.headers[TOKEN_HEADER] = profile.token

            for collector in self._collectors.values():
                collector.collect(request, response, exception)
                # The live collector is reused by the next request
                profile.add_collector(collector.clone())

            return profile

    # --- Persistence ---

    def save(self, profile: Profile) -> bool:
        """
        Run late collection, then persist the profile.

        Returns:
            True if storage accepted the profile. Failures are logged,
            never raised.
        """
        for collector in profile.collectors.values():
            if isinstance(collector, LateDataCollector):
                collector.late_collect()

        stored = self._storage.write(profile)
        if not stored and self._logger is not None:
            self._logger.warning(
                "Unable to store the profiler information.",
                extra={"configured_storage": type(self._storage).__name__},
            )

        return stored

    def load(self, token: str) -> Optional[Profile]:
        return self._storage.read(token)

    def load_from_response(self, response: Response) -> Optional[Profile]:
        """Load the profile referenced by the response's X-Debug-Token."""
        token = response.headers.get(TOKEN_HEADER)
        if not token:
            return None
        return self.load(token)

    def find(
        self,
        ip: Optional[str] = None,
        url: Optional[str] = None,
        limit: Optional[int] = None,
        method: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        status_code: Optional[str] = None,
        filter: Optional[RowFilter] = None,
    ) -> List[Profile]:
        """
        Search stored profiles.

        start/end accept epoch seconds or date text; a value that does
        not parse leaves that bound open.
        """
        return self._storage.find(
            ip,
            url,
            limit,
            method,
            to_timestamp(start),
            to_timestamp(end),
            status_code,
            filter,
        )

    def purge(self) -> None:
        self._storage.purge()
