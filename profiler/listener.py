"""
Profiler Listener

Drives the profiler through one request cycle: collect on response,
link sub-request profiles to their parents, save everything on terminate.

DESIGN RULES:
- One listener per main request (state is not shared across requests)
- Never throws from on_terminate()
"""

import logging
from typing import Dict, Optional, Tuple

from starlette.requests import Request
from starlette.responses import Response

from profiler.profile import Profile
from profiler.profiler import Profiler


logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}


class ProfilerListener:
    """
    Request-cycle hooks around a Profiler.

    Flow:
    1. on_exception(): remember the exception raised by a request
    2. on_response(): collect a profile (sub-requests pass their parent)
    3. on_terminate(): attach children to parents, save all profiles
    """

    def __init__(
        self,
        profiler: Profiler,
        only_exceptions: bool = False,
        only_main_requests: bool = False,
        collect_parameter: Optional[str] = None,
    ):
        """
        Args:
            profiler: Profiler used to collect and save
            only_exceptions: Only profile requests that raised
            only_main_requests: Skip sub-requests
            collect_parameter: Query parameter that switches profiling
                on ("1", "true", ...) or off for a single request
        """
        self._profiler = profiler
        self._only_exceptions = only_exceptions
        self._only_main_requests = only_main_requests
        self._collect_parameter = collect_parameter
        self._exceptions: Dict[int, BaseException] = {}
        self._profiles: Dict[int, Tuple[Request, Profile]] = {}
        self._parents: Dict[int, Optional[Request]] = {}

    @property
    def profiles(self) -> Dict[int, Tuple[Request, Profile]]:
        return dict(self._profiles)

    def on_exception(self, request: Request, exception: BaseException, is_main: bool = True) -> None:
        if self._only_main_requests and not is_main:
            return
        self._exceptions[id(request)] = exception

    def on_response(
        self,
        request: Request,
        response: Response,
        parent: Optional[Request] = None,
    ) -> Optional[Profile]:
        """
        Collect a profile for a finished request.

        Args:
            request: The request that was handled
            response: Its response (receives the debug token headers)
            parent: The enclosing request for a sub-request
        """
        is_main = parent is None
        if self._only_main_requests and not is_main:
            return None

        exception = self._exceptions.pop(id(request), None)
        if self._only_exceptions and exception is None:
            return None

        toggle = self._collect_toggle(request)
        # Other requests must not observe this request's toggle
        with self._profiler.lock:
            was_enabled = self._profiler.is_enabled()
            if toggle is True:
                self._profiler.enable()
            elif toggle is False:
                self._profiler.disable()

            try:
                profile = self._profiler.collect(request, response, exception)
            finally:
                if toggle is not None:
                    if was_enabled:
                        self._profiler.enable()
                    else:
                        self._profiler.disable()

        if profile is None:
            return None

        self._profiles[id(request)] = (request, profile)
        self._parents[id(request)] = parent
        return profile

    def on_terminate(self) -> int:
        """
        Link sub-request profiles to their parents and save them all.

        Returns:
            Number of profiles stored successfully
        """
        for key, (_, profile) in self._profiles.items():
            parent_request = self._parents.get(key)
            if parent_request is None:
                continue
            parent_entry = self._profiles.get(id(parent_request))
            if parent_entry is not None:
                parent_entry[1].add_child(profile)

        saved = 0
        for _, profile in self._profiles.values():
            try:
                if self._profiler.save(profile):
                    saved += 1
            except Exception as e:
                # Never throw - profiling must not affect request handling
                logger.error(f"Failed to save profile {profile.token}: {e}")

        self.reset()
        return saved

    def reset(self) -> None:
        self._exceptions.clear()
        self._profiles.clear()
        self._parents.clear()

    def _collect_toggle(self, request: Request) -> Optional[bool]:
        if not self._collect_parameter:
            return None

        value = request.query_params.get(self._collect_parameter)
        if value is None:
            return None
        return value.lower() in TRUTHY
