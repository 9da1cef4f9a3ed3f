"""
Profiler Middleware

Profiles every request passing through the application.

Main requests get their own ProfilerListener. Requests dispatched
in-process while a main request is running (sub-requests) share that
listener and become children of the enclosing request's profile.
Profiles are saved off the event loop, in a background task once the
response is sent.
"""

import logging
import time
from contextvars import ContextVar
from typing import Optional, Sequence

from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from collectors.timing import START_TIME_SCOPE_KEY
from profiler.listener import ProfilerListener
from profiler.profiler import Profiler


logger = logging.getLogger(__name__)

_current_listener: ContextVar[Optional[ProfilerListener]] = ContextVar("profiler_listener", default=None)
_current_request: ContextVar[Optional[Request]] = ContextVar("profiler_request", default=None)


class ProfilerMiddleware(BaseHTTPMiddleware):

    def __init__(
        self,
        app: ASGIApp,
        profiler: Profiler,
        only_exceptions: bool = False,
        only_main_requests: bool = False,
        collect_parameter: Optional[str] = None,
        excluded_paths: Sequence[str] = (),
    ):
        super().__init__(app)
        self._profiler = profiler
        self._only_exceptions = only_exceptions
        self._only_main_requests = only_main_requests
        self._collect_parameter = collect_parameter
        self._excluded_paths = tuple(excluded_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path.startswith(self._excluded_paths):
            return await call_next(request)

        request.scope[START_TIME_SCOPE_KEY] = time.time()

        parent = _current_request.get()
        listener = _current_listener.get()
        is_main = listener is None
        if is_main:
            listener = ProfilerListener(
                self._profiler,
                only_exceptions=self._only_exceptions,
                only_main_requests=self._only_main_requests,
                collect_parameter=self._collect_parameter,
            )

        listener_token = _current_listener.set(listener)
        request_token = _current_request.set(request)
        try:
            response = await call_next(request)
        except Exception as exc:
            listener.on_exception(request, exc, is_main=is_main)
            self._on_response(listener, request, Response(status_code=500), parent)
            if is_main:
                await run_in_threadpool(self._terminate, listener)
            raise
        finally:
            _current_request.reset(request_token)
            _current_listener.reset(listener_token)

        self._on_response(listener, request, response, parent)

        if is_main:
            response.background = BackgroundTask(self._terminate, listener)

        return response

    def _on_response(
        self,
        listener: ProfilerListener,
        request: Request,
        response: Response,
        parent: Optional[Request],
    ) -> None:
        try:
            listener.on_response(request, response, parent)
        except Exception as e:
            # Never throw - profiling must not affect the response
            logger.error(f"Failed to collect profile for {request.url.path}: {e}")

    def _terminate(self, listener: ProfilerListener) -> None:
        listener.on_terminate()
        self._profiler.reset()
