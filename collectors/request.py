"""
Request Data Collector

Captures request and response metadata: method, path, query,
headers, route and status.
"""

from typing import Iterable, Optional

from starlette.requests import Request
from starlette.responses import Response

from collectors.base import DataCollector


DEFAULT_REDACTED_HEADERS = ("authorization", "cookie", "set-cookie", "proxy-authorization")

REDACTED = "******"


class RequestDataCollector(DataCollector):
    """
    Collects what was asked and what was answered.

    Header values listed in `redact_headers` are masked before storage.
    """

    def __init__(self, redact_headers: Iterable[str] = DEFAULT_REDACTED_HEADERS):
        super().__init__()
        self._redact_headers = {h.lower() for h in redact_headers}

    @property
    def name(self) -> str:
        return "request"

    def collect(
        self,
        request: Request,
        response: Response,
        exception: Optional[BaseException] = None,
    ) -> None:
        route = request.scope.get("route")

        self.data = {
            "method": request.method,
            "path": request.url.path,
            "query": dict(request.query_params),
            "request_headers": self._headers(request.headers.items()),
            "route": getattr(route, "name", None),
            "status_code": response.status_code,
            "response_headers": self._headers(response.headers.items()),
            "content_type": response.headers.get("content-type"),
        }

    def _headers(self, items) -> dict:
        headers = {}
        for key, value in items:
            key = key.lower()
            headers[key] = REDACTED if key in self._redact_headers else value
        return headers

    # --- Snapshot accessors ---

    @property
    def method(self) -> Optional[str]:
        return self.data.get("method")

    @property
    def path(self) -> Optional[str]:
        return self.data.get("path")

    @property
    def status_code(self) -> Optional[int]:
        return self.data.get("status_code")
