"""
Time Data Collector

Measures total request time. The end of the request is only known
once the response has been sent, so the duration is computed in
late_collect().
"""

import time
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from collectors.base import LateDataCollector


# Scope key the middleware stamps with the request start time
START_TIME_SCOPE_KEY = "profiler.start_time"


class TimeDataCollector(LateDataCollector):
    """Collects start time at collect(), end time and duration at save."""

    @property
    def name(self) -> str:
        return "time"

    def collect(
        self,
        request: Request,
        response: Response,
        exception: Optional[BaseException] = None,
    ) -> None:
        now = time.time()
        start_time = request.scope.get(START_TIME_SCOPE_KEY, now)

        self.data = {
            "start_time": start_time,
            "collected_at": now,
        }

    def late_collect(self) -> None:
        end_time = time.time()
        start_time = self.data.get("start_time", end_time)

        self.data["end_time"] = end_time
        self.data["duration_ms"] = round((end_time - start_time) * 1000, 3)

    @property
    def duration_ms(self) -> Optional[float]:
        return self.data.get("duration_ms")
