"""
Exception Data Collector

Captures the exception raised while handling the request, if any.
"""

import traceback
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from collectors.base import DataCollector


class ExceptionDataCollector(DataCollector):

    @property
    def name(self) -> str:
        return "exception"

    def collect(
        self,
        request: Request,
        response: Response,
        exception: Optional[BaseException] = None,
    ) -> None:
        if exception is None:
            self.data = {}
            return

        self.data = {
            "class": type(exception).__qualname__,
            "message": str(exception),
            "traceback": traceback.format_exception(
                type(exception), exception, exception.__traceback__
            ),
        }

    @property
    def has_exception(self) -> bool:
        return bool(self.data)

    @property
    def message(self) -> Optional[str]:
        return self.data.get("message")
