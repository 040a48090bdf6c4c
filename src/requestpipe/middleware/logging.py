"""
=============================================================================
LOGGING MIDDLEWARE
=============================================================================

One access log record per request, with timing and a correlation id.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default, Apache-like):
        127.0.0.1 - - [10/Jun/2026:10:55:36 +0000] "GET /orders/7" 404 17 0.42ms

    JSON (for log aggregators):
        {"request_id": "a1b2c3d4", "method": "GET", "path": "/orders/7",
         "status_code": 404, "outcome": "completed", ...}

The ``outcome`` field says how the inner chain ended: ``completed`` (which
includes aborts a trap already converted), ``aborted`` (still travelling
outward), or ``escalated`` (a trap caught it too late to write).

=============================================================================
MIDDLEWARE POSITION
=============================================================================

Logging should be FIRST in the pipeline so that every request is logged,
including ones answered by the abort trap or the fault handlers, and so
the timing covers the whole chain.

=============================================================================
"""

from dataclasses import dataclass, asdict
from typing import Optional
import json
import logging
import time

from ..abort import Aborted, Outcome
from ..http.context import HttpContext
from ..http.response import ResponseWriter
from .base import Middleware, NextHandler


logger = logging.getLogger("requestpipe.access")


@dataclass
class RequestLog:
    """Structured log entry for a request."""

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    outcome: str
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
            + ("" if self.outcome == "completed" else f" ({self.outcome})")
        )


def describe_outcome(outcome: Outcome) -> str:
    if isinstance(outcome, Aborted):
        return "escalated" if outcome.escalated else "aborted"
    return "completed"


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Args:
        log_format: "text" or "json".
        include_request_id: Add X-Request-ID to responses written by the
            handlers. Responses the abort trap writes carry none.
        log_level: Level used for access records.
        skip_paths: Paths not logged (health checks are noisy).
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, ctx: HttpContext, next: NextHandler) -> Outcome:
        request = ctx.request

        if self.include_request_id:
            ctx.response.on_starting(
                lambda response: _tag_request_id(response, ctx.request_id)
            )

        start_time = time.time()
        try:
            outcome = next(ctx)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {ctx.describe()} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if request.path in self.skip_paths:
            return outcome

        status_code = ctx.response.status_code
        if isinstance(outcome, Aborted) and not ctx.response.has_started:
            status_code = outcome.signal.status_code

        log_entry = RequestLog(
            request_id=ctx.request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(status_code),
            content_length=ctx.response.body_length,
            duration_ms=duration_ms,
            outcome=describe_outcome(outcome),
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(log_entry.to_dict()))
        else:
            logger.log(self.log_level, log_entry.to_text())

        return outcome


def _tag_request_id(response: ResponseWriter, request_id: str) -> None:
    if response.get_header("X-Request-ID") is None:
        response.set_header("X-Request-ID", request_id)
