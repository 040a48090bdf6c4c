"""
Per-request context passed through the handler pipeline.
"""

from dataclasses import dataclass, field
from typing import Any, Dict
import uuid

from .request import HTTPRequest
from .response import ResponseWriter


def new_request_id() -> str:
    """Short random id for log correlation (8 hex chars)."""
    return str(uuid.uuid4())[:8]


@dataclass
class HttpContext:
    """
    Mutable request/response pair for one request.

    Attributes:
        request: The parsed request.
        response: The response writer (owns the ResponseState).
        request_id: Correlation id used in logs and X-Request-ID.
        items: Scratch space for handlers to share per-request data.
        route_params: Path parameters captured by the router (``/users/:id``).
    """

    request: HTTPRequest
    response: ResponseWriter
    request_id: str = field(default_factory=new_request_id)
    items: Dict[str, Any] = field(default_factory=dict)
    route_params: Dict[str, str] = field(default_factory=dict)

    def describe(self) -> str:
        """``GET /path [a1b2c3d4]`` for log lines."""
        return f"{self.request.method} {self.request.path} [{self.request_id}]"
