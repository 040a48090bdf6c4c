"""
=============================================================================
ABORT SIGNAL AND PIPELINE OUTCOMES
=============================================================================

Lets code anywhere under a request abort normal processing and name the
terminal response, without threading a special return value through every
function in between.

    def load_order(order_id):
        order = orders.get(order_id)
        if order is None:
            raise AbortSignal(404, f"Order {order_id} not found")
        return order

=============================================================================
SIGNAL VS OUTCOME
=============================================================================

Inside a handler the signal is an ordinary exception: any frame may raise
it. At each pipeline boundary the composition layer turns it into an
explicit outcome value:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   handler body ── raise AbortSignal(404) ──┐                         │
    │                                            ▼                         │
    │   pipeline boundary ──────────────► Aborted(signal)                  │
    │                                            │                         │
    │   outer handler: outcome = next(ctx) ◄─────┘                         │
    │                  if outcome.is_aborted: convert it or return it      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Wrapping handlers never see the exception, only the outcome of their inward
call, so they can't swallow a signal by accident with a broad ``except``.
Other exceptions are not converted and unwind as usual.

=============================================================================
"""

from dataclasses import asdict, dataclass, is_dataclass, replace
from typing import Any, ClassVar, Optional, Union
import json
import traceback

from .http.status_codes import is_valid_status_code


TEXT_PLAIN = "text/plain"
APPLICATION_JSON = "application/json"


def _jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return str(value)


class AbortSignal(Exception):
    """
    Immutable description of a terminal HTTP response.

    Construction forms:

        AbortSignal(404)                          # empty body
        AbortSignal(404, "missing")               # plain-text message
        AbortSignal(404, b"missing")              # bytes, decoded as UTF-8 text
        AbortSignal(500, exc)                     # formatted traceback of exc
        AbortSignal(400, {"errors": {...}})       # JSON, application/json

    Args:
        status_code: HTTP status, 100-599. Checked here so an invalid code
            never reaches the wire.
        detail: Message (str or bytes), exception, or structured object
            (see above).
        content_type: Overrides ``text/plain`` for message and exception
            bodies. Ignored for structured objects, which are always JSON.

    Raises:
        TypeError: status_code is not an int.
        ValueError: status_code is outside 100-599.
    """

    def __init__(
        self,
        status_code: int,
        detail: Any = None,
        content_type: Optional[str] = None,
    ):
        if isinstance(status_code, bool) or not isinstance(status_code, int):
            raise TypeError(
                f"status_code must be an int, got {type(status_code).__name__}"
            )
        if not is_valid_status_code(status_code):
            raise ValueError(f"Invalid HTTP status code: {status_code}")

        if detail is None:
            body = ""
        elif isinstance(detail, str):
            body = detail
        elif isinstance(detail, (bytes, bytearray)):
            body = bytes(detail).decode("utf-8", errors="replace")
        elif isinstance(detail, BaseException):
            body = "".join(
                traceback.format_exception(type(detail), detail, detail.__traceback__)
            )
        else:
            body = json.dumps(detail, default=_jsonable, ensure_ascii=False)
            content_type = APPLICATION_JSON

        self._status_code = int(status_code)
        self._content_type = content_type or TEXT_PLAIN
        self._body = body

        super().__init__(self._status_code, body)

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def content_type(self) -> str:
        return self._content_type

    @property
    def body(self) -> str:
        return self._body

    def __str__(self) -> str:
        if not self._body:
            return f"HTTP {self._status_code}"
        first_line = self._body.splitlines()[0]
        return f"HTTP {self._status_code}: {first_line}"

    def __repr__(self) -> str:
        return (
            f"AbortSignal(status_code={self._status_code}, "
            f"content_type={self._content_type!r}, body={self._body!r})"
        )


# =============================================================================
# OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class Completed:
    """The inner chain finished normally."""

    is_aborted: ClassVar[bool] = False


@dataclass(frozen=True)
class Aborted:
    """
    An abort signal travelling outward.

    ``escalated`` is set by a trapper that caught the signal but could not
    write it because the response had already started.
    """

    signal: AbortSignal
    escalated: bool = False

    is_aborted: ClassVar[bool] = True

    def escalate(self) -> "Aborted":
        return replace(self, escalated=True)


COMPLETED = Completed()

Outcome = Union[Completed, Aborted]
