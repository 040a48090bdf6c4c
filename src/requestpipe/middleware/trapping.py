"""
=============================================================================
ABORT TRAPPING MIDDLEWARE
=============================================================================

The one stage that turns an AbortSignal into bytes on the wire.

=============================================================================
STATE MACHINE (per request)
=============================================================================

    Running ──► Completed                       inner chain finished normally
       │
       └─────► Converting ──► Written            response not started:
                   │                            clear, status, Content-Type,
                   │                            body, complete. Swallowed.
                   │
                   └────────► Escalated         response already started (or
                                                the write itself failed):
                                                warn once, pass it outward.

A started response cannot be repaired: the status line and maybe part of
the body are already on the socket. Escalation hands the problem outward
to the host, which cuts the connection. Trappers further out pass an
escalated outcome through without a second attempt or a second warning.

=============================================================================
"""

from typing import Optional
import logging

from ..abort import Aborted, COMPLETED, Outcome
from ..http.context import HttpContext
from ..http.response import ResponseAlreadyStartedError
from .base import HandlerFactory, Middleware, NextHandler


default_logger = logging.getLogger("requestpipe.aborts")


class AbortTrappingMiddleware(Middleware):
    """
    Converts abort outcomes from the inner chain into the terminal response.

    Only abort outcomes are handled here. Exceptions raised by inner stages
    pass through untouched: their type, message and traceback reach
    whatever handles them further out.

    Args:
        logger: Destination for the already-started warning. Defaults to
            the ``requestpipe.aborts`` logger.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or default_logger

    def __call__(self, ctx: HttpContext, next: NextHandler) -> Outcome:
        outcome = next(ctx)
        if not isinstance(outcome, Aborted):
            return outcome

        # An inner trapper already tried and warned
        if outcome.escalated:
            return outcome

        signal = outcome.signal
        response = ctx.response

        if response.has_started:
            self._warn(ctx, outcome, "response has already started")
            return outcome.escalate()

        try:
            response.clear()
            response.status_code = signal.status_code
            response.content_type = signal.content_type
            response.write(signal.body)
            response.complete()
        except (OSError, ResponseAlreadyStartedError) as e:
            self._warn(ctx, outcome, f"writing the response failed: {e}")
            return outcome.escalate()

        return COMPLETED

    def _warn(self, ctx: HttpContext, outcome: Aborted, reason: str) -> None:
        self._logger.warning(
            "Cannot send abort response %d for %s: %s",
            outcome.signal.status_code,
            ctx.describe(),
            reason,
            extra={
                "request_id": ctx.request_id,
                "status_code": outcome.signal.status_code,
            },
        )


def trap_aborts(logger: Optional[logging.Logger] = None) -> HandlerFactory:
    """
    Handler factory for an abort trapping stage.

        builder.insert_before("faults", trap_aborts(), name="abort-trap")
    """
    return AbortTrappingMiddleware(logger=logger).factory()
