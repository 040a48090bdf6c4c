"""
=============================================================================
DEVELOPER DIAGNOSTICS MIDDLEWARE
=============================================================================

Development-only error page. Renders the traceback of any unexpected
exception as HTML so it shows up in the browser.

=============================================================================
POSITION RELATIVE TO THE ABORT TRAP
=============================================================================

In development the abort trap is registered INSIDE this stage:

    logging → diagnostics → abort-trap → ... → router

Ordinary aborts are converted by the trap and never reach this stage. An
abort that does arrive here is one the trap escalated (or one raised with
no trap in between), so it is logged loudly and, when the response is
still clean, rendered as a diagnostic page instead of disappearing.

Never enable this in production: it exposes source paths and locals.

=============================================================================
"""

import html
import logging
import traceback

from ..abort import Aborted, COMPLETED, Outcome
from ..http.context import HttpContext
from ..http.status_codes import HTTPStatus
from .base import Middleware, NextHandler


logger = logging.getLogger(__name__)


_PAGE = """<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body>
<h1>{title}</h1>
<p>{summary}</p>
<pre>{detail}</pre>
</body>
</html>
"""


class DeveloperDiagnosticsMiddleware(Middleware):
    """Render unexpected exceptions and untrapped aborts as an HTML page."""

    def __call__(self, ctx: HttpContext, next: NextHandler) -> Outcome:
        try:
            outcome = next(ctx)
        except Exception as e:
            logger.exception(f"Unhandled error for {ctx.describe()}")
            if ctx.response.has_started:
                raise
            self._render(
                ctx,
                title=f"{type(e).__name__} while handling {ctx.request.path}",
                summary=str(e),
                detail=traceback.format_exc(),
            )
            return COMPLETED

        if not isinstance(outcome, Aborted):
            return outcome

        signal = outcome.signal
        logger.error(
            f"Abort {signal.status_code} reached diagnostics for {ctx.describe()} "
            f"(escalated={outcome.escalated})"
        )
        if ctx.response.has_started:
            return outcome

        self._render(
            ctx,
            title=f"Untrapped abort {signal.status_code} while handling {ctx.request.path}",
            summary=f"Content-Type: {signal.content_type}",
            detail=signal.body,
        )
        return COMPLETED

    def _render(self, ctx: HttpContext, title: str, summary: str, detail: str) -> None:
        response = ctx.response
        response.clear()
        response.status_code = HTTPStatus.INTERNAL_SERVER_ERROR
        response.content_type = "text/html; charset=utf-8"
        response.write(_PAGE.format(
            title=html.escape(title),
            summary=html.escape(summary),
            detail=html.escape(detail),
        ))
        response.complete()
