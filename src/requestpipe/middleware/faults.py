"""
Generic top-level fault handling for production.

Unexpected exceptions become a bare 500 with no internal details. Abort
outcomes are not this stage's concern and pass through untouched, which is
why the abort trap sits outside it.
"""

import json
import logging

from ..abort import COMPLETED, Outcome
from ..http.context import HttpContext
from ..http.status_codes import HTTPStatus
from .base import Middleware, NextHandler


logger = logging.getLogger(__name__)


class GenericFaultMiddleware(Middleware):
    """Answer unexpected exceptions with 500 ``{"error": "Internal Server Error"}``."""

    def __call__(self, ctx: HttpContext, next: NextHandler) -> Outcome:
        try:
            return next(ctx)
        except Exception as e:
            logger.exception(f"Unhandled error for {ctx.describe()}: {type(e).__name__}")
            if ctx.response.has_started:
                # Too late for a clean 500; the host terminates the connection
                raise

            response = ctx.response
            response.clear()
            response.status_code = HTTPStatus.INTERNAL_SERVER_ERROR
            response.content_type = "application/json; charset=utf-8"
            response.write(json.dumps({"error": "Internal Server Error"}))
            response.complete()
            return COMPLETED
