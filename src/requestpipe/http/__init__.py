"""
=============================================================================
HTTP PROTOCOL COMPONENTS
=============================================================================

    request.py       HTTPRequest, RequestParser, HTTPParseError
    response.py      ResponseWriter, ResponseState, ResponseAlreadyStartedError
    context.py       HttpContext (request + response for one request)
    status_codes.py  HTTPStatus and reason phrases

=============================================================================
"""

from .status_codes import HTTPStatus, is_valid_status_code, status_phrase
from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    ResponseWriter,
    ResponseState,
    ResponseAlreadyStartedError,
    format_http_date,
)
from .context import HttpContext, new_request_id

__all__ = [
    "HTTPStatus",
    "is_valid_status_code",
    "status_phrase",
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    "ResponseWriter",
    "ResponseState",
    "ResponseAlreadyStartedError",
    "format_http_date",
    "HttpContext",
    "new_request_id",
]
