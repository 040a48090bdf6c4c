"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

Standard HTTP status codes with their reason phrases.

=============================================================================
STATUS CODE CATEGORIES
=============================================================================

    ┌───────────┬──────────────────────────────────────────────────────────┐
    │  Range    │  Meaning                                                 │
    ├───────────┼──────────────────────────────────────────────────────────┤
    │  1xx      │  Informational - Request received, continuing            │
    │  2xx      │  Success - Request accepted and processed               │
    │  3xx      │  Redirection - Further action needed                    │
    │  4xx      │  Client Error - Bad request or unauthorized             │
    │  5xx      │  Server Error - Server failed to process                │
    └───────────┴──────────────────────────────────────────────────────────┘

An abort signal may carry any code in 100-599, including codes that have no
member here (e.g. 499 or 599). status_phrase() covers those with a generic
phrase so the status line is always well-formed.

=============================================================================
"""

from enum import IntEnum


MIN_STATUS_CODE = 100
MAX_STATUS_CODE = 599


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 1xx INFORMATIONAL
    CONTINUE = 100
    SWITCHING_PROTOCOLS = 101

    # 2xx SUCCESS
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301
    FOUND = 302
    NOT_MODIFIED = 304
    TEMPORARY_REDIRECT = 307
    PERMANENT_REDIRECT = 308

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    NOT_ACCEPTABLE = 406
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    GONE = 410
    PAYLOAD_TOO_LARGE = 413
    UNSUPPORTED_MEDIA_TYPE = 415
    UNPROCESSABLE_ENTITY = 422
    TOO_MANY_REQUESTS = 429

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase used in the status line (``HTTP/1.1 404 Not Found``)."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_client_error(self) -> bool:
        """Check if this is a 4xx (client error) status code."""
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        """Check if this is a 5xx (server error) status code."""
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """Check if this is an error status code (4xx or 5xx)."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.CONTINUE: "Continue",
    HTTPStatus.SWITCHING_PROTOCOLS: "Switching Protocols",

    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.ACCEPTED: "Accepted",
    HTTPStatus.NO_CONTENT: "No Content",

    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.TEMPORARY_REDIRECT: "Temporary Redirect",
    HTTPStatus.PERMANENT_REDIRECT: "Permanent Redirect",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.NOT_ACCEPTABLE: "Not Acceptable",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.CONFLICT: "Conflict",
    HTTPStatus.GONE: "Gone",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.UNSUPPORTED_MEDIA_TYPE: "Unsupported Media Type",
    HTTPStatus.UNPROCESSABLE_ENTITY: "Unprocessable Entity",
    HTTPStatus.TOO_MANY_REQUESTS: "Too Many Requests",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.BAD_GATEWAY: "Bad Gateway",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.GATEWAY_TIMEOUT: "Gateway Timeout",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}

# Fallback phrases by class, for codes without an enum member
_CLASS_PHRASES = {
    1: "Informational",
    2: "Success",
    3: "Redirection",
    4: "Client Error",
    5: "Server Error",
}


def is_valid_status_code(code: int) -> bool:
    """True for integers in the 100-599 range (``bool`` is rejected)."""
    return (
        isinstance(code, int)
        and not isinstance(code, bool)
        and MIN_STATUS_CODE <= code <= MAX_STATUS_CODE
    )


def status_phrase(code: int) -> str:
    """
    Reason phrase for any status code.

    Known codes use their registered phrase; others fall back to the
    phrase of their class ("Client Error" for 499).
    """
    phrase = _STATUS_PHRASES.get(code)
    if phrase is not None:
        return phrase
    return _CLASS_PHRASES.get(int(code) // 100, "Unknown")
