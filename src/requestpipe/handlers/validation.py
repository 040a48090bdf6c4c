"""
Request validation helpers.

Each helper either returns the validated value or raises AbortSignal with
a client error, so handlers read as straight-line code:

    @router.post("/orders")
    def create_order(ctx):
        data = require_json(ctx.request)
        require_fields(data, "sku", "quantity")
        ...
"""

from typing import Any, Dict

from ..abort import AbortSignal
from ..http.request import HTTPParseError, HTTPRequest
from ..http.status_codes import HTTPStatus


def require_json(request: HTTPRequest) -> Any:
    """
    Return the parsed JSON body.

    Raises:
        AbortSignal: 415 if the body isn't declared as JSON, 400 if it
            doesn't parse.
    """
    if not request.is_json:
        raise AbortSignal(
            HTTPStatus.UNSUPPORTED_MEDIA_TYPE,
            f"Expected application/json, got {request.content_type or 'no content type'}",
        )
    try:
        return request.json
    except HTTPParseError as e:
        raise AbortSignal(HTTPStatus.BAD_REQUEST, {"errors": {"body": str(e)}}) from e


def require_fields(data: Any, *names: str) -> Dict[str, Any]:
    """
    Check that ``data`` is an object carrying every field in ``names``.

    Raises:
        AbortSignal: 400 with ``{"errors": {field: message}}``.
    """
    if not isinstance(data, dict):
        raise AbortSignal(HTTPStatus.BAD_REQUEST, {"errors": {"body": "Expected a JSON object"}})

    errors = {
        name: "This field is required"
        for name in names
        if data.get(name) in (None, "")
    }
    if errors:
        raise AbortSignal(HTTPStatus.BAD_REQUEST, {"errors": errors})
    return data
