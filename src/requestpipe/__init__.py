"""
=============================================================================
REQUESTPIPE - Abort-With-Response for an HTTP Handler Pipeline
=============================================================================

Lets code at any depth under a request stop processing and name the exact
response to send, while the pipeline decides where that response is
written and what happens when it's too late to write it.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    REQUESTPIPE ARCHITECTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. ABORT SIGNAL                                                   │
    │      - AbortSignal(status, message | exception | object)            │
    │      - Completed / Aborted outcomes between stages                  │
    │                                                                      │
    │   2. PIPELINE                                                       │
    │      - PipelineBuilder with named insertion points                  │
    │      - Middleware classes or plain handler factories                │
    │                                                                      │
    │   3. TRAPPING                                                       │
    │      - AbortTrappingMiddleware writes the response once             │
    │      - Escalates with one warning when the response has started     │
    │                                                                      │
    │   4. HOST                                                           │
    │      - Threaded socket server, keep-alive, buffered responses       │
    │      - Development and production composition                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    requestpipe/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m requestpipe)
    ├── abort.py             # AbortSignal, Completed, Aborted
    ├── server.py            # HTTPServer, compose_pipeline
    ├── config.py            # ServerConfig dataclass
    ├── core/                # Listening socket, client connections
    ├── http/                # Request, ResponseWriter, HttpContext, status codes
    ├── middleware/          # Builder, trap, faults, diagnostics, logging
    └── handlers/            # Router, validation helpers

=============================================================================
QUICK START
=============================================================================

    from requestpipe import AbortSignal, HTTPServer, ServerConfig

    app = HTTPServer(ServerConfig(port=8000))

    @app.get("/orders/:id")
    def get_order(ctx):
        if ctx.route_params["id"] != "42":
            raise AbortSignal(404, "Order not found")
        ctx.response.write("order 42")

    app.run()

=============================================================================
"""

from .abort import AbortSignal, Aborted, Completed, COMPLETED, Outcome
from .config import ServerConfig
from .server import HTTPServer, compose_pipeline, create_app
from .http import HttpContext, HTTPRequest, ResponseWriter, ResponseState, ResponseAlreadyStartedError
from .middleware import (
    Middleware,
    PipelineBuilder,
    PipelineConfigurationError,
    AbortTrappingMiddleware,
    trap_aborts,
    function_middleware,
)
from .handlers import Router, require_json, require_fields

__version__ = "1.0.0"

__all__ = [
    # Abort
    "AbortSignal",
    "Aborted",
    "Completed",
    "COMPLETED",
    "Outcome",

    # Server
    "HTTPServer",
    "ServerConfig",
    "compose_pipeline",
    "create_app",

    # HTTP
    "HttpContext",
    "HTTPRequest",
    "ResponseWriter",
    "ResponseState",
    "ResponseAlreadyStartedError",

    # Pipeline
    "Middleware",
    "PipelineBuilder",
    "PipelineConfigurationError",
    "AbortTrappingMiddleware",
    "trap_aborts",
    "function_middleware",

    # Handlers
    "Router",
    "require_json",
    "require_fields",
]
