"""
=============================================================================
REQUESTPIPE CLI ENTRY POINT
=============================================================================

Runs a demo server whose routes walk through every abort path.

    python -m requestpipe
    python -m requestpipe --port 3000 --environment development
    python -m requestpipe --workers 8 --log-level DEBUG

=============================================================================
DEMO ROUTES
=============================================================================

    GET  /                      200 text
    GET  /orders/:id            200 JSON, or 404 text from a nested helper
    POST /orders                400 JSON field errors / 415 wrong content type
    GET  /broken                500: the exception becomes the abort body
    GET  /crash                 unhandled exception (faults or diagnostics)
    GET  /stream                body streamed, then an abort: the connection
                                is cut because the response already started
    anything else               404 / 405 from the router

=============================================================================
"""

import argparse
import json
import sys

from . import __version__
from .abort import AbortSignal
from .config import ENVIRONMENTS, ServerConfig
from .handlers import require_fields, require_json
from .http.status_codes import HTTPStatus
from .server import HTTPServer


ORDERS = {
    "1": {"id": "1", "sku": "WIDGET-7", "quantity": 3},
    "2": {"id": "2", "sku": "GADGET-2", "quantity": 1},
}


def load_order(order_id: str) -> dict:
    order = ORDERS.get(order_id)
    if order is None:
        raise AbortSignal(HTTPStatus.NOT_FOUND, f"Order {order_id} not found")
    return order


def register_demo_routes(server: HTTPServer) -> None:
    @server.get("/")
    def index(ctx):
        ctx.response.content_type = "text/plain; charset=utf-8"
        ctx.response.write("requestpipe demo: try /orders/1, /orders/9, /broken, /stream\n")

    @server.get("/orders/:id")
    def get_order(ctx):
        order = load_order(ctx.route_params["id"])
        ctx.response.content_type = "application/json"
        ctx.response.write(json.dumps(order))

    @server.post("/orders")
    def create_order(ctx):
        data = require_fields(require_json(ctx.request), "sku", "quantity")
        order_id = str(len(ORDERS) + 1)
        ORDERS[order_id] = {"id": order_id, "sku": data["sku"], "quantity": data["quantity"]}
        ctx.response.status_code = HTTPStatus.CREATED
        ctx.response.content_type = "application/json"
        ctx.response.write(json.dumps(ORDERS[order_id]))

    @server.get("/broken")
    def broken(ctx):
        try:
            {}["missing"]
        except KeyError as e:
            raise AbortSignal(HTTPStatus.INTERNAL_SERVER_ERROR, e)

    @server.get("/crash")
    def crash(ctx):
        raise RuntimeError("demo crash")

    @server.get("/stream")
    def stream(ctx):
        ctx.response.content_type = "text/plain; charset=utf-8"
        ctx.response.write("partial body...\n")
        ctx.response.flush()
        raise AbortSignal(HTTPStatus.SERVICE_UNAVAILABLE, "too late to say this")


def main():
    parser = argparse.ArgumentParser(
        prog="python -m requestpipe",
        description="Demo server for abort-with-response handling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m requestpipe                               # Run with defaults
  python -m requestpipe --port 3000                   # Custom port
  python -m requestpipe --environment development     # Diagnostics pages
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8080,
        help="Port to listen on (default: 8080)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # RUNTIME
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=16,
        help="Number of worker threads (default: 16)"
    )
    parser.add_argument(
        "--environment", "-e",
        choices=ENVIRONMENTS,
        default="production",
        help="Pipeline composition (default: production)"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Access log format (default: text)"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"requestpipe {__version__}"
    )

    args = parser.parse_args()

    try:
        config = ServerConfig(
            host=args.host,
            port=args.port,
            max_workers=args.workers,
            environment=args.environment,
            log_level=args.log_level,
            log_format=args.log_format,
        )
        server = HTTPServer(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    register_demo_routes(server)

    try:
        server.run()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
