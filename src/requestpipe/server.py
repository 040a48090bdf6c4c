"""
=============================================================================
HTTP SERVER
=============================================================================

The composition root: wires config, transport, the handler pipeline and the
router together, and owns what happens when something escapes the pipeline.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. SocketServer accepts a client          (main thread)
    2. Connection queued on the executor      (ThreadPoolExecutor)
    3. Worker reads and parses the request    (HTTPParseError → error reply)
    4. Fresh ResponseWriter + HttpContext
    5. Pipeline runs:

         development                         production
         ───────────                         ──────────
         logging                             logging
           diagnostics                         abort-trap
             abort-trap                          faults
               user middleware                     user middleware
                 router                              router

    6. Outcome COMPLETED → response.complete()
       Anything else     → host fallback (below)
    7. Keep-alive: back to 3, otherwise close

=============================================================================
WHY THE TRAP MOVES
=============================================================================

In production the fault handler would turn every exception into a 500. The
trap sits OUTSIDE it so aborts are converted after the fault handler has
passed them through untouched.

In development the diagnostics page must see every real exception, so it is
the outer stage and the trap sits INSIDE it. Aborts are converted before
diagnostics ever sees them.

Both placements are done with named insertion points, not call order.

=============================================================================
HOST FALLBACK
=============================================================================

Whatever escapes the whole pipeline (an abort nobody could write, or an
exception nobody handled):

    response not started  → plain 500, connection kept as usual
    response started      → error logged, connection aborted (RST) so the
                            client sees a truncated response, never a
                            silently "complete" one

=============================================================================
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional, Tuple
import json
import logging

from .abort import Aborted, Outcome
from .config import ServerConfig
from .core.connection import Connection, ConnectionState
from .core.socket_server import SocketServer
from .handlers.routes import Router
from .http.context import HttpContext
from .http.request import HTTPParseError, RequestParser
from .http.response import ResponseWriter
from .http.status_codes import HTTPStatus
from .middleware.base import Handler, PipelineBuilder, PipelineEntry
from .middleware.diagnostics import DeveloperDiagnosticsMiddleware
from .middleware.faults import GenericFaultMiddleware
from .middleware.logging import LoggingMiddleware
from .middleware.trapping import trap_aborts


logger = logging.getLogger(__name__)


STAGE_LOGGING = "logging"
STAGE_DIAGNOSTICS = "diagnostics"
STAGE_FAULTS = "faults"
STAGE_ABORT_TRAP = "abort-trap"


def compose_pipeline(
    config: ServerConfig,
    middleware: Iterable[PipelineEntry] = (),
    abort_logger: Optional[logging.Logger] = None,
) -> PipelineBuilder:
    """
    Build the standard pipeline for ``config.environment``.

    Args:
        config: Server configuration.
        middleware: Extra entries appended after the built-in stages.
        abort_logger: Logger for the abort trap's warnings.

    Returns:
        The builder, so callers can keep registering before build().
    """
    builder = PipelineBuilder()
    builder.use(
        LoggingMiddleware(log_format=config.log_format),
        name=STAGE_LOGGING,
    )

    if config.is_development:
        builder.use(DeveloperDiagnosticsMiddleware(), name=STAGE_DIAGNOSTICS)
        builder.insert_after(STAGE_DIAGNOSTICS, trap_aborts(abort_logger), name=STAGE_ABORT_TRAP)
    else:
        builder.use(GenericFaultMiddleware(), name=STAGE_FAULTS)
        builder.insert_before(STAGE_FAULTS, trap_aborts(abort_logger), name=STAGE_ABORT_TRAP)

    for entry in middleware:
        builder.use(entry)

    return builder


class HTTPServer:
    """
    Threaded HTTP server running every request through the pipeline.

        app = HTTPServer(ServerConfig(port=8000, environment="development"))

        @app.get("/orders/:id")
        def get_order(ctx):
            order = orders.get(ctx.route_params["id"])
            if order is None:
                raise AbortSignal(404, "Order not found")
            ctx.response.content_type = "application/json"
            ctx.response.write(json.dumps(order))

        app.run()
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        abort_logger: Optional[logging.Logger] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._executor: Optional[ThreadPoolExecutor] = None

        self._router = Router()
        self._pipeline = compose_pipeline(self.config, abort_logger=abort_logger)

        # Built on run() (or first handle()); registrations after that are ignored
        self._handler: Optional[Handler] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, entry: PipelineEntry, name: Optional[str] = None) -> "HTTPServer":
        """
        Add middleware inside the built-in stages, in call order.

            app.use(RequireApiKey()).use(timing, name="timing")
        """
        self._pipeline.use(entry, name=name)
        return self

    @property
    def pipeline(self) -> PipelineBuilder:
        """The builder, for named insertion relative to built-in stages."""
        return self._pipeline

    @property
    def router(self) -> Router:
        return self._router

    def route(self, path: str, method: Optional[str] = None):
        return self._router.route(path, method)

    def get(self, path: str):
        return self._router.get(path)

    def post(self, path: str):
        return self._router.post(path)

    def put(self, path: str):
        return self._router.put(path)

    def delete(self, path: str):
        return self._router.delete(path)

    def patch(self, path: str):
        return self._router.patch(path)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once listening on port 0."""
        return self._socket_server.address

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def build(self) -> Handler:
        """Compose the pipeline around the router."""
        self._handler = self._pipeline.build(self._router.handle)
        logger.debug(f"Pipeline: {' → '.join(str(n) for n in self._pipeline.names)}")
        return self._handler

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """Start the server and block until shutdown() or Ctrl+C."""
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self.build()

        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="requestpipe-worker",
        )
        self._running = True

        logger.info(
            f"Starting {self.config.server_name} on {self.config.host}:{self.config.port} "
            f"({self.config.environment}, {self.config.max_workers} workers)"
        )
        for route in self._router.routes:
            logger.debug(f"Route: {route.method or '*':7} {route.path}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Stop accepting connections; run() returns once workers finish."""
        self._running = False
        self._socket_server.shutdown()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("requestpipe").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Queue a connection on the executor (called by SocketServer)."""
        self._executor.submit(self._process_connection, conn)

    def _process_connection(self, conn: Connection):
        """
        Keep-alive loop for one connection (runs in a worker thread).

        read → parse → pipeline → finish → repeat or close
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        self._send_error(conn, e.status_code, str(e))
                        break

                    conn.state = ConnectionState.PROCESSING
                    keep_alive = request.is_keep_alive and self.config.keep_alive

                    response = ResponseWriter(
                        conn.send,
                        server_name=self.config.server_name,
                        buffer_size=self.config.response_buffer_size,
                    )
                    response.on_starting(
                        lambda r, keep_alive=keep_alive: self._connection_headers(r, keep_alive),
                        transport=True,
                    )
                    ctx = HttpContext(request=request, response=response)

                    if not self.handle(ctx):
                        conn.abort()
                        break

                    if not keep_alive:
                        break
                    conn.set_keep_alive()

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break

                except ValueError as e:
                    # Oversized request from Connection.read_request
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                    break

                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def handle(self, ctx: HttpContext) -> bool:
        """
        Run one request through the pipeline and finish its response.

        Returns:
            True if the response went out whole; False if it was cut short
            and the connection must be aborted.
        """
        handler = self._handler or self.build()

        try:
            outcome: Outcome = handler(ctx)
        except Exception as e:
            logger.error(
                f"Unhandled {type(e).__name__} escaped the pipeline for {ctx.describe()}: {e}",
                exc_info=True,
            )
            return self._fallback(ctx)

        if isinstance(outcome, Aborted):
            logger.error(
                f"Abort {outcome.signal.status_code} escaped the pipeline for "
                f"{ctx.describe()} (escalated={outcome.escalated})"
            )
            return self._fallback(ctx)

        try:
            ctx.response.complete()
        except OSError as e:
            logger.debug(f"Client went away before {ctx.describe()} completed: {e}")
            return False
        return True

    def _fallback(self, ctx: HttpContext) -> bool:
        response = ctx.response
        if response.has_started:
            logger.error(f"Response for {ctx.describe()} already started; terminating connection")
            return False

        try:
            response.clear()
            response.status_code = HTTPStatus.INTERNAL_SERVER_ERROR
            response.content_type = "text/plain; charset=utf-8"
            response.write("Internal Server Error")
            response.complete()
        except OSError:
            return False
        return True

    def _connection_headers(self, response: ResponseWriter, keep_alive: bool):
        if response.get_header("Connection") is not None:
            return
        if keep_alive:
            response.set_header("Connection", "keep-alive")
            response.set_header("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
        else:
            response.set_header("Connection", "close")

    def _send_error(self, conn: Connection, status: int, message: str):
        """Reply to a request that never reached the pipeline."""
        response = ResponseWriter(conn.send, server_name=self.config.server_name)
        response.status_code = status
        response.content_type = "application/json; charset=utf-8"
        response.set_header("Connection", "close")
        response.write(json.dumps({"error": message}))
        try:
            response.complete()
        except OSError:
            logger.debug(f"[{conn.id}] Could not send {status} error")


def create_app(
    config: Optional[ServerConfig] = None,
    abort_logger: Optional[logging.Logger] = None,
) -> HTTPServer:
    """
    Create a server application.

        app = create_app(ServerConfig(port=3000))

        @app.get("/")
        def index(ctx):
            ctx.response.write("Hello!")

        app.run()
    """
    return HTTPServer(config, abort_logger=abort_logger)
