"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Defines the handler protocol and the builder that chains handlers into a
single pipeline. Implements the Chain of Responsibility design pattern.

=============================================================================
CHAIN OF RESPONSIBILITY PATTERN
=============================================================================

Every stage receives the request context and a reference to "the rest of
the chain". It may do work before delegating, after delegating, or short
circuit by raising an AbortSignal.

    ┌─────────────────────────────────────────────────────────────────────┐
    │              CHAIN OF RESPONSIBILITY - REQUEST FLOW                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ctx ─────────────────────────────────────────────────►            │
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐     │
    │   │ Logging  │───►│  Abort   │───►│  Faults  │───►│  Router  │     │
    │   │          │    │   Trap   │    │          │    │  (leaf)  │     │
    │   └────┬─────┘    └────┬─────┘    └────┬─────┘    └────┬─────┘     │
    │        ▲               ▲               ▲               │            │
    │        │               │               │        raise AbortSignal  │
    │        │               │               │               ▼            │
    │        │          converts it     passes it       Aborted(signal)   │
    │        │          COMPLETED ◄──── Aborted ◄────────────┘            │
    │   access log                                                        │
    │                                                                      │
    │   ◄─────────────────────────────────────────────── Outcome          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
TWO WAYS TO WRITE A STAGE
=============================================================================

1. A handler FACTORY: receives the next handler, returns a new handler.

        def timing(next_handler):
            def handler(ctx):
                started = time.perf_counter()
                outcome = next_handler(ctx)
                ctx.items["elapsed"] = time.perf_counter() - started
                return outcome
            return handler

2. A Middleware subclass (or @function_middleware) with
   ``__call__(ctx, next)``. The builder adapts it into a factory.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional, Tuple, Union
import logging

from ..abort import AbortSignal, Aborted, COMPLETED, Outcome
from ..http.context import HttpContext


logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

# A composed stage: takes the context, returns how the inner chain ended.
Handler = Callable[[HttpContext], Outcome]

# NextHandler is what a stage calls to continue the chain.
NextHandler = Handler

# Receives "the rest of the chain" and returns a handler that wraps it.
HandlerFactory = Callable[[NextHandler], Handler]


class PipelineConfigurationError(ValueError):
    """Raised for invalid pipeline registrations (at build time, never per request)."""


class Middleware(ABC):
    """
    Abstract base class for middleware.

    Subclasses implement ``__call__(ctx, next)``:

        class RequireApiKey(Middleware):
            def __call__(self, ctx, next):
                if not ctx.request.get_header("X-Api-Key"):
                    raise AbortSignal(401, "API key required")
                return next(ctx)

    Return the outcome of ``next(ctx)`` (or your own). Returning ``None``
    hands back the outcome of the last ``next`` call, so a pending abort
    keeps travelling outward.
    """

    @abstractmethod
    def __call__(self, ctx: HttpContext, next: NextHandler) -> Optional[Outcome]:
        """
        Process the request.

        Args:
            ctx: The request context.
            next: The next handler in the chain.

        Returns:
            The outcome of the inner chain, or None to reuse it.
        """

    @property
    def name(self) -> str:
        """Get the middleware name for logging."""
        return self.__class__.__name__

    def factory(self) -> HandlerFactory:
        """Adapt this middleware into a handler factory."""
        def bind(next_handler: NextHandler) -> Handler:
            def handler(ctx: HttpContext) -> Outcome:
                inward: List[Outcome] = []

                def call_next(inner_ctx: HttpContext) -> Outcome:
                    outcome = next_handler(inner_ctx)
                    inward.append(outcome)
                    return outcome

                result = self(ctx, call_next)
                if result is None:
                    return inward[-1] if inward else COMPLETED
                return result

            handler.__name__ = self.name
            return handler

        return bind


class FunctionMiddleware(Middleware):
    """
    Wraps a plain ``(ctx, next)`` function as middleware.

    Usage:
        pipeline.use(FunctionMiddleware(my_func, name="my_func"))
    """

    def __init__(
        self,
        func: Callable[[HttpContext, NextHandler], Optional[Outcome]],
        name: Optional[str] = None
    ):
        self._func = func
        self._name = name or func.__name__

    def __call__(self, ctx: HttpContext, next: NextHandler) -> Optional[Outcome]:
        return self._func(ctx, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(
    func: Callable[[HttpContext, NextHandler], Optional[Outcome]]
) -> FunctionMiddleware:
    """
    Decorator to create middleware from a function.

        @function_middleware
        def add_header(ctx, next):
            ctx.response.set_header("X-Custom", "value")
            return next(ctx)

        pipeline.use(add_header)
    """
    return FunctionMiddleware(func)


# =============================================================================
# COMPOSITION
# =============================================================================

def _guard(handler: Handler) -> Handler:
    """
    Turn an AbortSignal raised inside ``handler`` into an Aborted outcome.

    A ``None`` return is read as COMPLETED. Any other exception passes
    through untouched.
    """
    def guarded(ctx: HttpContext) -> Outcome:
        try:
            result = handler(ctx)
        except AbortSignal as signal:
            return Aborted(signal)
        return COMPLETED if result is None else result

    guarded.__name__ = getattr(handler, "__name__", "handler")
    return guarded


def _noop(ctx: HttpContext) -> Outcome:
    return COMPLETED


PipelineEntry = Union[HandlerFactory, Middleware]


class PipelineBuilder:
    """
    Composes an ordered list of handler factories into one entry handler.

    =========================================================================
    PIPELINE ARCHITECTURE
    =========================================================================

    Entries wrap each other like layers of an onion. The first registered
    entry is the outermost:

        builder.use(LoggingMiddleware(), name="logging")
        builder.use(trap_aborts(), name="abort-trap")
        builder.use(GenericFaultMiddleware(), name="faults")

        logging( abort-trap( faults( terminal ) ) )

    Control enters in registration order. On the way out, an abort is
    converted by the nearest enclosing trapper, so ORDER DECIDES which
    trapper handles a signal and whether a stage's own work runs before
    or after the conversion.

    =========================================================================
    NAMED INSERTION POINTS
    =========================================================================

    Entries can be positioned relative to named ones instead of relying on
    call order:

        builder.insert_after("diagnostics", trap_aborts(), name="abort-trap")
        builder.insert_before("faults", trap_aborts(), name="abort-trap")

    =========================================================================
    """

    def __init__(self):
        self._entries: List[Tuple[Optional[str], HandlerFactory]] = []

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def use(self, entry: PipelineEntry, name: Optional[str] = None) -> "PipelineBuilder":
        """
        Append a handler factory or Middleware instance.

        Args:
            entry: Factory ``next -> handler`` or a Middleware instance.
            name: Optional unique name, usable as an insertion anchor.

        Returns:
            Self for method chaining.

        Raises:
            PipelineConfigurationError: entry is None or not callable, or
                the name is already taken.
        """
        self._entries.append(self._prepare(entry, name))
        logger.debug(f"Added pipeline entry: {name or self._describe(entry)}")
        return self

    def insert_before(
        self,
        anchor: str,
        entry: PipelineEntry,
        name: Optional[str] = None,
    ) -> "PipelineBuilder":
        """Insert an entry directly outside (before) the named entry."""
        prepared = self._prepare(entry, name)
        self._entries.insert(self._index_of(anchor), prepared)
        return self

    def insert_after(
        self,
        anchor: str,
        entry: PipelineEntry,
        name: Optional[str] = None,
    ) -> "PipelineBuilder":
        """Insert an entry directly inside (after) the named entry."""
        prepared = self._prepare(entry, name)
        self._entries.insert(self._index_of(anchor) + 1, prepared)
        return self

    @property
    def names(self) -> List[Optional[str]]:
        """Entry names in registration order (None for unnamed entries)."""
        return [name for name, _ in self._entries]

    # =========================================================================
    # BUILD
    # =========================================================================

    def build(self, terminal: Optional[Handler] = None) -> Handler:
        """
        Compose the entries around ``terminal``.

        Given [A, B, C] and terminal T, wraps in reverse so that the first
        entry is outermost: A(B(C(T))).

        With no entries and no terminal the result is a no-op handler that
        returns COMPLETED.

        Raises:
            PipelineConfigurationError: A factory did not return a callable.
        """
        current: Handler = _guard(terminal) if terminal is not None else _noop

        for name, factory in reversed(self._entries):
            handler = factory(current)
            if not callable(handler):
                raise PipelineConfigurationError(
                    f"Handler factory {name or self._describe(factory)} "
                    f"returned {handler!r} instead of a handler"
                )
            current = _guard(handler)

        return current

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _prepare(
        self,
        entry: PipelineEntry,
        name: Optional[str],
    ) -> Tuple[Optional[str], HandlerFactory]:
        if entry is None:
            raise PipelineConfigurationError("Handler factory must not be None")

        if isinstance(entry, Middleware):
            factory = entry.factory()
        elif callable(entry):
            factory = entry
        else:
            raise PipelineConfigurationError(
                f"Expected a handler factory or Middleware, got {type(entry).__name__}"
            )

        if name is not None and name in self.names:
            raise PipelineConfigurationError(f"Duplicate pipeline entry name: {name}")

        return name, factory

    def _index_of(self, anchor: str) -> int:
        for index, (name, _) in enumerate(self._entries):
            if name == anchor:
                return index
        raise PipelineConfigurationError(f"Unknown pipeline entry: {anchor}")

    @staticmethod
    def _describe(entry: object) -> str:
        if isinstance(entry, Middleware):
            return entry.name
        return getattr(entry, "__name__", type(entry).__name__)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Tuple[Optional[str], HandlerFactory]]:
        return iter(self._entries)
