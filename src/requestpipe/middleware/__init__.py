"""
=============================================================================
MIDDLEWARE FRAMEWORK
=============================================================================

Composable request pipeline stages.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    MIDDLEWARE PIPELINE                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   LoggingMiddleware               access log, X-Request-ID          │
    │        │                                                             │
    │        ▼                                                             │
    │   DeveloperDiagnosticsMiddleware  (development) HTML error page     │
    │   AbortTrappingMiddleware         writes AbortSignal responses      │
    │   GenericFaultMiddleware          (production) bare 500             │
    │        │                                                             │
    │        ▼                                                             │
    │   Your Handler                    may raise AbortSignal at any depth│
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The relative order of the trap and the diagnostics / fault stages differs
between development and production; see requestpipe.server.

=============================================================================
"""

from .base import (
    Handler,
    HandlerFactory,
    NextHandler,
    Middleware,
    FunctionMiddleware,
    function_middleware,
    PipelineBuilder,
    PipelineConfigurationError,
)
from .trapping import AbortTrappingMiddleware, trap_aborts
from .faults import GenericFaultMiddleware
from .diagnostics import DeveloperDiagnosticsMiddleware
from .logging import LoggingMiddleware

__all__ = [
    # Base classes
    "Handler",
    "HandlerFactory",
    "NextHandler",
    "Middleware",
    "FunctionMiddleware",
    "function_middleware",
    "PipelineBuilder",
    "PipelineConfigurationError",

    # Built-in middleware
    "AbortTrappingMiddleware",
    "trap_aborts",
    "GenericFaultMiddleware",
    "DeveloperDiagnosticsMiddleware",
    "LoggingMiddleware",
]
