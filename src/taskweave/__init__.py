"""Task relationship graph engine.

Typed relationships between tasks plus the properties derived from them:
dependency cycle safety, critical paths, progress rollup and rule-driven
priority escalation.
"""

import logging

import structlog

# Configure logging FIRST before any other modules use structlog
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("aiosqlite").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

# Configure structlog to print directly (bypasses stdlib double-logging)
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(colors=True, pad_event=30),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=False,
)

from taskweave.config import Settings  # noqa: E402 - must come after structlog config

__version__ = "0.1.0"
__all__ = ["Settings", "__version__"]
