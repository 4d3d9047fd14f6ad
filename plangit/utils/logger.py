"""structlog setup shared by every plangit module.

stdlib logging is routed through structlog's ProcessorFormatter, so records
from dulwich end up in the same stream and format as ours.
"""

from __future__ import annotations

import logging
import os

import structlog
from structlog.types import FilteringBoundLogger, Processor

TRUTHY = ("true", "1", "yes", "on")

# Records emitted by foreign (stdlib) loggers get the same metadata as ours
_FOREIGN_PRE_CHAIN: list[Processor] = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def _renderer(log_format: str, colors: bool) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=colors)


def configure_structlog(
    log_format: str | None = None,
    log_colors: bool | None = None,
    log_level: str | None = None,
) -> None:
    """(Re)configure logging output.

    Arguments left as None are read from LOG_FORMAT, LOG_COLORS and LOG_LEVEL.
    """
    if log_format is None:
        log_format = os.getenv("LOG_FORMAT", "pretty")
    if log_colors is None:
        log_colors = os.getenv("LOG_COLORS", "true").lower() in TRUTHY
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format.lower(), log_colors),
            foreign_pre_chain=_FOREIGN_PRE_CHAIN,
        )
    )
    logging.root.handlers = [handler]
    logging.root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logging.captureWarnings(True)

    # dulwich reports every pack and ref read at DEBUG
    logging.getLogger("dulwich").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Loggers are module globals; caching would pin the first configuration
        cache_logger_on_first_use=False,
    )


configure_structlog()


def command_log(
    logger: FilteringBoundLogger,
    args: list[str],
    returncode: int,
    duration_ms: float,
    **kwargs,
):
    """Log one finished git subprocess."""
    logger.debug(
        f"git {args[0] if args else ''} -> {returncode}",
        args=args,
        returncode=returncode,
        duration_ms=duration_ms,
        **kwargs,
    )


def get_logger(name: str, level: int | None = None) -> FilteringBoundLogger:
    """Bound logger for ``name``; ``level`` pins the stdlib logger's level."""
    if level is not None:
        logging.getLogger(name).setLevel(level)
    return structlog.get_logger(name)


logger = get_logger("plangit")
git_logger = get_logger("plangit.git")
workflow_logger = get_logger("plangit.workflow")
