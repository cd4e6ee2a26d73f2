"""Structured logging for termsight.

Every module logs through a stdlib ``logging.getLogger(__name__)`` logger;
:func:`setup_logging` renders those records with structlog. While a request
is in flight the gateway binds ``provider``, ``model`` and ``request_id``
through :func:`request_context`, and those keys appear on every record
emitted inside it, including the retry coordinator's and litellm's.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Optional

import structlog

if TYPE_CHECKING:
    from termsight.config import ObservabilityConfig


@contextmanager
def request_context(provider_id: str, model: str, request_id: Optional[str] = None) -> Iterator[str]:
    """Bind request identity to every log record emitted inside the block.

    Yields:
        The request id, generated when not given.
    """
    request_id = request_id or uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(provider=provider_id, model=model, request_id=request_id):
        yield request_id


def _render_chain(log_format: str) -> list:
    if log_format == "auto":
        log_format = "console" if sys.stderr.isatty() else "json"
    if log_format == "console":
        return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]
    # JSON lines need tracebacks as strings
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def setup_logging(config: ObservabilityConfig, *, level_override: str | None = None) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        config: Level and output format.
        level_override: Level name taking precedence over ``config.log_level``
            (the CLI's ``--verbose``).
    """
    level = getattr(logging, (level_override or config.log_level).upper(), logging.INFO)

    pre_chain: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_render_chain(config.log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("termsight").setLevel(level)
    # litellm is chatty at INFO
    logging.getLogger("LiteLLM").setLevel(max(level, logging.WARNING))
