"""structlog setup for the workflow engine.

All engine modules log through structlog.get_logger(__name__). Output
is routed through the stdlib root logger so host applications keep one
handler for engine, SQLAlchemy and their own records.

While a workflow runs, its ids are bound to structlog's context
variables (see bind_workflow), so every line an activity logs carries
workflow_definition_id and workflow_instance_id without passing them
around.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from app.config import get_settings

_QUIET_LOGGERS = ("aiosqlite", "asyncio")


def setup_logging(level: Optional[int] = None) -> None:
    """Configure structlog and the root logger.

    Not called by the engine itself: the host process calls it once at
    startup, before building the workflow manager. It replaces the root
    logger's handlers.

    Text (console) rendering in development or when LOG_FORMAT is "text",
    JSON lines otherwise.

    Args:
        level: Overrides settings.LOG_LEVEL
    """
    settings = get_settings()

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.is_development or settings.LOG_FORMAT == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level if level is not None else settings.log_level)

    # SQL statements only when explicitly echoing.
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.SQLALCHEMY_ECHO else logging.WARNING
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def bind_workflow(definition_id: str, instance_id: str) -> Iterator[None]:
    """Bind workflow ids to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(
        workflow_definition_id=definition_id,
        workflow_instance_id=instance_id,
    ):
        yield
