"""
Structured logging for the TesseraDB client.

The library only obtains loggers; applications decide how output looks by
calling ``configure_logging`` once at startup.

Example:
    ```python
    from tesseradb.log import configure_logging
    configure_logging(level="DEBUG")          # console renderer on a tty
    configure_logging(level="INFO", json_format=True)
    ```
"""

import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


_CLIENT_NAME = "tesseradb"


def _add_client_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict.setdefault("client", _CLIENT_NAME)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: Optional[bool] = None,
    add_timestamp: bool = True,
) -> None:
    """Configure structlog for applications using the client.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for JSON unless stdout is a tty
        add_timestamp: Include an ISO timestamp in each event
    """
    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_client_metadata,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: Optional[str] = None) -> Any:
    """Get a structured logger, usually ``get_logger(__name__)``."""
    return structlog.get_logger(name)
