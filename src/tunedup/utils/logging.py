from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any, MutableMapping, cast

import structlog

if TYPE_CHECKING:
    from tunedup.core.config import PlannerConfig

# Prompts, replies and raw error bodies can run to many kilobytes.
DEFAULT_MAX_VALUE_CHARS = 500


def clip_long_values(max_chars: int = DEFAULT_MAX_VALUE_CHARS) -> structlog.typing.Processor:
    """Processor that shortens string values longer than *max_chars*.

    The ``event`` key is never clipped. Clipped values end with
    ``"...(+N chars)"`` so the original length stays visible.
    """

    def processor(
        logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        for key, value in event_dict.items():
            if key == "event" or not isinstance(value, str) or len(value) <= max_chars:
                continue
            event_dict[key] = f"{value[:max_chars]}...(+{len(value) - max_chars} chars)"
        return event_dict

    return processor


def configure_logging(
    level: str = "INFO",
    json: bool = True,
    *,
    max_value_chars: int = DEFAULT_MAX_VALUE_CHARS,
) -> None:
    """Route tunedup's structlog events through stdlib logging on stdout.

    Args:
        level: Standard logging level string, e.g. "DEBUG", "INFO", "WARNING".
            Unknown names fall back to INFO.
        json: Render JSON lines (services) instead of the coloured console
            renderer (local runs).
        max_value_chars: Longest string value kept intact in a log entry.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        clip_long_values(max_value_chars),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.typing.Processor = (
        structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Loggers are created at import time, before the app configures logging.
        cache_logger_on_first_use=False,
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
    root_logger.setLevel(log_level)


def configure_from_config(config: PlannerConfig, *, json: bool = True) -> None:
    """:func:`configure_logging` at ``config.log_level``."""
    configure_logging(config.log_level, json=json)


def get_logger(name: str, **initial_values: object) -> structlog.stdlib.BoundLogger:
    """Return the logger tunedup modules log through.

    Args:
        name: Logger name, typically ``__name__`` of the calling module.
        **initial_values: Key/value pairs bound to every entry (e.g. ``build_id``).
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name, **initial_values))
