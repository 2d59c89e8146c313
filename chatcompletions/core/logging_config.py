"""Structlog logging configuration with plain-text output.

Loggers wrap the stdlib ``chatcompletions.*`` loggers with their own
processor chain, so importing the package leaves the host's structlog and
logging setup alone. Call ``configure_logging()`` to attach the package's
own handlers.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

from .config import env_file_candidates, get_settings, resolved_env_file

PACKAGE_LOGGER = "chatcompletions"

_CONFIGURED = False

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def _build_shared_processors() -> list[Processor]:
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
    return [
        structlog.stdlib.add_log_level,
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _plain_text_renderer(_: Any, event_name: str, event_dict: dict[str, Any]) -> str:
    """Render structlog events as human-friendly plain text."""

    timestamp = event_dict.pop("timestamp", datetime.now(tz=timezone.utc).isoformat())
    level = str(event_dict.pop("level", "info")).upper()
    event = event_dict.pop("event", "") or event_dict.pop("message", "") or event_name

    extras = " ".join(f"{key}={value}" for key, value in event_dict.items() if value is not None)
    parts = [timestamp, f"[{level}]", event]
    if extras:
        parts.append(extras)
    return " ".join(part for part in parts if part)


def configure_logging() -> None:
    """Send package logs to stdout (and ``log_file`` when set) as plain text.

    Only the ``chatcompletions`` logger is touched; it stops propagating to
    the root logger once its own handlers are attached.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    settings = get_settings()
    env_file = resolved_env_file()

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _plain_text_renderer,
        ],
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(settings.log_level)

    handlers: list[logging.Handler] = [console_handler]

    log_file = (settings.log_file or "").strip()
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(settings.log_level)
        handlers.append(file_handler)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in handlers:
        package_logger.addHandler(handler)
    package_logger.setLevel(settings.log_level)
    package_logger.propagate = False

    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _CONFIGURED = True

    get_logger(__name__).debug(
        "logging_configured",
        level=settings.log_level,
        log_file=log_file or "stdout-only",
        env_file=env_file or "not-found",
        env_candidates=list(env_file_candidates()),
    )


def get_logger(name: str | None = None, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger backed by the stdlib logger ``name``."""

    return structlog.wrap_logger(
        logging.getLogger(name or PACKAGE_LOGGER),
        processors=[
            structlog.stdlib.filter_by_level,
            *_build_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        **initial_values,
    )
