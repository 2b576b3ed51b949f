"""Project-wide logging configuration helpers."""

from __future__ import annotations

import logging
import os
from typing import Iterable, Mapping, MutableMapping

from rich.console import Console
from rich.logging import RichHandler

_DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_RICH_FORMAT = "%(name)s | %(message)s"
_DEFAULT_LOGGER_NAME = "cryptogateway"


class _ContextAdapter(logging.LoggerAdapter):
    """Prefix messages with ``key=value`` pairs taken from the adapter context."""

    def process(self, msg, kwargs):
        if not self.extra:
            return msg, kwargs
        prefix = " ".join(f"{key}={value}" for key, value in self.extra.items())
        return f"[{prefix}] {msg}", kwargs


def _coerce_level(value: str | int | None, fallback: int) -> int:
    """Translate string or numeric level declarations into logging levels."""

    if value is None:
        return fallback
    if isinstance(value, int):
        return value
    candidate = value.strip().upper()
    if candidate.isdigit():
        return int(candidate)
    return getattr(logging, candidate, fallback)


def setup_logging(
    *,
    level: str | int | None = None,
    module_levels: Mapping[str, str | int] | None = None,
    noisy_modules: Iterable[str] | None = None,
) -> None:
    """Configure root logging with a rich console handler.

    Parameters
    ----------
    level:
        Base log level for the application. Defaults to ``LOG_LEVEL`` env var or
        ``INFO`` when unset.
    module_levels:
        Explicit per-module overrides. Provided values take precedence over the
        built-in suggestions used to silence particularly noisy libraries.
    noisy_modules:
        Additional module names to downshift to ``INFO`` level automatically.
    """

    base_level = _coerce_level(level or os.getenv("LOG_LEVEL"), logging.INFO)

    handler = RichHandler(
        markup=False,
        rich_tracebacks=True,
        show_path=False,
        show_time=True,
        log_time_format=_DEFAULT_DATE_FORMAT,
        console=Console(stderr=True, soft_wrap=False),
    )

    logging.basicConfig(
        level=base_level,
        format=_RICH_FORMAT,
        datefmt=_DEFAULT_DATE_FORMAT,
        handlers=[handler],
        force=True,  # Replace any handlers pre-configured by libraries
    )
    logging.captureWarnings(True)

    default_levels: MutableMapping[str, str | int] = {
        "aiosqlite": os.getenv("SQL_LOG_LEVEL", "INFO"),
        "sqlalchemy.engine": os.getenv("SQL_LOG_LEVEL", "WARNING"),
        "aiohttp.access": os.getenv("AIOHTTP_ACCESS_LOG_LEVEL", "WARNING"),
        "aiohttp.client": os.getenv("AIOHTTP_CLIENT_LOG_LEVEL", "WARNING"),
        "asyncio": os.getenv("ASYNCIO_LOG_LEVEL", "WARNING"),
    }

    if module_levels:
        default_levels.update(module_levels)

    if noisy_modules:
        for module_name in noisy_modules:
            default_levels.setdefault(module_name, "INFO")

    for module_name, module_level in default_levels.items():
        logging.getLogger(module_name).setLevel(
            _coerce_level(module_level, logging.INFO)
        )


def get_logger(name: str | None = None, **context: object) -> logging.Logger:
    """Retrieve a logger, optionally wrapping it with contextual information."""

    base_logger = logging.getLogger(name if name else _DEFAULT_LOGGER_NAME)
    if not context:
        return base_logger
    return _ContextAdapter(base_logger, context)  # type: ignore[return-value]


__all__ = [
    "setup_logging",
    "get_logger",
]
