"""Logging helpers for the matchup engine."""

from __future__ import annotations

import logging
from typing import Iterable


def resolve_level(level: int | str) -> int:
    """Translate a level name such as ``"debug"`` into its numeric value."""

    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def configure_logging(
    level: int | str = logging.INFO, handlers: Iterable[logging.Handler] | None = None
) -> None:
    """Configure root logging for command line sessions.

    Generators report unfilled slates at debug level and the tolerance path
    warns about slots it could not fill, so raising the level to ``DEBUG`` is
    the quickest way to see why a slate came back short.
    """

    logging.basicConfig(
        level=resolve_level(level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=list(handlers) if handlers else None,
    )
