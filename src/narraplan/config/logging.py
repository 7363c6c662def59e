"""Root logger setup for the command line."""

from __future__ import annotations

import logging

from .env import optional_env_var
from .errors import ConfigurationError

# Per-request chatter from the HTTP stack; the resilient client logs its own line.
_NOISY_LOGGERS = ("httpx", "httpcore", "hishel")


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Set up terse timestamped logging on the root logger.

    Without an explicit ``level`` the ``NARRAPLAN_LOG_LEVEL`` variable is used
    (a level name such as ``DEBUG``), falling back to INFO.
    """
    logging.basicConfig(
        level=level if level is not None else _level_from_env(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _level_from_env() -> int:
    name = optional_env_var("NARRAPLAN_LOG_LEVEL")
    if name is None:
        return logging.INFO
    level = logging.getLevelNamesMapping().get(name.upper())
    if level is None:
        raise ConfigurationError(f"NARRAPLAN_LOG_LEVEL is not a logging level: {name!r}")
    return level
