"""Logging setup for the ``collection-watch`` commands.

The monitor runs unattended for days, so the root level stays at INFO unless
asked otherwise, and the HTTP client stack is kept to warnings: a discovery
scan alone issues one request per probed ID.

Environment:

- ``LOG_LEVEL``: root level when the command line does not set one.
- ``LOG_LEVEL_MONITOR``, ``LOG_LEVEL_SERVICES``, ``LOG_LEVEL_NOTIFY``: level
  for one package, e.g. ``LOG_LEVEL_NOTIFY=DEBUG`` to trace deliveries while
  the polling loops stay at INFO.
"""

from __future__ import annotations

import logging
import os

LOG_FORMAT: str = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Env var -> package logger it tunes
PACKAGE_LEVEL_ENV: dict[str, str] = {
    "LOG_LEVEL_MONITOR": "Collection_Watch.monitor",
    "LOG_LEVEL_SERVICES": "Collection_Watch.services",
    "LOG_LEVEL_NOTIFY": "Collection_Watch.notify",
}

# Third-party loggers that report every request at INFO/DEBUG
QUIET_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")


def _parse_level(name: str | None) -> int | None:
    """Numeric level for a name like ``"debug"``; None when unknown."""
    if not name:
        return None
    resolved = logging.getLevelName(name.strip().upper())
    return resolved if isinstance(resolved, int) else None


def configure_logging(
    *,
    level: str = "",
    verbose: bool = False,
    quiet: bool = False,
) -> int:
    """Set up the root logger for a command and return its level.

    ``--verbose`` wins over ``--quiet``, which wins over ``--log-level``,
    which wins over ``LOG_LEVEL``. Anything unparseable means INFO. Handlers
    installed earlier are replaced.
    """
    if verbose:
        effective = logging.DEBUG
    elif quiet:
        effective = logging.WARNING
    else:
        effective = (
            _parse_level(level) or _parse_level(os.environ.get("LOG_LEVEL")) or logging.INFO
        )

    logging.basicConfig(level=effective, format=LOG_FORMAT, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for env_key, logger_name in PACKAGE_LEVEL_ENV.items():
        package_level = _parse_level(os.environ.get(env_key))
        if package_level is not None:
            logging.getLogger(logger_name).setLevel(package_level)

    return effective
