"""
Logging setup for the CLI and the HTTP app.

Engine components log through `LoggingEventSink`, which writes to child loggers of
`claimwalk` (`claimwalk.session`, `claimwalk.collision`, ...). This module only decides
where those lines end up: the packaged `logging.yaml` sends them to stderr, and the
`claimwalk` logger plus every handler take `app.log_level` (`CLAIMWALK_LOG_LEVEL`).
The cached YAML dict is copied first so repeated calls start from the packaged values.
"""

from __future__ import annotations

import copy
import logging.config

from claimwalk.config.settings import get_logging_config, get_settings


def configure_logging() -> None:
    """Configure the Python logging system based on packaged YAML config + settings."""
    settings = get_settings()
    config = copy.deepcopy(get_logging_config())

    level = settings.app.log_level.upper()
    config.setdefault("loggers", {}).setdefault("claimwalk", {})["level"] = level
    for handler in config.get("handlers", {}).values():
        if isinstance(handler, dict) and "level" in handler:
            handler["level"] = level

    logging.config.dictConfig(config)
