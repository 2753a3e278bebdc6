"""Logging helpers for the landgit CLI.

Every record goes to stderr: when running as a git remote helper,
stdout is the protocol channel.
"""

from __future__ import annotations

import logging
import os
import sys

import colorlog

LOG_COLORS = {
    "DEBUG": "bold_cyan",
    "INFO": "bold_green",
    "WARNING": "bold_yellow",
    "ERROR": "bold_red",
    "CRITICAL": "bold_red,bg_white",
}

_FORMAT = "[landgit] <%(name)s> %(levelname)s: %(message)s"


def _use_color() -> bool:
    if os.getenv("NO_COLOR") is not None:
        return False
    if not sys.stderr.isatty():
        return False
    return True


def verbose_from_env() -> bool:
    """Return whether LANDGIT_VERBOSE asks for debug logging."""
    return os.getenv("LANDGIT_VERBOSE", "") not in ("", "0", "false", "no")


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler(sys.stderr)
    if _use_color():
        handler.setFormatter(
            colorlog.ColoredFormatter(
                fmt="%(log_color)s[landgit] <%(name)s> %(levelname)s:%(reset)s %(message)s",
                log_colors=LOG_COLORS,
            )
        )
    else:
        handler.setFormatter(logging.Formatter(_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)
