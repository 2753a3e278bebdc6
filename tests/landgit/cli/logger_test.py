"""Tests for the landgit.cli.logger module."""

import io
import logging

import colorlog
import pytest

from landgit.cli import logger


class _Terminal(io.StringIO):
    def isatty(self) -> bool:
        return True


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.parametrize(
    ("verbose", "expected_level"),
    [
        (True, logging.DEBUG),
        (False, logging.INFO),
    ],
)
def test_configure_sets_level_and_handler(
    verbose: bool, expected_level: int, restore_root_logger
) -> None:
    logger.configure_logging(verbose)

    root = restore_root_logger
    assert root.level == expected_level
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], logging.StreamHandler)


def test_no_color(monkeypatch: pytest.MonkeyPatch, restore_root_logger) -> None:
    monkeypatch.setenv("NO_COLOR", "1")
    logger.configure_logging(False)
    formatter = restore_root_logger.handlers[0].formatter
    assert not isinstance(formatter, colorlog.ColoredFormatter)


def test_color_on_terminal(monkeypatch: pytest.MonkeyPatch, restore_root_logger) -> None:
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.setattr(logger.sys, "stderr", _Terminal())
    logger.configure_logging(False)
    formatter = restore_root_logger.handlers[0].formatter
    assert isinstance(formatter, colorlog.ColoredFormatter)


@pytest.mark.parametrize(
    ("value", "expected"),
    [("", False), ("0", False), ("no", False), ("1", True), ("yes", True)],
)
def test_verbose_from_env(monkeypatch: pytest.MonkeyPatch, value: str, expected: bool) -> None:
    monkeypatch.setenv("LANDGIT_VERBOSE", value)
    assert logger.verbose_from_env() is expected
