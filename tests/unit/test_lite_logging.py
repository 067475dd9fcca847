"""Unit tests for happenings.lite_logging."""

import logging
from collections.abc import Generator
from typing import Any

import pytest
from colorlog import ColoredFormatter

from happenings.lite_logging import HAPPENINGS_MODULES, build_console_handler, configure_logging

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_logging_state() -> Generator[None, Any, None]:
    """Put root and package logger levels and handlers back after each test."""
    root = logging.getLogger()
    saved_level = root.level
    saved_handlers = list(root.handlers)
    saved_module_levels = {name: logging.getLogger(name).level for name in HAPPENINGS_MODULES}
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    for name, level in saved_module_levels.items():
        logging.getLogger(name).setLevel(level)


class TestConfigureLogging:
    def test_default_is_info(self):
        assert configure_logging() == logging.INFO
        assert logging.getLogger("happenings.domain.timeline_builder").level == logging.INFO

    def test_debug_mode(self):
        assert configure_logging(debug_mode=True) == logging.DEBUG
        assert logging.getLogger("happenings").level == logging.DEBUG

    @pytest.mark.parametrize("value", ["1", "true", "YES", "on"])
    def test_env_debug(self, monkeypatch, value):
        monkeypatch.setenv("HAPPENINGS_DEBUG", value)

        assert configure_logging() == logging.DEBUG

    def test_force_debug_overrides_env(self, monkeypatch):
        monkeypatch.setenv("HAPPENINGS_DEBUG", "1")

        assert configure_logging(force_debug=False) == logging.INFO

    def test_env_log_level_overrides_root(self, monkeypatch):
        monkeypatch.setenv("HAPPENINGS_LOG_LEVEL", "warning")

        assert configure_logging(debug_mode=True) == logging.WARNING
        assert logging.getLogger().level == logging.WARNING

    def test_invalid_env_log_level_is_ignored(self, monkeypatch):
        monkeypatch.setenv("HAPPENINGS_LOG_LEVEL", "LOUD")

        assert configure_logging() == logging.INFO

    def test_existing_handlers_are_kept(self):
        root = logging.getLogger()
        sentinel = logging.NullHandler()
        root.handlers[:] = [sentinel]

        configure_logging()

        assert root.handlers == [sentinel]

    def test_adds_colored_handler_when_none(self):
        root = logging.getLogger()
        root.handlers[:] = []

        configure_logging()

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, ColoredFormatter)


def test_build_console_handler_format():
    handler = build_console_handler(logging.WARNING)

    assert handler.level == logging.WARNING
    assert isinstance(handler.formatter, ColoredFormatter)
