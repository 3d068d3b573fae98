"""
util_logger tests - JSON output, component dimensions, levels, log_exceptions.
"""

import asyncio
import json
import logging

import pytest

from util_logger import ComponentType, JSONFormatter, LoggerFactory, LogLevel, log_exceptions


class ListHandler(logging.Handler):
    """Collects formatted records."""

    def __init__(self):
        super().__init__()
        self.setFormatter(JSONFormatter())
        self.lines = []

    def emit(self, record):
        self.lines.append(json.loads(self.format(record)))


@pytest.fixture
def capture():
    handlers = []

    def attach(logger):
        handler = ListHandler()
        logger.addHandler(handler)
        handlers.append((logger, handler))
        return handler

    yield attach
    for logger, handler in handlers:
        logger.removeHandler(handler)


class TestLogLevel:

    @pytest.mark.parametrize("raw,expected", [("debug", LogLevel.DEBUG), (" Warning ", LogLevel.WARNING), ("loud", LogLevel.INFO), (None, LogLevel.INFO)])
    def test_from_string(self, raw, expected):
        assert LogLevel.from_string(raw) is expected

    def test_log_level_env(self, monkeypatch):
        monkeypatch.delenv("DEBUG_LOGGING", raising=False)
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert LogLevel.from_environment() is LogLevel.ERROR

    def test_debug_logging_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        monkeypatch.setenv("DEBUG_LOGGING", "true")
        assert LogLevel.from_environment() is LogLevel.DEBUG


class TestLoggerFactory:

    def test_name_and_single_json_handler(self):
        logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "LoggerTestRepo")
        LoggerFactory.create_logger(ComponentType.REPOSITORY, "LoggerTestRepo")
        assert logger.name == "repository.LoggerTestRepo"
        assert sum(isinstance(h.formatter, JSONFormatter) for h in logger.handlers) == 1

    def test_explicit_level(self):
        logger = LoggerFactory.create_logger(ComponentType.SERVICE, "LoggerTestLevel", level=LogLevel.WARNING)
        assert logger.level == logging.WARNING

    def test_default_level_from_environment(self, monkeypatch):
        monkeypatch.delenv("DEBUG_LOGGING", raising=False)
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "LoggerTestEnvLevel")
        assert logger.level == logging.ERROR
        assert not hasattr(LoggerFactory, "LEVEL_OVERRIDES")

    def test_component_dimensions_merged(self, capture):
        logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "LoggerTestDims", level=LogLevel.DEBUG)
        handler = capture(logger)

        logger.info("sent", extra={'custom_dimensions': {'queue': 'orders'}})

        (line,) = handler.lines
        assert line["message"] == "sent"
        assert line["level"] == "INFO"
        assert line["customDimensions"] == {
            'component_type': 'adapter',
            'component_name': 'LoggerTestDims',
            'queue': 'orders',
        }


class TestLogExceptions:

    def test_sync_failure_logged_and_reraised(self, capture):
        logger = LoggerFactory.create_logger(ComponentType.SERVICE, "LoggerTestSync", level=LogLevel.DEBUG)
        handler = capture(logger)

        @log_exceptions(logger=logger)
        def explode(value):
            raise ValueError(f"bad {value}")

        with pytest.raises(ValueError):
            explode(3)

        (line,) = handler.lines
        assert line["level"] == "ERROR"
        assert line["customDimensions"]["function_name"] == "explode"
        assert line["customDimensions"]["exception_type"] == "ValueError"
        assert line["exception"]["message"] == "bad 3"

    def test_async_failure_logged_and_reraised(self, capture):
        logger = LoggerFactory.create_logger(ComponentType.SERVICE, "LoggerTestAsync", level=LogLevel.DEBUG)
        handler = capture(logger)

        @log_exceptions(logger=logger)
        async def explode():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            asyncio.run(explode())
        assert handler.lines[0]["customDimensions"]["function_name"] == "explode"

    def test_success_passes_through(self):
        @log_exceptions(ComponentType.SERVICE, "LoggerTestOk")
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
