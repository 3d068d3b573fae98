"""
AppInsightsTelemetryService tests against an in-memory OpenTelemetry tracer.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind, StatusCode

from config import AppInsightsConfig
from exceptions import ConfigurationError
from infrastructure.appinsights_telemetry import AppInsightsTelemetryService


@pytest.fixture
def exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer(exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return provider.get_tracer("tests")


@pytest.fixture
def telemetry_logger():
    return MagicMock(name="telemetry_logger")


@pytest.fixture
def flush():
    return MagicMock(name="flush")


def make_service(tracer, telemetry_logger, flush, retry_policy, **config):
    config.setdefault("caller_id", "order-importer")
    config.setdefault("caller_environment", "test")
    return AppInsightsTelemetryService(
        config=AppInsightsConfig(**config),
        retry_policy=retry_policy,
        tracer=tracer,
        telemetry_logger=telemetry_logger,
        flush=flush,
    )


@pytest.fixture
def telemetry(tracer, telemetry_logger, flush, retry_policy):
    return make_service(tracer, telemetry_logger, flush, retry_policy)


def test_connection_string_required_without_tracer(retry_policy):
    with pytest.raises(ConfigurationError):
        AppInsightsTelemetryService(config=AppInsightsConfig(), retry_policy=retry_policy)


class TestAddError:

    def test_exception_recorded_on_span(self, telemetry, exporter):
        assert telemetry.add_error(ValueError("bad row"), {"Stage": "import", "Row": 7}) is True

        (span,) = exporter.get_finished_spans()
        assert span.name == "exception"
        assert span.status.status_code == StatusCode.ERROR
        assert span.attributes["Stage"] == "import"
        assert span.attributes["Row"] == "7"
        assert span.attributes["CallerId"] == "order-importer"
        assert span.attributes["CallerEnvironment"] == "test"

        (event,) = span.events
        assert event.name == "exception"
        assert event.attributes["exception.type"] == "ValueError"
        assert event.attributes["exception.message"] == "bad row"

    def test_caller_properties_not_overridden(self, telemetry, exporter):
        telemetry.add_error(ValueError("x"), {"CallerId": "explicit"})
        assert exporter.get_finished_spans()[0].attributes["CallerId"] == "explicit"


class TestAddTrace:

    def test_logged_with_stamped_properties(self, telemetry, telemetry_logger):
        assert telemetry.add_trace("order imported", {"OrderId": 42}) is True
        telemetry_logger.info.assert_called_once_with(
            "order imported",
            extra={"OrderId": "42", "CallerId": "order-importer", "CallerEnvironment": "test"},
        )

    def test_no_caller_stamp_when_unset(self, tracer, telemetry_logger, flush, retry_policy):
        telemetry = make_service(tracer, telemetry_logger, flush, retry_policy, caller_id=None, caller_environment=None)
        telemetry.add_trace("hello")
        telemetry_logger.info.assert_called_once_with("hello", extra={})

    def test_failure_returns_false_after_retries(self, telemetry, telemetry_logger):
        telemetry_logger.info.side_effect = RuntimeError("exporter down")
        assert telemetry.add_trace("order imported") is False
        assert telemetry_logger.info.call_count == 3


class TestAddHttpRequest:

    def test_server_span_backdated(self, telemetry, exporter):
        start = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert telemetry.add_http_request("GET /orders", start, timedelta(milliseconds=250), "200", True) is True

        (span,) = exporter.get_finished_spans()
        assert span.name == "GET /orders"
        assert span.kind == SpanKind.SERVER
        assert span.start_time == int(start.timestamp() * 1_000_000_000)
        assert span.end_time - span.start_time == 250_000_000
        assert span.attributes["http.status_code"] == "200"
        assert span.status.status_code == StatusCode.OK

    def test_failed_request_marked_error(self, telemetry, exporter):
        start = datetime(2025, 3, 1, 12, 0, 0)
        telemetry.add_http_request("POST /orders", start, timedelta(seconds=1), 500, False)
        (span,) = exporter.get_finished_spans()
        assert span.status.status_code == StatusCode.ERROR
        assert span.attributes["http.status_code"] == "500"


class TestDeveloperMode:

    def test_flush_after_each_item(self, tracer, telemetry_logger, flush, retry_policy):
        telemetry = make_service(tracer, telemetry_logger, flush, retry_policy, developer_mode=True)
        telemetry.add_trace("one")
        telemetry.add_error(ValueError("two"))
        assert flush.call_count == 2

    def test_no_flush_by_default(self, telemetry, flush):
        telemetry.add_trace("one")
        flush.assert_not_called()
