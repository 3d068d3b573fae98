# ============================================================================
# APPLICATION INSIGHTS TELEMETRY SERVICE
# ============================================================================
# STATUS: Infrastructure - push telemetry to Application Insights
# PURPOSE: Exceptions, traces and HTTP requests as OpenTelemetry signals
# EXPORTS: AppInsightsTelemetryService, get_app_insights_telemetry_service
# DEPENDENCIES: azure-monitor-opentelemetry, opentelemetry-api, core.retry_policy
# ============================================================================
"""
Application Insights Telemetry Service.

Exceptions and HTTP requests become spans, traces become log records routed
to Azure Monitor through the OpenTelemetry logging handler. Every item is
stamped with CallerId / CallerEnvironment from AppInsightsConfig.

Telemetry never breaks the caller: each add_* call runs under the retry
policy and returns False (after logging) when it still fails.

Usage:
    telemetry = RepositoryFactory.create_app_insights_telemetry_service()
    telemetry.add_trace("order imported", {"OrderId": "42"})
    try:
        ...
    except Exception as e:
        telemetry.add_error(e, {"Stage": "import"})

Environment Variables:
    APPLICATIONINSIGHTS_CONNECTION_STRING: Required unless a tracer is injected
    APPINSIGHTS_DEVELOPER_MODE: "true" flushes after every item
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from azure.monitor.opentelemetry import configure_azure_monitor
from opentelemetry import trace
from opentelemetry._logs import get_logger_provider
from opentelemetry.trace import SpanKind, Status, StatusCode

from config import get_config, AppInsightsConfig
from core.retry_policy import RetryPolicyService
from exceptions import ConfigurationError
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "AppInsightsTelemetryService")

# Log records on this logger are exported as Application Insights traces
TELEMETRY_LOGGER_NAME = "appinsights.telemetry"

_monitor_lock = threading.Lock()
_monitor_configured = False


def _configure_azure_monitor(connection_string: str) -> None:
    """Install the Azure Monitor exporters once per process."""
    global _monitor_configured
    with _monitor_lock:
        if _monitor_configured:
            return
        configure_azure_monitor(
            connection_string=connection_string,
            logger_name=TELEMETRY_LOGGER_NAME,
        )
        _monitor_configured = True
        logger.info("📡 Azure Monitor OpenTelemetry configured")


def _flush_providers() -> None:
    for provider in (trace.get_tracer_provider(), get_logger_provider()):
        force_flush = getattr(provider, "force_flush", None)
        if force_flush is not None:
            force_flush()


def _to_epoch_ns(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1_000_000_000)


class AppInsightsTelemetryService:
    """
    Sends telemetry to Application Insights.

    tracer, telemetry_logger and flush default to the process-wide
    OpenTelemetry providers; tests inject doubles.
    """

    def __init__(
        self,
        config: Optional[AppInsightsConfig] = None,
        retry_policy: Optional[RetryPolicyService] = None,
        tracer: Optional[trace.Tracer] = None,
        telemetry_logger: Optional[logging.Logger] = None,
        flush: Optional[Callable[[], None]] = None,
    ):
        self.config = config or get_config().app_insights

        if tracer is None:
            if not self.config.connection_string:
                raise ConfigurationError(
                    "APPLICATIONINSIGHTS_CONNECTION_STRING is required for AppInsightsTelemetryService"
                )
            _configure_azure_monitor(self.config.connection_string)
            tracer = trace.get_tracer(__name__)

        self.tracer = tracer
        self.telemetry_logger = telemetry_logger or logging.getLogger(TELEMETRY_LOGGER_NAME)
        self._flush = flush or _flush_providers
        self.retry_policy = retry_policy or RetryPolicyService.from_config(
            get_config().retry, name="AppInsightsTelemetryService.retry"
        )

    def configure_retry_policy(self, max_retries: int, base_delay: float, max_delay: float) -> None:
        self.retry_policy.configure(max_retries, base_delay, max_delay)

    def _properties(self, properties: Optional[Mapping[str, Any]]) -> Dict[str, str]:
        stamped = {key: str(value) for key, value in (properties or {}).items()}
        if self.config.caller_id:
            stamped.setdefault("CallerId", self.config.caller_id)
        if self.config.caller_environment:
            stamped.setdefault("CallerEnvironment", self.config.caller_environment)
        return stamped

    def _track(self, kind: str, send: Callable[[], None]) -> bool:
        def _send_and_flush() -> None:
            send()
            if self.config.developer_mode:
                self._flush()

        try:
            self.retry_policy.run(_send_and_flush, operation_name=f"telemetry {kind}")
            return True
        except Exception as e:
            logger.error(f"❌ Failed to send {kind} telemetry: {e}")
            return False

    def add_error(self, exception: BaseException, properties: Optional[Mapping[str, Any]] = None) -> bool:
        """Record an exception. Returns False if it could not be sent."""
        attributes = self._properties(properties)

        def _send() -> None:
            with self.tracer.start_as_current_span("exception", attributes=attributes) as span:
                span.record_exception(exception, attributes=attributes)
                span.set_status(Status(StatusCode.ERROR, str(exception)))

        return self._track("exception", _send)

    def add_trace(self, message: str, properties: Optional[Mapping[str, Any]] = None) -> bool:
        """Record an informational trace message."""
        attributes = self._properties(properties)
        return self._track("trace", lambda: self.telemetry_logger.info(message, extra=attributes))

    def add_http_request(
        self,
        name: str,
        start_time: datetime,
        duration: timedelta,
        response_code: str,
        success: bool,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Record a completed HTTP request as a server span.

        The span is back-dated to start_time and ended at start_time + duration.
        """
        attributes = self._properties(properties)
        attributes["http.status_code"] = str(response_code)
        start_ns = _to_epoch_ns(start_time)
        end_ns = start_ns + int(duration.total_seconds() * 1_000_000_000)

        def _send() -> None:
            span = self.tracer.start_span(
                name,
                kind=SpanKind.SERVER,
                attributes=attributes,
                start_time=start_ns,
            )
            span.set_status(Status(StatusCode.OK if success else StatusCode.ERROR))
            span.end(end_time=end_ns)

        return self._track("request", _send)


def get_app_insights_telemetry_service() -> AppInsightsTelemetryService:
    """Factory function for dependency injection."""
    return AppInsightsTelemetryService()


__all__ = ['AppInsightsTelemetryService', 'get_app_insights_telemetry_service', 'TELEMETRY_LOGGER_NAME']
