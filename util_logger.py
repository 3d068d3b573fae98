"""
Unified Logger System.

JSON-only structured logging for the Azure service wrappers, shaped so that
Application Insights can parse customDimensions straight off stdout.

Every record carries component_type / component_name in customDimensions;
callers add their own through extra={'custom_dimensions': {...}}.

Levels:
    LOG_LEVEL (the same variable AppConfig.log_level reads) sets the level
    of every component logger, default INFO. DEBUG_LOGGING=true forces DEBUG.

Exports:
    ComponentType: Enum for component types
    LogLevel: Enum for log levels
    JSONFormatter: Formatter emitting one JSON object per record
    LoggerFactory: Factory for creating loggers
    log_exceptions: Exception logging decorator (sync and async)

Dependencies:
    Standard library only (logging, enum, json)
"""

from enum import Enum
from typing import Optional
from datetime import datetime, timezone
import inspect
import logging
import sys
import os
import json
import traceback
from functools import wraps


# ============================================================================
# COMPONENT TYPES - Aligned with the wrapper layers
# ============================================================================

class ComponentType(Enum):
    """
    Component types aligned with the library layers.
    """
    SERVICE = "service"        # Retry / optimistic patch core
    REPOSITORY = "repository"  # Azure SDK wrappers and record stores
    FACTORY = "factory"        # Object creation layer
    ADAPTER = "adapter"        # Telemetry and query integrations
    CONFIG = "config"          # Configuration loading


# ============================================================================
# LOG LEVELS - Standard Python levels with enum safety
# ============================================================================

class LogLevel(Enum):
    """
    Standard Python log levels as enum for type safety.
    """
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_python_level(self) -> int:
        """Convert to Python logging level constant."""
        return getattr(logging, self.value)

    @classmethod
    def from_string(cls, level: Optional[str], default: 'LogLevel' = None) -> 'LogLevel':
        """Create from string, case-insensitive; unknown names give default (INFO)."""
        try:
            return cls[(level or "").strip().upper()]
        except KeyError:
            return default or cls.INFO

    @classmethod
    def from_environment(cls) -> 'LogLevel':
        if os.getenv('DEBUG_LOGGING', '').lower() == 'true':
            return cls.DEBUG
        return cls.from_string(os.getenv('LOG_LEVEL'))


# ============================================================================
# JSON FORMATTER - Structured logging for Application Insights
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    Outputs logs in a format that Application Insights can automatically parse.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON for Application Insights.

        Args:
            record: Python LogRecord to format

        Returns:
            JSON string with structured log data
        """
        log_obj = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name,
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if hasattr(record, 'custom_dimensions'):
            log_obj['customDimensions'] = record.custom_dimensions

        if record.exc_info:
            log_obj['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info)
            }

        return json.dumps(log_obj, default=str)


# ============================================================================
# LOGGER FACTORY - Creates component-specific loggers
# ============================================================================

class LoggerFactory:
    """
    Factory for creating component-specific loggers.

    Example:
        logger = LoggerFactory.create_logger(
            ComponentType.REPOSITORY,
            "CosmosDbRepository"
        )
        logger.info("Upserting document")
    """

    @classmethod
    def create_logger(
        cls,
        component_type: ComponentType,
        name: str,
        level: Optional[LogLevel] = None
    ) -> logging.Logger:
        """
        Create a logger for a specific component.

        Args:
            component_type: Type of component
            name: Component name (e.g., "CosmosDbRepository")
            level: Explicit level; defaults to LogLevel.from_environment()

        Returns:
            Configured Python logger named "<component_type>.<name>"
        """
        log_level = (level or LogLevel.from_environment()).to_python_level()

        logger_name = f"{component_type.value}.{name}"
        logger = logging.getLogger(logger_name)
        logger.setLevel(log_level)

        # One JSON handler per logger, however often create_logger is called
        json_handlers = [h for h in logger.handlers if isinstance(h.formatter, JSONFormatter)]
        if json_handlers:
            for handler in json_handlers:
                handler.setLevel(log_level)
        else:
            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(log_level)
            handler.setFormatter(JSONFormatter())
            logger.addHandler(handler)

        # Root logger may carry the Azure Monitor handler
        logger.propagate = True

        if not hasattr(logger, '_context_wrapped'):
            original_log = logger._log

            def log_with_context(level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=1):
                """Wrapper to inject component identity as custom dimensions."""
                extra = dict(extra or {})
                custom_dims = {
                    'component_type': component_type.value,
                    'component_name': name,
                }
                custom_dims.update(extra.get('custom_dimensions') or {})
                extra['custom_dimensions'] = custom_dims

                original_log(level, msg, args, exc_info=exc_info, extra=extra,
                             stack_info=stack_info, stacklevel=stacklevel + 1)

            logger._log = log_with_context
            logger._context_wrapped = True

        return logger


# ============================================================================
# EXCEPTION DECORATOR - Automatic exception logging with context
# ============================================================================

def log_exceptions(component_type: Optional[ComponentType] = None,
                   component_name: Optional[str] = None,
                   logger: Optional[logging.Logger] = None):
    """
    Decorator to automatically log exceptions with full context.

    Works on plain functions and on coroutine functions. The exception is
    always re-raised.

    Can be used in three ways:
    1. With existing logger: @log_exceptions(logger=my_logger)
    2. With component info: @log_exceptions(ComponentType.REPOSITORY, "BlobStorage")
    3. Simple: @log_exceptions() - uses function module and name

    Example:
        @log_exceptions(ComponentType.ADAPTER, "AppInsightsQueryService")
        def run_query(self, query, resource_type):
            ...
    """
    def decorator(func):
        def _resolve_logger():
            if logger:
                return logger
            if component_type and component_name:
                return LoggerFactory.create_logger(component_type, component_name)
            return LoggerFactory.create_logger(
                ComponentType.SERVICE,
                func.__module__ or "unknown"
            )

        def _log_failure(e: Exception, args, kwargs):
            _resolve_logger().error(
                f"Exception in {func.__name__}",
                exc_info=True,
                extra={
                    'custom_dimensions': {
                        'function_name': func.__name__,
                        'function_module': func.__module__,
                        'exception_type': type(e).__name__,
                        'exception_message': str(e),
                        'function_args': str(args)[:500],
                        'function_kwargs': str(kwargs)[:500],
                        'traceback': traceback.format_exc()
                    }
                }
            )

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    _log_failure(e, args, kwargs)
                    raise
            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                _log_failure(e, args, kwargs)
                raise
        return wrapper
    return decorator
