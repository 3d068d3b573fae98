# ============================================================================
# CLAUDE CONTEXT - RETRY POLICY SERVICE
# ============================================================================
# STATUS: Core - shared by every Azure service wrapper
# PURPOSE: Bounded exponential backoff around arbitrary sync or async operations
# EXPORTS: RetryConfig, BackoffState, backoff_delay, RetryPolicyService
# DEPENDENCIES: util_logger, exceptions, config.defaults
# PATTERNS: Explicit bounded loop, immutable config swapped on reconfigure
# ENTRY_POINTS: RetryPolicyService.run / run_async / configure
# ============================================================================

"""
Retry Policy Service.

Runs an operation, and on failure retries it after an exponentially growing
delay until max_retries retries have been spent. The last failure is then
re-raised unchanged - there is no wrapping "retry exhausted" exception.

Delay after the n-th failure (n starting at 1):

    delay(n) = min(base_delay * (2**n - 1) / 2, max_delay)

with 2**n capped at 2**30. For base_delay=0.1s and max_delay=1s that gives
0.05s, 0.15s, 0.35s, 0.75s, 1s, 1s, ...

What is retried:
    - every Exception, except
    - NonRetryableError (and subclasses) and ContractViolationError, and
    - the exception types passed as non_retryable by the caller.
BaseExceptions such as asyncio.CancelledError and KeyboardInterrupt are
never caught, so cancelling a task interrupts the backoff sleep at once.

Concurrency:
    The executor holds no lock. configure() swaps in a new RetryConfig
    object; calls already in flight read the config again at their next
    backoff step and may observe either the old or the new values.
    BackoffState is created per call and never shared.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar, Union

from config.defaults import RetryDefaults
from exceptions import ContractViolationError, NonRetryableError
from util_logger import LoggerFactory, ComponentType

T = TypeVar("T")

# 2**30 is the largest multiplier ever applied to base_delay
MAX_POWER_EXPONENT = 30

_TERMINAL_ERRORS = (NonRetryableError, ContractViolationError)


@dataclass(frozen=True)
class RetryConfig:
    """Immutable backoff parameters. Delays are in seconds."""

    max_retries: int = RetryDefaults.MAX_RETRIES
    base_delay: float = RetryDefaults.DELAY_MS / 1000.0
    max_delay: float = RetryDefaults.MAX_DELAY_MS / 1000.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError(
                f"delays must be >= 0, got base_delay={self.base_delay} max_delay={self.max_delay}"
            )

    @classmethod
    def from_milliseconds(cls, max_retries: int, delay_ms: float, max_delay_ms: float) -> "RetryConfig":
        return cls(
            max_retries=max_retries,
            base_delay=delay_ms / 1000.0,
            max_delay=max_delay_ms / 1000.0,
        )


@dataclass
class BackoffState:
    """Per-call retry bookkeeping."""

    attempts: int = 0
    current_power: int = 1

    def advance(self) -> None:
        self.attempts += 1
        self.current_power = 2 ** min(self.attempts, MAX_POWER_EXPONENT)


def backoff_delay(state: BackoffState, config: RetryConfig) -> float:
    """Seconds to wait before the next attempt."""
    return min(config.base_delay * (state.current_power - 1) / 2, config.max_delay)


class RetryPolicyService:
    """
    Exponential backoff executor.

    Example:
        retry = RetryPolicyService(RetryConfig(max_retries=3))
        item = retry.run(lambda: container.read_item(item_id, partition_key=pk))

        # async
        item = await retry.run_async(lambda: container.read_item(item_id, partition_key=pk))

    sleep / async_sleep are injectable so tests can record delays instead
    of waiting.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        async_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str = "RetryPolicyService",
    ):
        self._config = config or RetryConfig()
        self._sleep = sleep
        self._async_sleep = async_sleep
        self.logger = LoggerFactory.create_logger(ComponentType.SERVICE, name)

    @classmethod
    def from_config(cls, retry_config, **kwargs) -> "RetryPolicyService":
        """Build from a config.RetryPolicyConfig (milliseconds)."""
        return cls(
            RetryConfig.from_milliseconds(
                retry_config.max_retries,
                retry_config.delay_ms,
                retry_config.max_delay_ms,
            ),
            **kwargs,
        )

    @property
    def config(self) -> RetryConfig:
        return self._config

    def configure(self, max_retries: int, base_delay: float, max_delay: float) -> None:
        """
        Replace the backoff parameters used by subsequent attempts.

        Args:
            max_retries: Retries after the first attempt
            base_delay: Base delay in seconds
            max_delay: Delay ceiling in seconds
        """
        self._config = RetryConfig(max_retries=max_retries, base_delay=base_delay, max_delay=max_delay)
        self.logger.debug(
            f"🔧 Retry policy reconfigured: max_retries={max_retries}, "
            f"base_delay={base_delay}s, max_delay={max_delay}s"
        )

    def run(
        self,
        operation: Callable[[], T],
        non_retryable: Tuple[Type[BaseException], ...] = (),
        operation_name: Optional[str] = None,
    ) -> T:
        """
        Run a no-argument callable under the retry policy.

        Returns:
            Whatever the operation returns on its first successful attempt

        Raises:
            The operation's last exception once retries are exhausted, or
            immediately for non-retryable failures
        """
        name = operation_name or _describe(operation)
        state = BackoffState()
        while True:
            try:
                return operation()
            except Exception as e:
                config = self._config
                if not self._can_retry(e, state, config, non_retryable, name):
                    raise
                state.advance()
                delay = backoff_delay(state, config)
                self._log_retry(e, state, config, delay, name)
            self._sleep(delay)

    async def run_async(
        self,
        operation: Callable[[], Union[Awaitable[T], T]],
        non_retryable: Tuple[Type[BaseException], ...] = (),
        operation_name: Optional[str] = None,
    ) -> T:
        """
        Async variant of run().

        The operation is called fresh on every attempt. A coroutine
        function, a lambda returning an awaitable, or a plain callable are
        all accepted. Backoff uses asyncio.sleep, so cancellation takes
        effect during the wait and is never retried.
        """
        name = operation_name or _describe(operation)
        state = BackoffState()
        while True:
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
                return result
            except Exception as e:
                config = self._config
                if not self._can_retry(e, state, config, non_retryable, name):
                    raise
                state.advance()
                delay = backoff_delay(state, config)
                self._log_retry(e, state, config, delay, name)
            await self._async_sleep(delay)

    def _can_retry(
        self,
        error: Exception,
        state: BackoffState,
        config: RetryConfig,
        non_retryable: Tuple[Type[BaseException], ...],
        name: str,
    ) -> bool:
        if isinstance(error, _TERMINAL_ERRORS) or (non_retryable and isinstance(error, non_retryable)):
            self.logger.debug(f"⛔ {name}: {type(error).__name__} is not retryable")
            return False
        if state.attempts >= config.max_retries:
            if config.max_retries > 0:
                self.logger.error(
                    f"❌ {name}: giving up after {state.attempts + 1} attempts: {type(error).__name__}: {error}",
                    extra={'custom_dimensions': {
                        'operation': name,
                        'attempts': state.attempts + 1,
                        'error_type': type(error).__name__,
                    }}
                )
            return False
        return True

    def _log_retry(self, error: Exception, state: BackoffState, config: RetryConfig, delay: float, name: str) -> None:
        self.logger.warning(
            f"🔄 {name}: attempt {state.attempts} of {config.max_retries + 1} failed "
            f"({type(error).__name__}: {error}), retrying in {delay:.3f}s",
            extra={'custom_dimensions': {
                'operation': name,
                'attempt': state.attempts,
                'max_retries': config.max_retries,
                'delay_seconds': delay,
                'error_type': type(error).__name__,
            }}
        )


def _describe(operation: Any) -> str:
    return getattr(operation, "__qualname__", None) or getattr(operation, "__name__", None) or repr(operation)


__all__ = [
    'MAX_POWER_EXPONENT',
    'RetryConfig',
    'BackoffState',
    'backoff_delay',
    'RetryPolicyService',
]
