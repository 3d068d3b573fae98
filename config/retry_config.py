"""
Retry Policy Configuration.

Backoff settings shared by every service wrapper. Values are in
milliseconds; RetryPolicyService.from_config converts them to seconds.

Environment Variables:
    RETRY_POLICY_MAX_RETRIES   = 2
    RETRY_POLICY_DELAY_MS      = 100
    RETRY_POLICY_MAX_DELAY_MS  = 1000

Exports:
    RetryPolicyConfig: Pydantic retry configuration model
"""

import os
from pydantic import BaseModel, Field, model_validator

from .defaults import RetryDefaults


class RetryPolicyConfig(BaseModel):
    """
    Exponential backoff configuration.

    delay(n) = min(delay_ms * (2**n - 1) / 2, max_delay_ms)
    """

    max_retries: int = Field(
        default=RetryDefaults.MAX_RETRIES,
        ge=0,
        le=RetryDefaults.MAX_RETRIES_LIMIT,
        description="Retries after the first attempt (0 = single attempt)"
    )

    delay_ms: int = Field(
        default=RetryDefaults.DELAY_MS,
        ge=0,
        description="Base backoff delay in milliseconds"
    )

    max_delay_ms: int = Field(
        default=RetryDefaults.MAX_DELAY_MS,
        ge=0,
        description="Ceiling applied to every computed delay, in milliseconds"
    )

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> "RetryPolicyConfig":
        if self.max_delay_ms < self.delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= delay_ms ({self.delay_ms})"
            )
        return self

    @classmethod
    def from_environment(cls) -> "RetryPolicyConfig":
        """Load from environment variables."""
        return cls(
            max_retries=int(os.environ.get("RETRY_POLICY_MAX_RETRIES", str(RetryDefaults.MAX_RETRIES))),
            delay_ms=int(os.environ.get("RETRY_POLICY_DELAY_MS", str(RetryDefaults.DELAY_MS))),
            max_delay_ms=int(os.environ.get("RETRY_POLICY_MAX_DELAY_MS", str(RetryDefaults.MAX_DELAY_MS))),
        )

    def debug_dict(self) -> dict:
        """Return safe debug representation."""
        return {
            "max_retries": self.max_retries,
            "delay_ms": self.delay_ms,
            "max_delay_ms": self.max_delay_ms,
        }
