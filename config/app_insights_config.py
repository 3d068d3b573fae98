"""
Application Insights Configuration.

Covers both directions of Application Insights traffic:
    - Telemetry export (connection string, developer mode, caller identity)
    - Log Analytics queries against the REST API (one app id per resource type)

Environment Variables:
    APPLICATIONINSIGHTS_CONNECTION_STRING = InstrumentationKey=...;IngestionEndpoint=...
    APPINSIGHTS_DEVELOPER_MODE            = false
    APPINSIGHTS_CALLER_ID                 = order-service
    APPINSIGHTS_CALLER_ENVIRONMENT        = dev
    APPINSIGHTS_API_APP_ID                = <app id of the API resource>
    APPINSIGHTS_WEBJOB_APP_ID             = <app id of the webjob resource>

Exports:
    AppInsightsConfig: Pydantic configuration model
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from .defaults import AppInsightsDefaults


class AppInsightsConfig(BaseModel):
    """
    Application Insights telemetry and query configuration.
    """

    connection_string: Optional[str] = Field(
        default=None,
        repr=False,
        description="Application Insights connection string used by the Azure Monitor exporter"
    )

    developer_mode: bool = Field(
        default=AppInsightsDefaults.DEVELOPER_MODE,
        description="Flush after every telemetry item so local runs show up immediately"
    )

    caller_id: Optional[str] = Field(
        default=None,
        description="Stamped on every telemetry item as CallerId"
    )

    caller_environment: Optional[str] = Field(
        default=None,
        description="Stamped on every telemetry item as CallerEnvironment"
    )

    api_app_id: Optional[str] = Field(
        default=None,
        description="Application Insights app id queried for ResourceType.API"
    )

    webjob_app_id: Optional[str] = Field(
        default=None,
        description="Application Insights app id queried for ResourceType.WEBJOB"
    )

    query_timespan: str = Field(
        default=AppInsightsDefaults.QUERY_TIMESPAN,
        description="ISO 8601 duration limiting query results"
    )

    @classmethod
    def from_environment(cls) -> "AppInsightsConfig":
        """Load from environment variables."""
        return cls(
            connection_string=os.environ.get("APPLICATIONINSIGHTS_CONNECTION_STRING"),
            developer_mode=os.environ.get(
                "APPINSIGHTS_DEVELOPER_MODE", str(AppInsightsDefaults.DEVELOPER_MODE).lower()
            ).lower() == "true",
            caller_id=os.environ.get("APPINSIGHTS_CALLER_ID"),
            caller_environment=os.environ.get("APPINSIGHTS_CALLER_ENVIRONMENT"),
            api_app_id=os.environ.get("APPINSIGHTS_API_APP_ID"),
            webjob_app_id=os.environ.get("APPINSIGHTS_WEBJOB_APP_ID"),
            query_timespan=os.environ.get("APPINSIGHTS_QUERY_TIMESPAN", AppInsightsDefaults.QUERY_TIMESPAN),
        )

    def debug_dict(self) -> dict:
        return {
            "connection_string": "***MASKED***" if self.connection_string else None,
            "developer_mode": self.developer_mode,
            "caller_id": self.caller_id,
            "caller_environment": self.caller_environment,
            "api_app_id": self.api_app_id,
            "webjob_app_id": self.webjob_app_id,
            "query_timespan": self.query_timespan,
        }
