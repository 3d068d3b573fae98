# ============================================================================
# APPLICATION INSIGHTS QUERY SERVICE
# ============================================================================
# STATUS: Infrastructure - KQL queries against the App Insights REST API
# PURPOSE: Read back telemetry of the API or webjob resource
# EXPORTS: AppInsightsQueryService, ResourceType, get_app_insights_query_service
# DEPENDENCIES: azure.identity, requests, core.retry_policy
# ============================================================================
"""
Application Insights Query Service.

Runs KQL against the Application Insights REST API. Each resource type maps
to its own app id (APPINSIGHTS_API_APP_ID / APPINSIGHTS_WEBJOB_APP_ID) and
queries cover the last 7 days unless APPINSIGHTS_QUERY_TIMESPAN says
otherwise.

Usage:
    queries = RepositoryFactory.create_app_insights_query_service()
    rows = queries.run_query(
        "exceptions | where timestamp >= ago(1h) | take 100",
        ResourceType.API,
    )
    # rows is a list of dicts keyed by column name, or None when empty
"""

from enum import Enum
from typing import Any, Dict, List, Optional

import requests
from azure.core.credentials import TokenCredential
from azure.identity import DefaultAzureCredential

from config import get_config, AppInsightsConfig
from config.defaults import AppInsightsDefaults
from core.retry_policy import RetryPolicyService
from exceptions import ConfigurationError
from util_logger import LoggerFactory, ComponentType, log_exceptions

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "AppInsightsQueryService")


class ResourceType(Enum):
    """Application Insights resource a query runs against."""
    API = "api"
    WEBJOB = "webjob"


class AppInsightsQueryService:
    """
    Query Application Insights logs.

    Uses Azure AD authentication via DefaultAzureCredential unless a
    credential is injected.
    """

    def __init__(
        self,
        config: Optional[AppInsightsConfig] = None,
        retry_policy: Optional[RetryPolicyService] = None,
        credential: Optional[TokenCredential] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or get_config().app_insights
        self.retry_policy = retry_policy or RetryPolicyService.from_config(
            get_config().retry, name="AppInsightsQueryService.retry"
        )
        self._credential = credential
        self._session = session or requests.Session()

    def configure_retry_policy(self, max_retries: int, base_delay: float, max_delay: float) -> None:
        self.retry_policy.configure(max_retries, base_delay, max_delay)

    def _get_credential(self) -> TokenCredential:
        """Get or create Azure credential."""
        if self._credential is None:
            self._credential = DefaultAzureCredential()
        return self._credential

    def _get_access_token(self) -> str:
        token = self._get_credential().get_token(AppInsightsDefaults.QUERY_SCOPE)
        return token.token

    def _app_id(self, resource_type: ResourceType) -> str:
        if resource_type is ResourceType.API:
            app_id = self.config.api_app_id
        elif resource_type is ResourceType.WEBJOB:
            app_id = self.config.webjob_app_id
        else:
            raise ValueError(f"Unsupported resource type: {resource_type}")

        if not app_id:
            raise ConfigurationError(f"No Application Insights app id configured for {resource_type.name}")
        return app_id

    @log_exceptions(ComponentType.ADAPTER, "AppInsightsQueryService")
    def run_query(self, query: str, resource_type: ResourceType) -> Optional[List[Dict[str, Any]]]:
        """
        Run a KQL query.

        Args:
            query: KQL query string
            resource_type: Which resource to query

        Returns:
            One dict per row keyed by column name, or None when the query
            returned no rows

        Raises:
            ConfigurationError: No app id for the resource type
            requests.HTTPError: The API kept answering with an error status
        """
        url = f"{AppInsightsDefaults.QUERY_API_BASE}/{self._app_id(resource_type)}/query"

        def _post() -> Dict[str, Any]:
            response = self._session.post(
                url,
                headers={
                    "Authorization": f"Bearer {self._get_access_token()}",
                    "Content-Type": "application/json",
                },
                params={"timespan": self.config.query_timespan},
                json={"query": query},
                timeout=AppInsightsDefaults.QUERY_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            return response.json()

        data = self.retry_policy.run(_post, operation_name=f"appinsights query {resource_type.value}")

        tables = data.get("tables", [])
        if not tables:
            return None

        table = tables[0]
        columns = [col["name"] for col in table.get("columns", [])]
        rows = table.get("rows", [])
        logger.debug(f"Query on {resource_type.value} returned {len(rows)} rows")
        if not rows:
            return None
        return [dict(zip(columns, row)) for row in rows]


def get_app_insights_query_service() -> AppInsightsQueryService:
    """Factory function for dependency injection."""
    return AppInsightsQueryService()


__all__ = ['AppInsightsQueryService', 'ResourceType', 'get_app_insights_query_service']
