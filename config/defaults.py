"""
Configuration Defaults - Single source of truth for all default values.

Organization:
    - RetryDefaults: Backoff policy shared by every wrapper
    - CosmosDefaults / StorageDefaults / ServiceBusDefaults: SDK wrapper knobs
    - AppInsightsDefaults / KeyVaultDefaults / DockerDefaults: Adapter settings
    - AppDefaults: Application-wide settings

Connection strings, URLs and credentials have NO defaults. Wrappers that
need them raise ConfigurationError at construction when they are missing.

Usage:
    from config.defaults import RetryDefaults

    # In Pydantic Field definitions:
    max_retries: int = Field(default=RetryDefaults.MAX_RETRIES, ...)
"""


# =============================================================================
# RETRY DEFAULTS
# =============================================================================

class RetryDefaults:
    """
    Exponential backoff defaults.

    Delays are kept in milliseconds in the environment and converted to
    seconds when the policy is built.
    """

    MAX_RETRIES = 2
    DELAY_MS = 100
    MAX_DELAY_MS = 1000

    # Upper bound accepted from the environment
    MAX_RETRIES_LIMIT = 50


# =============================================================================
# COSMOS DB DEFAULTS
# =============================================================================

class CosmosDefaults:
    """Cosmos DB wrapper defaults."""

    DEFAULT_PARTITION_KEY = "id"

    # -1 disables expiry on items that inherit the container default
    NO_EXPIRY = -1

    # Item property carrying per-document time to live
    TTL_PROPERTY = "ttl"


# =============================================================================
# STORAGE DEFAULTS
# =============================================================================

class StorageDefaults:
    """Blob and Table Storage defaults."""

    # Table Storage page size ceiling enforced by the service
    MAX_RECORDS_PER_PAGE = 1000

    # Blob tag used to find recently written blobs
    CREATED_TAG = "createdUtc"

    # find_blobs_by_tags result cap for cleanup
    CLEANUP_MAX_ITEMS = 1000

    # Block upload settings for SAS pushes
    BLOCK_SIZE_BYTES = 4 * 1024 * 1024
    MAX_UPLOAD_WORKERS = 8

    # SAS expiry when callers don't pass one
    SAS_EXPIRY_MINUTES = 60


# =============================================================================
# SERVICE BUS DEFAULTS
# =============================================================================

class ServiceBusDefaults:
    """Service Bus wrapper defaults."""

    MAX_WAIT_SECONDS = 20
    MAX_MESSAGE_COUNT = 10


# =============================================================================
# APPLICATION INSIGHTS DEFAULTS
# =============================================================================

class AppInsightsDefaults:
    """Application Insights telemetry and query defaults."""

    DEVELOPER_MODE = False
    QUERY_API_BASE = "https://api.applicationinsights.io/v1/apps"
    QUERY_SCOPE = "https://api.applicationinsights.io/.default"

    # ISO 8601 duration of the query window
    QUERY_TIMESPAN = "P7D"
    QUERY_TIMEOUT_SECONDS = 60


# =============================================================================
# KEY VAULT DEFAULTS
# =============================================================================

class KeyVaultDefaults:
    """Key Vault defaults."""

    URL_TEMPLATE = "https://{vault_name}.vault.azure.net/"


# =============================================================================
# CONTAINER INSTANCE DEFAULTS
# =============================================================================

class DockerDefaults:
    """Azure Container Instances defaults."""

    DEFAULT_MEMORY_GB = 2.0
    DEFAULT_CPU = 2.0
    OS_TYPE = "Linux"
    RESTART_POLICY = "Never"

    # Command line switch carrying the container size, e.g. "4GB-2vCPU"
    SIZE_ARGUMENT = "--containerinstanceservice"

    # Unknown-state groups older than this are treated as abandoned
    STALE_GROUP_HOURS = 24


# =============================================================================
# APPLICATION DEFAULTS
# =============================================================================

class AppDefaults:
    """Application-wide defaults."""

    ENVIRONMENT = "dev"
    LOG_LEVEL = "INFO"
