"""
Constants and enums for the WhatsApp bridge core.

This module centralizes all magic strings and constants used throughout
the package to ensure consistency and maintainability.
"""

from enum import Enum


class QueueName(str, Enum):
    """Standard queue names used by the package."""

    LOGS = "logs-queue"
    USAGE = "usage-queue"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    DATABASE_URL = "DATABASE_URL"
    LOG_LEVEL = "LOG_LEVEL"
    API_URL = "WPWA_API_URL"
    JWT_SECRET = "WPWA_JWT_SECRET"
    SITE_URL = "WPWA_SITE_URL"
    CONNECTION_TIMEOUT = "WPWA_CONNECTION_TIMEOUT"
    MAX_RETRIES = "WPWA_MAX_RETRIES"
    DEBUG_MODE = "WPWA_DEBUG_MODE"
    ALLOW_TRACKING = "WPWA_ALLOW_TRACKING"


class HttpMethod(str, Enum):
    """HTTP methods understood by the API client."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


# Methods whose payload travels in the query string rather than the body
QUERY_PAYLOAD_METHODS = frozenset({HttpMethod.GET, HttpMethod.DELETE})


class UsageEventType(str, Enum):
    """Usage accounting event types."""

    API_CALL = "api_call"
    SESSION_CREATED = "session_created"


class MetaKey(str, Enum):
    """Per-vendor meta keys backing the session record."""

    SESSION_CLIENT_ID = "session_client_id"
    SESSION_NAME = "session_name"
    SESSION_STATUS = "session_status"
    SESSION_CREATED = "session_created"
    DISCONNECTED_SESSIONS = "disconnected_sessions"


class OptionName(str, Enum):
    """Site-wide option names."""

    JWT_SECRET = "jwt_secret"
    API_CALL_STATS = "api_call_stats"
    SESSION_COUNT = "session_count"


DEFAULT_ALLOWED_ROLES = (
    "administrator",
    "shop_manager",
    "vendor",
    "wcfm_vendor",
    "seller",
    "dc_vendor",
    "wc_product_vendors_admin_vendor",
)


class Limits:
    """System limits and thresholds."""

    DEFAULT_MAX_RETRIES = 3
    DEFAULT_TIMEOUT_SECONDS = 30
    RETRY_DELAY_SECONDS = 1
    UPLOAD_TIMEOUT_MULTIPLIER = 2
    TOKEN_LIFETIME_SECONDS = 3600
    SECRET_LENGTH = 64
    DISCONNECTED_HISTORY_SIZE = 10
    USAGE_BATCH_SIZE = 10
    USAGE_QUEUE_TIMEOUT_SECONDS = 5


class Messages:
    """Fallback user-facing messages."""

    API_REQUEST_FAILED = "API request failed"
    API_UPLOAD_FAILED = "API upload request failed"
    TOKEN_GENERATION_FAILED = "Failed to generate authentication token"
    PARSE_FAILED = "Error parsing API response"
    FILE_NOT_FOUND = "File not found"
