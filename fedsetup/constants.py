"""Shared enumerations and constants for the federation setup workflow."""

from __future__ import annotations

from enum import Enum


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"


class CompletionType(str, Enum):
    USER_MARKED = "user-marked"
    SERVER_VERIFIED = "server-verified"


class Provider(str, Enum):
    GOOGLE = "google"
    MICROSOFT = "microsoft"


class Automatability(str, Enum):
    AUTOMATED = "automated"
    SUPERVISED = "supervised"
    MANUAL = "manual"


class StepErrorCode(str, Enum):
    """Codes surfaced to callers through structured step results."""

    AUTH_EXPIRED = "AUTH_EXPIRED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    MISSING_CONFIG = "MISSING_CONFIG"
    MISSING_DEPENDENCY = "MISSING_DEPENDENCY"
    NO_EXECUTE_FUNCTION = "NO_EXECUTE_FUNCTION"
    API_NOT_ENABLED = "API_NOT_ENABLED"
    NO_SESSION = "NO_SESSION"
    REFRESH_TOKEN_ERROR = "REFRESH_TOKEN_ERROR"
    AUTH_MISSING = "AUTH_MISSING"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    API_ERROR = "API_ERROR"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    SAML_PROFILE_FETCH_FAILED = "SAML_PROFILE_FETCH_FAILED"
    SAML_PROFILE_MISSING_DETAILS = "SAML_PROFILE_MISSING_DETAILS"
    GOOGLE_AUTH_REQUIRED = "GOOGLE_AUTH_REQUIRED"
    MS_AUTH_REQUIRED = "MS_AUTH_REQUIRED"


class OutputKeys:
    """Keys of the shared outputs map.

    The prefix names the step that normally produces the value (``g1`` is
    G-1, ``m8`` is M-8) so keys never collide across steps.
    """

    # G-1
    AUTOMATION_OU_ID = "g1AutomationOuId"
    AUTOMATION_OU_PATH = "g1AutomationOuPath"
    # G-2
    SERVICE_ACCOUNT_EMAIL = "g2ServiceAccountEmail"
    SERVICE_ACCOUNT_ID = "g2ServiceAccountId"
    # G-3
    SUPER_ADMIN_ROLE_ID = "g3SuperAdminRoleId"
    # G-4
    GOOGLE_CUSTOMER_ID = "g4CustomerId"
    # G-5
    GOOGLE_SAML_PROFILE_NAME = "g5GoogleSsoProfileName"
    GOOGLE_SAML_PROFILE_FULL_NAME = "g5GoogleSsoProfileFullName"
    GOOGLE_SAML_SP_ENTITY_ID = "g5GoogleSamlSpEntityId"
    GOOGLE_SAML_ACS_URL = "g5GoogleSamlAcsUrl"
    # M-1
    PROVISIONING_APP_ID = "m1ProvisioningAppId"
    PROVISIONING_APP_OBJECT_ID = "m1ProvisioningAppObjectId"
    PROVISIONING_SP_OBJECT_ID = "m1ProvisioningSpObjectId"
    # M-3
    PROVISIONING_JOB_ID = "m3ProvisioningJobId"
    # M-6
    SAML_SSO_APP_ID = "m6SamlSsoAppId"
    SAML_SSO_APP_OBJECT_ID = "m6SamlSsoAppObjectId"
    SAML_SSO_SP_OBJECT_ID = "m6SamlSsoSpObjectId"
    # M-8
    IDP_CERTIFICATE_BASE64 = "m8IdpCertificateBase64"
    IDP_SSO_URL = "m8IdpSsoUrl"
    IDP_ENTITY_ID = "m8IdpEntityId"
    # Configuration flags
    FLAG_M2_PROV_APP_PROPS_CONFIGURED = "flagM2ProvAppPropsConfigured"
    FLAG_M3_PROV_CREDS_CONFIGURED = "flagM3ProvCredsConfigured"
    FLAG_M4_PROV_MAPPINGS_CONFIGURED = "flagM4ProvMappingsConfigured"
    FLAG_M7_SAML_APP_SETTINGS_CONFIGURED = "flagM7SamlAppSettingsConfigured"
    FLAG_M10_SSO_TESTED = "flagM10SsoTested"


REFRESH_TOKEN_ERROR_MARKER = "RefreshTokenError"
ADMIN_SESSION_KEY = "admin-user"
PROGRESS_KEY_PREFIX = "automation-progress-"

DEFAULT_CACHE_TTL_MS = 5000
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_CHECK_INTERVAL = 300.0
MAX_LOGS_PER_SESSION = 100
DEFAULT_RECENT_LOGS = 50
