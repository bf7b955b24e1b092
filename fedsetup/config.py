from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel

from .constants import DEFAULT_CACHE_TTL_MS, DEFAULT_CHECK_INTERVAL, DEFAULT_RETRY_ATTEMPTS


class ApiBases(BaseModel):
    """Base URLs of the provider REST APIs."""

    google_directory: str = "https://admin.googleapis.com"
    google_identity: str = "https://cloudidentity.googleapis.com"
    microsoft_graph: str = "https://graph.microsoft.com/v1.0"
    google_oauth: str = "https://oauth2.googleapis.com"
    microsoft_login: str = "https://login.microsoftonline.com"


class PortalBases(BaseModel):
    """Base URLs of the admin consoles linked from step results."""

    google_admin: str = "https://admin.google.com"
    azure_portal: str = "https://portal.azure.com"
    my_apps: str = "https://myapps.microsoft.com"


class RetryConfig(BaseModel):
    attempts: int = DEFAULT_RETRY_ATTEMPTS
    backoff_base: float = 1.5
    jitter: float = 0.5


class CacheConfig(BaseModel):
    ttl_ms: int = DEFAULT_CACHE_TTL_MS


class SchedulerConfig(BaseModel):
    interval_seconds: float = DEFAULT_CHECK_INTERVAL


class SessionConfig(BaseModel):
    """Provider tokens used when no interactive sign-in is available."""

    user: Optional[str] = None
    google_token: Optional[str] = None
    microsoft_token: Optional[str] = None
    microsoft_tenant_id: Optional[str] = None


class FedSetupConfig(BaseModel):
    """Top-level configuration model."""

    api: ApiBases = ApiBases()
    portals: PortalBases = PortalBases()
    retry: RetryConfig = RetryConfig()
    cache: CacheConfig = CacheConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    session: SessionConfig = SessionConfig()
    database_url: Optional[str] = None
    api_debug: bool = False


_API_ENV = {
    "GOOGLE_API_BASE": "google_directory",
    "GOOGLE_IDENTITY_BASE": "google_identity",
    "GRAPH_API_BASE": "microsoft_graph",
    "GOOGLE_OAUTH_BASE": "google_oauth",
    "MICROSOFT_LOGIN_BASE": "microsoft_login",
}
_PORTAL_ENV = {
    "GOOGLE_ADMIN_CONSOLE_BASE": "google_admin",
    "AZURE_PORTAL_BASE": "azure_portal",
}
_SESSION_ENV = {
    "FEDSETUP_USER": "user",
    "FEDSETUP_GOOGLE_TOKEN": "google_token",
    "FEDSETUP_MICROSOFT_TOKEN": "microsoft_token",
    "FEDSETUP_MICROSOFT_TENANT_ID": "microsoft_tenant_id",
}


def load_config(path: Optional[str] = None) -> FedSetupConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to FEDSETUP_CONFIG env
            variable or 'fedsetup.yaml' in the current directory.
    """

    config_path = path or os.getenv("FEDSETUP_CONFIG", "fedsetup.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = FedSetupConfig(**data)
    else:
        config = FedSetupConfig()

    for env_name, field in _API_ENV.items():
        if os.getenv(env_name):
            setattr(config.api, field, os.environ[env_name])
    for env_name, field in _PORTAL_ENV.items():
        if os.getenv(env_name):
            setattr(config.portals, field, os.environ[env_name])
    for env_name, field in _SESSION_ENV.items():
        if os.getenv(env_name):
            setattr(config.session, field, os.environ[env_name])

    env_db_url = os.getenv("FEDSETUP_DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    if os.getenv("FEDSETUP_API_DEBUG"):
        config.api_debug = os.environ["FEDSETUP_API_DEBUG"].lower() in ("1", "true", "yes")
    return config
