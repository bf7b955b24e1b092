"""Provider API clients."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from ..auth.session import SessionValidator
from ..config import FedSetupConfig
from ..constants import Provider
from ..logstream import ServerLogger
from ..utils.retry import make_backoff
from .cache import RequestCache
from .client import ApiClient
from .google import GoogleWorkspaceApi, handle_google_error
from .logger import ApiLogger
from .microsoft import MicrosoftGraphApi, handle_microsoft_error
from .urls import GoogleUrls, MicrosoftUrls, PortalUrls

__all__ = [
    "ApiClient",
    "ApiLogger",
    "GoogleWorkspaceApi",
    "MicrosoftGraphApi",
    "PortalUrls",
    "ProviderApis",
    "RequestCache",
    "build_provider_apis",
]


@dataclass
class ProviderApis:
    """Everything step logic needs to talk to the two providers."""

    google: GoogleWorkspaceApi
    microsoft: MicrosoftGraphApi
    portals: PortalUrls

    async def aclose(self) -> None:
        await self.google.client.aclose()
        await self.microsoft.client.aclose()


def build_provider_apis(
    config: FedSetupConfig,
    validator: SessionValidator,
    cache: Optional[RequestCache] = None,
    server_logger: Optional[ServerLogger] = None,
    http: Optional[httpx.AsyncClient] = None,
) -> ProviderApis:
    common = dict(
        http=http,
        cache=cache,
        cache_ttl_ms=config.cache.ttl_ms,
        max_attempts=config.retry.attempts,
        backoff=make_backoff(config.retry.backoff_base, config.retry.jitter),
        server_logger=server_logger,
    )
    google_client = ApiClient(
        Provider.GOOGLE, validator.get_google_token, handle_google_error, **common
    )
    microsoft_client = ApiClient(
        Provider.MICROSOFT, validator.get_microsoft_token, handle_microsoft_error, **common
    )
    return ProviderApis(
        google=GoogleWorkspaceApi(google_client, GoogleUrls(config.api)),
        microsoft=MicrosoftGraphApi(microsoft_client, MicrosoftUrls(config.api)),
        portals=PortalUrls(config.portals),
    )
