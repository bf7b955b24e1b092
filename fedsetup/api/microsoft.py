"""Microsoft Graph resources: applications, service principals, provisioning."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..constants import Provider
from ..errors import (
    HTTP_CONFLICT,
    HTTP_NOT_FOUND,
    AlreadyExistsError,
    APIError,
    is_authentication_error,
    wrap_auth_error,
)
from .client import ApiClient
from .logger import ApiLogger
from .urls import MicrosoftUrls

logger = logging.getLogger(__name__)

# Gallery template for "Google Cloud / G Suite Connector by Microsoft".
GOOGLE_WORKSPACE_TEMPLATE_ID = "8b1025e4-1dd2-430b-a150-2ef79cd700f5"
SYNC_TEMPLATE_ID = "GoogleApps"

_ENTITY_ID = re.compile(r'entityID="([^"]+)"')
_SSO_URL = re.compile(r'SingleSignOnService[^>]*Location="([^"]+)"')
_CERTIFICATE = re.compile(r"<X509Certificate>([^<]+)</X509Certificate>")


class SamlMetadata(BaseModel):
    entity_id: str
    sso_url: str
    certificate: str


def handle_microsoft_error(error: Exception) -> Exception:
    if is_authentication_error(error):
        return wrap_auth_error(error, Provider.MICROSOFT)
    return error


def parse_saml_metadata(xml: str) -> SamlMetadata:
    entity_id = _ENTITY_ID.search(xml)
    sso_url = _SSO_URL.search(xml)
    certificate = _CERTIFICATE.search(xml)
    if not (entity_id and sso_url and certificate):
        raise APIError("Could not parse SAML metadata XML.", 500)
    return SamlMetadata(
        entity_id=entity_id.group(1),
        sso_url=sso_url.group(1),
        certificate=certificate.group(1).strip(),
    )


class MicrosoftGraphApi:
    def __init__(self, client: ApiClient, urls: MicrosoftUrls) -> None:
        self.client = client
        self.urls = urls

    # ------------------------------------------------------------------
    # Applications
    async def list_applications(
        self, filter_expr: Optional[str] = None, logger: Optional[ApiLogger] = None
    ) -> List[Dict[str, Any]]:
        res = await self.client.get(self.urls.applications(filter_expr), logger)
        return res.get("value") or []

    async def find_application_by_name(
        self, display_name: str, logger: Optional[ApiLogger] = None
    ) -> Optional[Dict[str, Any]]:
        apps = await self.list_applications(f"displayName eq '{display_name}'", logger)
        return apps[0] if apps else None

    async def get_application(
        self, object_id: str, logger: Optional[ApiLogger] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.client.get(self.urls.application(object_id), logger)
        except APIError as exc:
            if exc.status == HTTP_NOT_FOUND:
                return None
            raise

    async def update_application(
        self, object_id: str, body: Dict[str, Any], logger: Optional[ApiLogger] = None
    ) -> bool:
        """Patch an application; returns ``False`` if Graph reports a conflict."""
        try:
            await self.client.patch(self.urls.application_update(object_id), body, logger)
        except APIError as exc:
            if exc.status == HTTP_CONFLICT:
                return False
            raise
        return True

    async def create_enterprise_app(
        self,
        display_name: str,
        template_id: str = GOOGLE_WORKSPACE_TEMPLATE_ID,
        logger: Optional[ApiLogger] = None,
    ) -> Dict[str, Any]:
        """Instantiate a gallery template; returns ``application`` and ``servicePrincipal``."""
        try:
            return await self.client.post(
                self.urls.instantiate_template(template_id), {"displayName": display_name}, logger
            )
        except APIError as exc:
            if exc.status == HTTP_CONFLICT:
                raise AlreadyExistsError(f"Enterprise app '{display_name}' already exists") from exc
            raise

    # ------------------------------------------------------------------
    # Service principals
    async def get_service_principal_by_app_id(
        self, app_id: str, logger: Optional[ApiLogger] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            res = await self.client.get(
                self.urls.service_principals(f"appId eq '{app_id}'"), logger
            )
        except APIError as exc:
            if exc.status == HTTP_NOT_FOUND:
                return None
            raise
        values = res.get("value") or []
        return values[0] if values else None

    async def get_service_principal(
        self, sp_id: str, logger: Optional[ApiLogger] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.client.get(self.urls.service_principal(sp_id), logger)
        except APIError as exc:
            if exc.status == HTTP_NOT_FOUND:
                return None
            raise

    async def update_service_principal(
        self, sp_id: str, body: Dict[str, Any], logger: Optional[ApiLogger] = None
    ) -> bool:
        try:
            await self.client.patch(self.urls.service_principal_update(sp_id), body, logger)
        except APIError as exc:
            if exc.status == HTTP_CONFLICT:
                return False
            raise
        return True

    async def list_app_role_assignments(
        self, sp_id: str, logger: Optional[ApiLogger] = None
    ) -> List[Dict[str, Any]]:
        res = await self.client.get(self.urls.app_role_assignments(sp_id), logger)
        return res.get("value") or []

    # ------------------------------------------------------------------
    # Provisioning (synchronization)
    async def list_sync_jobs(self, sp_id: str, logger: Optional[ApiLogger] = None) -> List[Dict[str, Any]]:
        res = await self.client.get(self.urls.sync_jobs(sp_id), logger)
        return res.get("value") or []

    async def get_sync_job(
        self, sp_id: str, job_id: str, logger: Optional[ApiLogger] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.client.get(self.urls.sync_job(sp_id, job_id), logger)
        except APIError as exc:
            if exc.status == HTTP_NOT_FOUND:
                return None
            raise

    async def create_sync_job(self, sp_id: str, logger: Optional[ApiLogger] = None) -> Dict[str, Any]:
        try:
            return await self.client.post(
                self.urls.sync_jobs(sp_id), {"templateId": SYNC_TEMPLATE_ID}, logger
            )
        except APIError as exc:
            if exc.status == HTTP_CONFLICT:
                raise AlreadyExistsError("Provisioning job already exists") from exc
            raise

    async def start_sync_job(self, sp_id: str, job_id: str, logger: Optional[ApiLogger] = None) -> None:
        await self.client.post(self.urls.sync_job_start(sp_id, job_id), {}, logger)

    async def get_sync_schema(
        self, sp_id: str, job_id: str, logger: Optional[ApiLogger] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.client.get(self.urls.sync_job_schema(sp_id, job_id), logger)
        except APIError as exc:
            if exc.status == HTTP_NOT_FOUND:
                return None
            raise

    async def put_sync_schema(
        self,
        sp_id: str,
        job_id: str,
        schema: Dict[str, Any],
        logger: Optional[ApiLogger] = None,
    ) -> Dict[str, Any]:
        try:
            return await self.client.put(self.urls.sync_job_schema(sp_id, job_id), schema, logger)
        except APIError as exc:
            if exc.status == HTTP_CONFLICT:
                raise AlreadyExistsError("Attribute mappings already configured") from exc
            raise

    # ------------------------------------------------------------------
    # SAML federation metadata
    async def get_saml_metadata(
        self, tenant_id: str, app_id: str, logger: Optional[ApiLogger] = None
    ) -> SamlMetadata:
        xml = await self.client.get_text(self.urls.saml_metadata(tenant_id, app_id), logger)
        return parse_saml_metadata(xml)
