"""Google Workspace resources: org units, users, domains, roles, SAML."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..constants import Provider
from ..errors import (
    HTTP_CONFLICT,
    HTTP_NOT_FOUND,
    AlreadyExistsError,
    APIError,
    create_enablement_error,
    is_api_enablement_error,
    is_authentication_error,
    wrap_auth_error,
)
from .client import ApiClient
from .logger import ApiLogger
from .urls import GoogleUrls

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER = "my_customer"
SUPER_ADMIN_ROLE_ID = "3"


def handle_google_error(error: Exception) -> Exception:
    if is_authentication_error(error):
        return wrap_auth_error(error, Provider.GOOGLE)
    if is_api_enablement_error(error):
        return create_enablement_error(error)
    return error


class GoogleWorkspaceApi:
    def __init__(self, client: ApiClient, urls: GoogleUrls) -> None:
        self.client = client
        self.urls = urls

    # ------------------------------------------------------------------
    # Organizational units
    async def get_org_unit(
        self, ou_path: str, customer_id: str = DEFAULT_CUSTOMER, logger: Optional[ApiLogger] = None
    ) -> Optional[Dict[str, Any]]:
        if ou_path.strip("/") == "":
            return None
        try:
            return await self.client.get(self.urls.org_unit(customer_id, ou_path), logger)
        except APIError as exc:
            if exc.status == HTTP_NOT_FOUND:
                return None
            raise

    async def create_org_unit(
        self,
        name: str,
        parent_path: str = "/",
        customer_id: str = DEFAULT_CUSTOMER,
        logger: Optional[ApiLogger] = None,
    ) -> Dict[str, Any]:
        try:
            return await self.client.post(
                self.urls.org_units(customer_id),
                {"name": name, "parentOrgUnitPath": parent_path},
                logger,
            )
        except APIError as exc:
            if exc.status == HTTP_CONFLICT:
                raise AlreadyExistsError(f"Org unit '{name}' already exists") from exc
            raise

    # ------------------------------------------------------------------
    # Users
    async def get_user(self, user_key: str, logger: Optional[ApiLogger] = None) -> Optional[Dict[str, Any]]:
        try:
            return await self.client.get(self.urls.user(user_key), logger)
        except APIError as exc:
            if exc.status == HTTP_NOT_FOUND:
                return None
            raise

    async def create_user(self, user: Dict[str, Any], logger: Optional[ApiLogger] = None) -> Dict[str, Any]:
        try:
            return await self.client.post(self.urls.users(), user, logger)
        except APIError as exc:
            if exc.status == HTTP_CONFLICT:
                raise AlreadyExistsError(f"User '{user.get('primaryEmail')}' already exists") from exc
            raise

    async def get_logged_in_user(self, logger: Optional[ApiLogger] = None) -> Dict[str, Any]:
        """Return the directory record of the signed-in administrator."""
        profile = await self.client.get(self.urls.userinfo(), logger)
        email = profile.get("email") if isinstance(profile, dict) else None
        if not email:
            raise APIError("User lookup failed", HTTP_NOT_FOUND)
        user = await self.get_user(email, logger)
        if user is None:
            raise APIError("User lookup failed", HTTP_NOT_FOUND)
        return user

    # ------------------------------------------------------------------
    # Domains
    async def get_domain(
        self, domain_name: str, customer_id: str = DEFAULT_CUSTOMER, logger: Optional[ApiLogger] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.client.get(self.urls.domain(customer_id, domain_name), logger)
        except APIError as exc:
            if exc.status == HTTP_NOT_FOUND:
                return None
            raise

    async def add_domain(
        self, domain_name: str, customer_id: str = DEFAULT_CUSTOMER, logger: Optional[ApiLogger] = None
    ) -> Dict[str, Any]:
        try:
            return await self.client.post(
                self.urls.domains(customer_id), {"domainName": domain_name}, logger
            )
        except APIError as exc:
            if exc.status == HTTP_CONFLICT:
                raise AlreadyExistsError(f"Domain '{domain_name}' already exists") from exc
            raise

    # ------------------------------------------------------------------
    # Roles
    async def list_role_assignments(
        self, user_key: str, customer_id: str = DEFAULT_CUSTOMER, logger: Optional[ApiLogger] = None
    ) -> List[Dict[str, Any]]:
        res = await self.client.get(self.urls.role_assignments(customer_id, user_key), logger)
        return res.get("items") or []

    async def assign_admin_role(
        self,
        user_email: str,
        role_id: str = SUPER_ADMIN_ROLE_ID,
        customer_id: str = DEFAULT_CUSTOMER,
        logger: Optional[ApiLogger] = None,
    ) -> Dict[str, Any]:
        try:
            return await self.client.post(
                self.urls.role_assignments(customer_id),
                {"roleId": role_id, "assignedTo": user_email, "scopeType": "CUSTOMER"},
                logger,
            )
        except APIError as exc:
            if exc.status == HTTP_CONFLICT:
                raise AlreadyExistsError(
                    f"Admin role '{role_id}' already assigned to {user_email}"
                ) from exc
            raise

    # ------------------------------------------------------------------
    # Inbound SAML SSO profiles
    async def list_saml_profiles(self, logger: Optional[ApiLogger] = None) -> List[Dict[str, Any]]:
        res = await self.client.get(self.urls.saml_profiles(), logger)
        return res.get("inboundSamlSsoProfiles") or []

    async def get_saml_profile(
        self, full_name: str, logger: Optional[ApiLogger] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.client.get(self.urls.saml_profile(full_name), logger)
        except APIError as exc:
            if exc.status == HTTP_NOT_FOUND:
                return None
            raise

    async def find_saml_profile(
        self, name: str, logger: Optional[ApiLogger] = None
    ) -> Optional[Dict[str, Any]]:
        """Look a profile up by resource name or by display name."""
        if name.startswith("inboundSamlSsoProfiles/"):
            return await self.get_saml_profile(name, logger)
        for profile in await self.list_saml_profiles(logger):
            if profile.get("displayName") == name:
                return profile
        return None

    async def create_saml_profile(
        self, display_name: str, logger: Optional[ApiLogger] = None
    ) -> Dict[str, Any]:
        try:
            res = await self.client.post(
                self.urls.saml_profiles(), {"displayName": display_name}, logger
            )
        except APIError as exc:
            if exc.status == HTTP_CONFLICT:
                raise AlreadyExistsError(f"SAML profile '{display_name}' already exists") from exc
            raise
        if not res.get("done") or not res.get("response"):
            raise APIError("Invalid response from createSamlProfile", 500)
        return res["response"]

    async def update_saml_profile(
        self, full_name: str, idp_config: Dict[str, Any], logger: Optional[ApiLogger] = None
    ) -> Dict[str, Any]:
        return await self.client.patch(
            self.urls.saml_profile(full_name, update_mask="idpConfig"),
            {"idpConfig": idp_config},
            logger,
        )

    async def assign_saml_to_org_units(
        self,
        full_name: str,
        assignments: Sequence[Dict[str, str]],
        logger: Optional[ApiLogger] = None,
    ) -> Dict[str, Any]:
        try:
            return await self.client.post(
                self.urls.assign_saml_profile(full_name), {"assignments": list(assignments)}, logger
            )
        except APIError as exc:
            if exc.status == HTTP_CONFLICT:
                raise AlreadyExistsError("SAML profile already assigned to OU") from exc
            raise

    async def add_idp_credentials(
        self, full_name: str, pem_data: Optional[str] = None, logger: Optional[ApiLogger] = None
    ) -> Dict[str, Any]:
        return await self.client.post(
            self.urls.add_idp_credentials(full_name),
            {"pemData": pem_data} if pem_data else {},
            logger,
        )

    async def list_idp_credentials(
        self, full_name: str, logger: Optional[ApiLogger] = None
    ) -> List[Dict[str, Any]]:
        res = await self.client.get(self.urls.idp_credentials(full_name), logger)
        return res.get("idpCredentials") or []
