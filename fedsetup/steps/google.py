"""Google Workspace steps G-1 to G-8."""

from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, Mapping, Optional

from ..api.google import DEFAULT_CUSTOMER, SUPER_ADMIN_ROLE_ID
from ..constants import OutputKeys, Provider, StepErrorCode
from ..contracts import StepCheckResult, StepContext, StepExecutionResult, StepOutput
from ..errors import AlreadyExistsError
from .base import Checkable, Executable, Step, completion_input, key_input

logger = logging.getLogger(__name__)

AUTOMATION_OU_NAME = "Automation"
AUTOMATION_OU_PATH = "/Automation"
PROVISIONING_USER_PREFIX = "azuread-provisioning"
SAML_PROFILE_DISPLAY_NAME = "Azure AD SSO"


def provisioning_email(domain: str) -> str:
    return f"{PROVISIONING_USER_PREFIX}@{domain}"


def to_pem(certificate: str) -> str:
    if certificate.lstrip().startswith("-----BEGIN"):
        return certificate
    body = "".join(certificate.split())
    lines = [body[i : i + 64] for i in range(0, len(body), 64)]
    return "-----BEGIN CERTIFICATE-----\n" + "\n".join(lines) + "\n-----END CERTIFICATE-----"


class GoogleStep(Step):
    provider = Provider.GOOGLE

    @property
    def google(self):
        return self.apis.google

    def _profile_outputs(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        outputs: Dict[str, Any] = {
            OutputKeys.GOOGLE_SAML_PROFILE_NAME: profile.get("displayName"),
            OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME: profile["name"],
            "resourceUrl": self.portals.saml_profile(profile["name"]),
        }
        sp_config = profile.get("spConfig") or {}
        if sp_config.get("entityId"):
            outputs[OutputKeys.GOOGLE_SAML_SP_ENTITY_ID] = sp_config["entityId"]
        if sp_config.get("assertionConsumerServiceUri"):
            outputs[OutputKeys.GOOGLE_SAML_ACS_URL] = sp_config["assertionConsumerServiceUri"]
        return outputs

    async def _configured_profile(
        self, context: StepContext
    ) -> tuple[Optional[Dict[str, Any]], bool]:
        """Return the referenced SAML profile and whether its IdP side is set up."""
        name = context.outputs[OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME]
        profile = await self.google.find_saml_profile(name, context.logger)
        if not profile or not profile.get("name"):
            return None, False
        idp_config = profile.get("idpConfig") or {}
        if not (idp_config.get("entityId") and idp_config.get("singleSignOnServiceUri")):
            return profile, False
        credentials = await self.google.list_idp_credentials(profile["name"], context.logger)
        return profile, bool(credentials)


# ----------------------------------------------------------------------
# Provisioning prerequisites


class CreateAutomationOu(GoogleStep, Checkable, Executable):
    id = "G-1"
    title = "Create 'Automation' Organizational Unit"
    description = (
        "Creates a dedicated Organizational Unit named 'Automation' to house the "
        "provisioning user."
    )
    details = (
        "Creates an organizational unit at the root level of your Google Workspace "
        "directory. This OU will contain service accounts and other automation-related "
        "users, keeping them separate from regular users."
    )
    category = "Google"
    activity = "Provisioning"
    outputs = (
        StepOutput(key=OutputKeys.AUTOMATION_OU_ID, description="Automation OU id"),
        StepOutput(key=OutputKeys.AUTOMATION_OU_PATH, description="Automation OU path"),
    )

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        return self.portals.org_units()

    def verify_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        path = outputs.get(OutputKeys.AUTOMATION_OU_PATH)
        return self.portals.org_unit_details(path) if path else self.portals.org_units()

    async def probe(self, context: StepContext) -> StepCheckResult:
        org_unit = await self.google.get_org_unit(AUTOMATION_OU_PATH, logger=context.logger)
        if org_unit and org_unit.get("orgUnitId") and org_unit.get("orgUnitPath"):
            return StepCheckResult(
                completed=True,
                message=f"Organizational Unit '{AUTOMATION_OU_PATH}' found.",
                outputs={
                    OutputKeys.AUTOMATION_OU_ID: org_unit["orgUnitId"],
                    OutputKeys.AUTOMATION_OU_PATH: org_unit["orgUnitPath"],
                    "resourceUrl": self.portals.org_unit_by_id(org_unit["orgUnitId"]),
                },
            )
        return StepCheckResult(
            completed=False, message=f"Organizational Unit '{AUTOMATION_OU_PATH}' not found."
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        try:
            org_unit = await self.google.create_org_unit(
                AUTOMATION_OU_NAME, "/", DEFAULT_CUSTOMER, context.logger
            )
            message = f"Organizational Unit '{AUTOMATION_OU_NAME}' created successfully."
        except AlreadyExistsError:
            org_unit = await self.google.get_org_unit(AUTOMATION_OU_PATH, logger=context.logger)
            message = f"Organizational Unit '{AUTOMATION_OU_NAME}' already exists."
            if not org_unit:
                return StepExecutionResult(success=True, message=message)

        if not org_unit.get("orgUnitId") or not org_unit.get("orgUnitPath"):
            return StepExecutionResult.failure(StepErrorCode.API_ERROR, "Failed to create OU.")
        return StepExecutionResult(
            success=True,
            message=message,
            outputs={
                OutputKeys.AUTOMATION_OU_ID: org_unit["orgUnitId"],
                OutputKeys.AUTOMATION_OU_PATH: org_unit["orgUnitPath"],
            },
            resource_url=self.portals.org_unit_details(org_unit["orgUnitPath"]),
        )


class CreateProvisioningUser(GoogleStep, Checkable, Executable):
    id = "G-2"
    title = "Create Provisioning User in 'Automation' OU"
    description = "Create a sync user for Microsoft to connect with"
    details = (
        "Creates a service account user (azuread-provisioning@domain) within the "
        "Automation OU. Microsoft Entra ID uses this account to sync users to "
        "Google Workspace."
    )
    category = "Google"
    activity = "Provisioning"
    requires = ("G-1",)
    inputs = (key_input(OutputKeys.AUTOMATION_OU_PATH, "G-1", "Automation OU path"),)
    outputs = (
        StepOutput(key=OutputKeys.SERVICE_ACCOUNT_EMAIL, description="Provisioning user email"),
        StepOutput(key=OutputKeys.SERVICE_ACCOUNT_ID, description="Provisioning user id"),
    )
    required_outputs = (OutputKeys.AUTOMATION_OU_PATH,)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        email = outputs.get(OutputKeys.SERVICE_ACCOUNT_EMAIL)
        return self.portals.user_details(email) if email else self.portals.users()

    async def probe(self, context: StepContext) -> StepCheckResult:
        if not context.domain:
            return StepCheckResult(completed=False, message="Domain not configured.")
        email = provisioning_email(context.domain)
        user = await self.google.get_user(email, context.logger)
        if user and user.get("primaryEmail"):
            return StepCheckResult(
                completed=True,
                message=f"Service account '{email}' exists.",
                outputs={
                    OutputKeys.SERVICE_ACCOUNT_EMAIL: user["primaryEmail"],
                    OutputKeys.SERVICE_ACCOUNT_ID: user.get("id"),
                    "resourceUrl": self.portals.user_details(user["primaryEmail"]),
                },
            )
        return StepCheckResult(completed=False, message=f"Service account '{email}' not found.")

    async def apply(self, context: StepContext) -> StepExecutionResult:
        email = provisioning_email(context.domain)
        ou_path = context.outputs[OutputKeys.AUTOMATION_OU_PATH]
        user = {
            "primaryEmail": email,
            "name": {"givenName": "Microsoft Entra ID", "familyName": "Provisioning"},
            "password": secrets.token_urlsafe(24),
            "orgUnitPath": ou_path,
            "changePasswordAtNextLogin": False,
        }
        try:
            created = await self.google.create_user(user, context.logger)
            message = f"User '{email}' created in OU '{ou_path}'."
        except AlreadyExistsError:
            created = await self.google.get_user(email, context.logger)
            message = f"User '{email}' already exists."
            if not created:
                return StepExecutionResult(success=True, message=message)

        if not created.get("id") or not created.get("primaryEmail"):
            return StepExecutionResult.failure(
                StepErrorCode.API_ERROR, "Failed to create provisioning user."
            )
        return StepExecutionResult(
            success=True,
            message=message,
            outputs={
                OutputKeys.SERVICE_ACCOUNT_EMAIL: created["primaryEmail"],
                OutputKeys.SERVICE_ACCOUNT_ID: created["id"],
            },
            resource_url=self.portals.user_details(created["primaryEmail"]),
        )


class GrantSuperAdmin(GoogleStep, Checkable, Executable):
    id = "G-3"
    title = "Grant Super Admin Privileges to Provisioning User"
    description = "Give the sync user admin permissions"
    details = (
        "Assigns the Super Admin role to the provisioning user. Azure AD needs it to "
        "manage users, groups and organizational units."
    )
    category = "Google"
    activity = "Provisioning"
    requires = ("G-2",)
    inputs = (key_input(OutputKeys.SERVICE_ACCOUNT_EMAIL, "G-2", "Provisioning user email"),)
    outputs = (StepOutput(key=OutputKeys.SUPER_ADMIN_ROLE_ID, description="Super Admin role id"),)
    check_requires = (OutputKeys.SERVICE_ACCOUNT_EMAIL,)
    required_outputs = (OutputKeys.SERVICE_ACCOUNT_EMAIL,)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        email = outputs.get(OutputKeys.SERVICE_ACCOUNT_EMAIL)
        return self.portals.user_details(email) if email else self.portals.users()

    async def _has_super_admin(self, email: str, context: StepContext) -> bool:
        roles = await self.google.list_role_assignments(email, logger=context.logger)
        return any(str(role.get("roleId")) == SUPER_ADMIN_ROLE_ID for role in roles)

    async def probe(self, context: StepContext) -> StepCheckResult:
        email = context.outputs[OutputKeys.SERVICE_ACCOUNT_EMAIL]
        user = await self.google.get_user(email, context.logger)
        if not user:
            return StepCheckResult(completed=False, message=f"Service account '{email}' not found.")
        if user.get("isAdmin") is True and user.get("suspended") is False:
            return StepCheckResult(
                completed=True,
                message=f"Service account '{email}' has admin privileges.",
                outputs={OutputKeys.SUPER_ADMIN_ROLE_ID: SUPER_ADMIN_ROLE_ID},
            )
        if await self._has_super_admin(email, context):
            return StepCheckResult(
                completed=True,
                message="Service account has Super Admin role assigned.",
                outputs={OutputKeys.SUPER_ADMIN_ROLE_ID: SUPER_ADMIN_ROLE_ID},
            )
        return StepCheckResult(
            completed=False, message="Service account exists but lacks admin privileges."
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        email = context.outputs[OutputKeys.SERVICE_ACCOUNT_EMAIL]
        customer_id = context.outputs.get(OutputKeys.GOOGLE_CUSTOMER_ID) or DEFAULT_CUSTOMER
        outputs = {OutputKeys.SUPER_ADMIN_ROLE_ID: SUPER_ADMIN_ROLE_ID}
        resource_url = self.portals.user_details(email)

        user = await self.google.get_user(email, context.logger)
        if user and user.get("isAdmin"):
            return StepExecutionResult(
                success=True,
                message=f"User '{email}' is already an admin.",
                outputs=outputs,
                resource_url=resource_url,
            )
        if await self._has_super_admin(email, context):
            return StepExecutionResult(
                success=True,
                message=f"User '{email}' already has Super Admin role.",
                outputs=outputs,
                resource_url=resource_url,
            )
        try:
            await self.google.assign_admin_role(
                email, SUPER_ADMIN_ROLE_ID, customer_id, context.logger
            )
        except AlreadyExistsError:
            logger.info(f"Super Admin role was already assigned to {email}")
        return StepExecutionResult(
            success=True,
            message=f"Super Admin role assigned to '{email}'.",
            outputs=outputs,
            resource_url=resource_url,
        )


class VerifyDomain(GoogleStep, Checkable, Executable):
    id = "G-4"
    title = "Add & Verify Domain for Federation"
    description = (
        "Ensures the primary domain you intend to federate with Azure AD is added and "
        "verified within your Google Workspace account."
    )
    details = (
        "Adds the primary domain to Google Workspace. Federation requires a verified "
        "domain so that Google trusts sign-in requests from Microsoft."
    )
    category = "Google"
    activity = "SSO"
    outputs = (StepOutput(key=OutputKeys.GOOGLE_CUSTOMER_ID, description="Google customer id"),)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        return self.portals.domains()

    async def probe(self, context: StepContext) -> StepCheckResult:
        if not context.domain:
            return StepCheckResult(completed=False, message="Domain not configured.")
        details = await self.google.get_domain(context.domain, logger=context.logger)
        if details is None:
            return StepCheckResult(
                completed=False,
                message=f"Domain '{context.domain}' not found in Google Workspace.",
            )
        if details.get("verified"):
            return StepCheckResult(
                completed=True,
                message=f"Domain '{context.domain}' is verified.",
                outputs={"resourceUrl": self.portals.domains(context.domain)},
            )
        return StepCheckResult(
            completed=False,
            message=(
                f"Domain '{context.domain}' is not verified or not found. "
                "Verification is required for SAML SSO."
            ),
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        admin = await self.google.get_logged_in_user(context.logger)
        outputs = {OutputKeys.GOOGLE_CUSTOMER_ID: admin.get("customerId")}
        resource_url = self.portals.domains(context.domain)
        try:
            await self.google.add_domain(context.domain, logger=context.logger)
        except AlreadyExistsError:
            return StepExecutionResult(
                success=True,
                message=f"Domain '{context.domain}' was already added/exists in Google Workspace.",
                outputs=outputs,
                resource_url=resource_url,
            )
        return StepExecutionResult(
            success=True,
            message=(
                f"Domain '{context.domain}' added. Please ensure it is verified in your "
                "Google Workspace Admin console for SAML SSO."
            ),
            outputs=outputs,
            resource_url=resource_url,
        )


# ----------------------------------------------------------------------
# SAML single sign-on


class InitiateSamlProfile(GoogleStep, Checkable, Executable):
    id = "G-5"
    title = "Initiate Google SAML Profile & Get SP Details"
    description = (
        f"Creates (or ensures existence of) a SAML SSO profile named "
        f"'{SAML_PROFILE_DISPLAY_NAME}' and retrieves Google's ACS URL and Entity ID."
    )
    details = (
        "Creates a new inbound SAML profile in Google Workspace and returns the Service "
        "Provider entity ID and ACS URL. Microsoft uses these values when configuring SSO."
    )
    category = "Google"
    activity = "SSO"
    requires = ("G-4",)
    inputs = (completion_input("G-4", "Domain added to Google Workspace"),)
    outputs = (
        StepOutput(key=OutputKeys.GOOGLE_SAML_PROFILE_NAME, description="Profile display name"),
        StepOutput(key=OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME, description="Profile resource name"),
        StepOutput(key=OutputKeys.GOOGLE_SAML_SP_ENTITY_ID, description="Google SP entity id"),
        StepOutput(key=OutputKeys.GOOGLE_SAML_ACS_URL, description="Google ACS URL"),
    )

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        return self.portals.sso()

    async def probe(self, context: StepContext) -> StepCheckResult:
        profile = await self.google.find_saml_profile(SAML_PROFILE_DISPLAY_NAME, context.logger)
        if not profile or not profile.get("name"):
            return StepCheckResult(
                completed=False, message=f"SAML Profile '{SAML_PROFILE_DISPLAY_NAME}' not found."
            )
        return StepCheckResult(
            completed=True,
            message=f"SAML Profile '{profile.get('displayName')}' exists.",
            outputs=self._profile_outputs(profile),
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        try:
            profile = await self.google.create_saml_profile(
                SAML_PROFILE_DISPLAY_NAME, context.logger
            )
            message = f"SAML Profile '{SAML_PROFILE_DISPLAY_NAME}' created in Google Workspace."
            incomplete = StepExecutionResult.failure(
                StepErrorCode.SAML_PROFILE_MISSING_DETAILS,
                "Google did not return the expected SAML profile details after creation. "
                "Delete the profile in the Admin Console and rerun this step.",
            )
        except AlreadyExistsError:
            profile = await self.google.find_saml_profile(
                SAML_PROFILE_DISPLAY_NAME, context.logger
            )
            message = f"SAML Profile '{SAML_PROFILE_DISPLAY_NAME}' already exists. Using its details."
            incomplete = StepExecutionResult.failure(
                StepErrorCode.SAML_PROFILE_FETCH_FAILED,
                f"SAML Profile '{SAML_PROFILE_DISPLAY_NAME}' appears to exist but required "
                "details could not be retrieved. Remove any partial profile and rerun this step.",
            )

        sp_config = (profile or {}).get("spConfig") or {}
        if not (
            profile
            and profile.get("name")
            and sp_config.get("entityId")
            and sp_config.get("assertionConsumerServiceUri")
        ):
            return incomplete

        outputs = self._profile_outputs(profile)
        resource_url = outputs.pop("resourceUrl")
        return StepExecutionResult(
            success=True, message=message, outputs=outputs, resource_url=resource_url
        )


class UpdateSamlProfile(GoogleStep, Checkable, Executable):
    id = "G-6"
    title = "Update Google SAML Profile with Azure AD IdP Info"
    description = (
        "Update the Google Workspace 'Azure AD SSO' SAML profile with the IdP metadata "
        "(Login URL, Entity ID, Certificate) retrieved from Azure AD in step M-8."
    )
    details = (
        "Updates the SAML profile with metadata from Azure AD including entity ID, SSO URL "
        "and certificate. This completes the trust configuration for single sign-on."
    )
    category = "SSO"
    activity = "SSO"
    requires = ("G-5", "M-8")
    inputs = (
        key_input(OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME, "G-5", "SAML profile resource name"),
        key_input(OutputKeys.IDP_ENTITY_ID, "M-8", "Azure AD entity id"),
        key_input(OutputKeys.IDP_SSO_URL, "M-8", "Azure AD login URL"),
        key_input(OutputKeys.IDP_CERTIFICATE_BASE64, "M-8", "Azure AD signing certificate"),
    )
    check_requires = (OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME, OutputKeys.IDP_ENTITY_ID)
    required_outputs = (
        OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME,
        OutputKeys.IDP_ENTITY_ID,
        OutputKeys.IDP_SSO_URL,
        OutputKeys.IDP_CERTIFICATE_BASE64,
    )

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        return self.portals.sso()

    async def probe(self, context: StepContext) -> StepCheckResult:
        expected_entity_id = context.outputs[OutputKeys.IDP_ENTITY_ID]
        profile, configured = await self._configured_profile(context)
        name = context.outputs[OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME]
        if profile is None:
            return StepCheckResult(completed=False, message=f"SAML Profile '{name}' not found.")
        display_name = profile.get("displayName")
        if not configured:
            return StepCheckResult(
                completed=False,
                message=(
                    f"SAML Profile '{display_name}' found but is not fully configured with "
                    "IdP details or not enabled."
                ),
            )
        current = (profile.get("idpConfig") or {}).get("entityId")
        if current != expected_entity_id:
            return StepCheckResult(
                completed=False,
                message=(
                    f"SAML Profile '{display_name}' is configured with IdP '{current}', "
                    f"not the expected '{expected_entity_id}'."
                ),
            )
        return StepCheckResult(
            completed=True,
            message=(
                f"SAML Profile '{display_name}' is correctly configured with IdP "
                f"'{expected_entity_id}'."
            ),
            outputs=self._profile_outputs(profile),
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        full_name = context.outputs[OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME]
        await self.google.update_saml_profile(
            full_name,
            {
                "entityId": context.outputs[OutputKeys.IDP_ENTITY_ID],
                "singleSignOnServiceUri": context.outputs[OutputKeys.IDP_SSO_URL],
            },
            context.logger,
        )
        await self.google.add_idp_credentials(
            full_name, to_pem(context.outputs[OutputKeys.IDP_CERTIFICATE_BASE64]), context.logger
        )
        return StepExecutionResult(
            success=True,
            message="Google SAML Profile updated with Azure AD IdP information.",
            resource_url=self.portals.sso(),
        )


class AssignSamlProfile(GoogleStep, Checkable, Executable):
    id = "G-7"
    title = "Assign Google SAML Profile to Users/OUs"
    description = (
        "Activate the 'Azure AD SSO' SAML profile for users in Google Workspace. It is "
        "assigned to the Root OU by default."
    )
    details = (
        "Assigns the configured SAML profile to organizational units so users are "
        "redirected to Microsoft for authentication."
    )
    category = "SSO"
    activity = "SSO"
    requires = ("G-6",)
    inputs = (
        key_input(OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME, "G-5", "SAML profile resource name"),
    )
    check_requires = (OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME,)
    required_outputs = (OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME,)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        return self.portals.sso()

    async def probe(self, context: StepContext) -> StepCheckResult:
        profile, configured = await self._configured_profile(context)
        if profile is None:
            name = context.outputs[OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME]
            return StepCheckResult(completed=False, message=f"SAML Profile '{name}' not found.")
        if not configured:
            return StepCheckResult(completed=False, message="SAML profile not yet configured.")
        return StepCheckResult(
            completed=True,
            message="SAML profile configured.",
            outputs=self._profile_outputs(profile),
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        full_name = context.outputs[OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME]
        try:
            await self.google.assign_saml_to_org_units(
                full_name, [{"orgUnitId": "/", "ssoMode": "SAML_SSO_ENABLED"}], context.logger
            )
        except AlreadyExistsError:
            logger.info("SAML profile was already assigned to the root OU")
        return StepExecutionResult(
            success=True,
            message=(
                "SAML profile assigned to Root OU for all users. Specific assignments can be "
                "adjusted in Google Admin console."
            ),
            resource_url=self.portals.sso(),
        )


class ExcludeAutomationOu(GoogleStep, Checkable, Executable):
    id = "G-8"
    title = "Exclude Automation OU from SSO (Optional)"
    description = "Keep sync user using Google sign-in (optional)"
    details = (
        "Turns SSO off for the Automation OU so service accounts keep using Google "
        "sign-in instead of SSO."
    )
    category = "SSO"
    activity = "SSO"
    requires = ("G-7",)
    inputs = (
        key_input(OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME, "G-5", "SAML profile resource name"),
    )
    check_requires = (OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME,)
    required_outputs = (OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME,)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        return self.portals.sso()

    async def probe(self, context: StepContext) -> StepCheckResult:
        # The API exposes no per-OU assignment lookup; a configured profile is the proxy.
        profile, configured = await self._configured_profile(context)
        if profile is None:
            name = context.outputs[OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME]
            return StepCheckResult(completed=False, message=f"SAML Profile '{name}' not found.")
        if not configured:
            return StepCheckResult(completed=False, message="SAML profile not yet configured.")
        return StepCheckResult(
            completed=True,
            message="SAML profile configured.",
            outputs=self._profile_outputs(profile),
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        full_name = context.outputs[OutputKeys.GOOGLE_SAML_PROFILE_FULL_NAME]
        org_unit = await self.google.get_org_unit(AUTOMATION_OU_PATH, logger=context.logger)
        if not org_unit or not org_unit.get("orgUnitId"):
            return StepExecutionResult(
                success=True,
                message="No Automation OU found. This step is optional if no dedicated OU exists.",
            )
        try:
            await self.google.assign_saml_to_org_units(
                full_name,
                [{"orgUnitId": org_unit["orgUnitId"], "ssoMode": "SSO_OFF"}],
                context.logger,
            )
        except AlreadyExistsError:
            logger.info("SSO was already turned off for the Automation OU")
        return StepExecutionResult(
            success=True,
            message=(
                f"SAML explicitly disabled for the 'Automation' OU "
                f"({org_unit.get('orgUnitPath', AUTOMATION_OU_PATH)})."
            ),
            resource_url=self.portals.sso(),
        )


GOOGLE_STEPS = (
    CreateAutomationOu,
    CreateProvisioningUser,
    GrantSuperAdmin,
    VerifyDomain,
    InitiateSamlProfile,
    UpdateSamlProfile,
    AssignSamlProfile,
    ExcludeAutomationOu,
)
