"""Microsoft Entra ID steps M-1 to M-10."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from ..api.microsoft import SYNC_TEMPLATE_ID
from ..constants import Automatability, OutputKeys, Provider
from ..contracts import StepCheckResult, StepContext, StepExecutionResult, StepOutput
from ..errors import HTTP_NOT_FOUND, AlreadyExistsError, APIError
from .base import Checkable, Executable, Step, completion_input, key_input

logger = logging.getLogger(__name__)

PROVISIONING_APP_NAME = "Google Workspace User Provisioning"
SAML_APP_NAME = "Google Workspace SAML SSO"
WORK_EMAIL_ATTRIBUTE = 'emails[type eq "work"].value'


def _attribute(target: str, source: str, priority: Optional[int] = None) -> Dict[str, Any]:
    mapping: Dict[str, Any] = {
        "targetAttributeName": target,
        "source": {"expression": f"[{source}]", "name": source, "type": "Attribute"},
    }
    if priority is not None:
        mapping["matchingPriority"] = priority
    return mapping


ATTRIBUTE_MAPPING_SCHEMA: Dict[str, Any] = {
    "synchronizationRules": [
        {
            "name": "UserProvisioningToGoogleWorkspace",
            "sourceDirectoryName": "Azure Active Directory",
            "targetDirectoryName": "Google Workspace",
            "objectMappings": [
                {
                    "enabled": True,
                    "sourceObjectName": "user",
                    "targetObjectName": "User",
                    "attributeMappings": [
                        _attribute("userName", "userPrincipalName", 1),
                        _attribute("active", "accountEnabled"),
                        _attribute("displayName", "displayName"),
                        _attribute("name.givenName", "givenName"),
                        _attribute("name.familyName", "surname"),
                        _attribute(WORK_EMAIL_ATTRIBUTE, "mail"),
                        _attribute("externalId", "objectId", 2),
                    ],
                }
            ],
        }
    ]
}


def _mapping_present(mappings: list, target: str, source: str) -> bool:
    return any(
        item.get("targetAttributeName") == target
        and f"[{source.lower()}]" in ((item.get("source") or {}).get("expression") or "").lower()
        for item in mappings
    )


class MicrosoftStep(Step):
    provider = Provider.MICROSOFT

    @property
    def microsoft(self):
        return self.apis.microsoft

    # Provisioning app links ----------------------------------------------
    def _provisioning_ids(self, outputs: Mapping[str, Any]) -> tuple[Optional[str], Optional[str]]:
        return (
            outputs.get(OutputKeys.PROVISIONING_SP_OBJECT_ID),
            outputs.get(OutputKeys.PROVISIONING_APP_ID),
        )

    def _saml_ids(self, outputs: Mapping[str, Any]) -> tuple[Optional[str], Optional[str]]:
        return (
            outputs.get(OutputKeys.SAML_SSO_SP_OBJECT_ID),
            outputs.get(OutputKeys.SAML_SSO_APP_ID),
        )

    # Shared probes -------------------------------------------------------
    async def _check_service_principal(
        self, app_id: str, context: StepContext, keys: tuple[str, str, str]
    ) -> StepCheckResult:
        """Look up the service principal of ``app_id``.

        ``keys`` names the output keys for the SP object id, the app id and
        the application object id, in that order.
        """
        sp = await self.microsoft.get_service_principal_by_app_id(app_id, context.logger)
        if not sp or not sp.get("id") or not sp.get("appId"):
            return StepCheckResult(
                completed=False,
                message=f"Service Principal for App Client ID '{app_id}' not found.",
            )
        apps = await self.microsoft.list_applications(f"appId eq '{app_id}'", context.logger)
        sp_key, app_key, object_key = keys
        outputs: Dict[str, Any] = {
            sp_key: sp["id"],
            app_key: sp["appId"],
            "resourceUrl": self.portals.enterprise_app_overview(sp["id"], sp["appId"]),
        }
        if apps and apps[0].get("id"):
            outputs[object_key] = apps[0]["id"]
        return StepCheckResult(
            completed=True,
            message=(
                f"Service Principal for App Client ID '{app_id}' found: "
                f"{sp.get('displayName')}."
            ),
            outputs=outputs,
        )

    async def _check_job_details(
        self, sp_id: str, job_id: Optional[str], context: StepContext
    ) -> StepCheckResult:
        try:
            if job_id:
                job = await self.microsoft.get_sync_job(sp_id, job_id, context.logger)
            else:
                jobs = await self.microsoft.list_sync_jobs(sp_id, context.logger)
                job = next(
                    (item for item in jobs if item.get("templateId") == SYNC_TEMPLATE_ID),
                    jobs[0] if jobs else None,
                )
        except APIError as exc:
            if exc.status == HTTP_NOT_FOUND and "No synchronization configuration" in exc.message:
                return StepCheckResult(
                    completed=False,
                    message="Provisioning not configured (no sync job/schema).",
                )
            raise

        if not job or not job.get("id"):
            return StepCheckResult(
                completed=False,
                message="No provisioning job found or configured for this Service Principal.",
            )

        state = (job.get("schedule") or {}).get("state") or "Unknown"
        last_error = ((job.get("status") or {}).get("lastExecution") or {}).get("error") or {}
        message = f"Provisioning job '{job['id']}' found. State: {state}."
        if last_error.get("message"):
            message += f" Last execution error: {last_error['message']}"
        credentials_ok = "invalidcredentials" not in (last_error.get("code") or "").lower()
        return StepCheckResult(
            completed=credentials_ok,
            message=message,
            outputs={OutputKeys.PROVISIONING_JOB_ID: job["id"], "provisioningJobState": state},
        )


# ----------------------------------------------------------------------
# User provisioning


class CreateProvisioningApp(MicrosoftStep, Checkable, Executable):
    id = "M-1"
    title = "Create Azure AD Enterprise App for Provisioning"
    description = "Add Google sync app from Microsoft's gallery"
    details = (
        "Instantiates the Google Cloud/G Suite Connector by Microsoft gallery app in "
        "Azure AD. This creates both an application registration and a service principal "
        "for provisioning."
    )
    category = "Microsoft"
    activity = "Provisioning"
    outputs = (
        StepOutput(key=OutputKeys.PROVISIONING_APP_ID, description="Provisioning app client id"),
        StepOutput(key=OutputKeys.PROVISIONING_APP_OBJECT_ID, description="Application object id"),
        StepOutput(key=OutputKeys.PROVISIONING_SP_OBJECT_ID, description="Service principal id"),
    )
    check_requires = (OutputKeys.PROVISIONING_APP_ID,)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        sp_id, app_id = self._provisioning_ids(outputs)
        if not sp_id or not app_id:
            return None
        return self.portals.enterprise_app_overview(sp_id, app_id)

    async def probe(self, context: StepContext) -> StepCheckResult:
        return await self._check_service_principal(
            context.outputs[OutputKeys.PROVISIONING_APP_ID],
            context,
            (
                OutputKeys.PROVISIONING_SP_OBJECT_ID,
                OutputKeys.PROVISIONING_APP_ID,
                OutputKeys.PROVISIONING_APP_OBJECT_ID,
            ),
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        try:
            created = await self.microsoft.create_enterprise_app(
                PROVISIONING_APP_NAME, logger=context.logger
            )
        except AlreadyExistsError:
            return await _existing_app_result(
                self, PROVISIONING_APP_NAME, "for provisioning", context,
                (
                    OutputKeys.PROVISIONING_APP_ID,
                    OutputKeys.PROVISIONING_APP_OBJECT_ID,
                    OutputKeys.PROVISIONING_SP_OBJECT_ID,
                ),
            )
        application = created["application"]
        sp = created["servicePrincipal"]
        return StepExecutionResult(
            success=True,
            message=f"Enterprise app '{PROVISIONING_APP_NAME}' created.",
            resource_url=self.portals.enterprise_app_overview(sp["id"], application["appId"]),
            outputs={
                OutputKeys.PROVISIONING_APP_ID: application["appId"],
                OutputKeys.PROVISIONING_APP_OBJECT_ID: application["id"],
                OutputKeys.PROVISIONING_SP_OBJECT_ID: sp["id"],
            },
        )


async def _existing_app_result(
    step: MicrosoftStep,
    app_name: str,
    purpose: str,
    context: StepContext,
    keys: tuple[str, str, str],
) -> StepExecutionResult:
    """Recover identifiers of an enterprise app that already exists."""
    app_key, object_key, sp_key = keys
    existing = await step.microsoft.find_application_by_name(app_name, context.logger)
    if existing and existing.get("appId"):
        sp = await step.microsoft.get_service_principal_by_app_id(existing["appId"], context.logger)
        if existing.get("id") and sp and sp.get("id"):
            return StepExecutionResult(
                success=True,
                message=f"Enterprise app '{app_name}' {purpose} already exists.",
                resource_url=step.portals.enterprise_app_overview(sp["id"], existing["appId"]),
                outputs={
                    app_key: existing["appId"],
                    object_key: existing["id"],
                    sp_key: sp["id"],
                },
            )
    return StepExecutionResult(
        success=True,
        message=(
            f"Enterprise app '{app_name}' {purpose} already exists, but its full details "
            "could not be retrieved."
        ),
    )


class EnableProvisioningSp(MicrosoftStep, Checkable, Executable):
    id = "M-2"
    title = "Enable Provisioning App Service Principal"
    description = (
        "Ensures the Service Principal associated with the Azure AD provisioning "
        "application is enabled, allowing it to operate."
    )
    details = (
        "Enables the newly created service principal so it can be configured with "
        "credentials and permissions."
    )
    category = "Microsoft"
    activity = "Provisioning"
    requires = ("M-1",)
    inputs = (
        key_input(OutputKeys.PROVISIONING_SP_OBJECT_ID, "M-1", "Provisioning service principal"),
        key_input(OutputKeys.PROVISIONING_APP_ID, "M-1", "Provisioning app client id"),
    )
    outputs = (
        StepOutput(
            key=OutputKeys.FLAG_M2_PROV_APP_PROPS_CONFIGURED,
            description="Service principal enabled",
        ),
    )
    check_requires = (OutputKeys.PROVISIONING_SP_OBJECT_ID,)
    required_outputs = (OutputKeys.PROVISIONING_SP_OBJECT_ID, OutputKeys.PROVISIONING_APP_ID)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        sp_id, app_id = self._provisioning_ids(outputs)
        if not sp_id or not app_id:
            return None
        return self.portals.enterprise_app_overview(sp_id, app_id)

    async def probe(self, context: StepContext) -> StepCheckResult:
        sp_id = context.outputs[OutputKeys.PROVISIONING_SP_OBJECT_ID]
        sp = await self.microsoft.get_service_principal(sp_id, context.logger)
        if sp and sp.get("accountEnabled") is True:
            return StepCheckResult(completed=True, message="Service Principal is enabled.")
        if sp:
            return StepCheckResult(completed=False, message="Service Principal is not enabled.")
        return StepCheckResult(
            completed=False,
            message="Service Principal not found. Ensure step M-1 completed successfully.",
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        sp_id, app_id = self._provisioning_ids(context.outputs)
        await self.microsoft.update_service_principal(
            sp_id, {"accountEnabled": True}, context.logger
        )
        return StepExecutionResult(
            success=True,
            message="Provisioning app service principal enabled.",
            outputs={OutputKeys.FLAG_M2_PROV_APP_PROPS_CONFIGURED: True},
            resource_url=self.portals.enterprise_app_overview(sp_id, app_id),
        )


class AuthorizeProvisioning(MicrosoftStep, Checkable, Executable):
    id = "M-3"
    title = "Authorize Azure AD Provisioning to Google Workspace"
    description = (
        "Connect Microsoft to Google: Click 'Authorize' in Azure and sign in with the "
        "Google sync user"
    )
    details = (
        "Manually complete the OAuth consent flow in the Azure portal using the "
        "provisioning user. This grants Azure AD permission to manage users and groups "
        "in Google Workspace."
    )
    category = "Microsoft"
    activity = "Provisioning"
    automatability = Automatability.SUPERVISED
    automatable = False
    requires = ("M-2", "G-3")
    inputs = (
        key_input(OutputKeys.PROVISIONING_SP_OBJECT_ID, "M-1", "Provisioning service principal"),
        key_input(OutputKeys.PROVISIONING_APP_ID, "M-1", "Provisioning app client id"),
        completion_input("G-3", "Provisioning user is a Super Admin"),
    )
    outputs = (
        StepOutput(key=OutputKeys.PROVISIONING_JOB_ID, description="Synchronization job id"),
        StepOutput(
            key=OutputKeys.FLAG_M3_PROV_CREDS_CONFIGURED,
            description="Provisioning connection authorized",
        ),
    )
    check_requires = (OutputKeys.PROVISIONING_SP_OBJECT_ID,)
    required_outputs = (OutputKeys.PROVISIONING_SP_OBJECT_ID, OutputKeys.PROVISIONING_APP_ID)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        sp_id, app_id = self._provisioning_ids(outputs)
        if not sp_id or not app_id:
            return None
        return self.portals.enterprise_app_provisioning(sp_id, app_id)

    async def probe(self, context: StepContext) -> StepCheckResult:
        sp_id = context.outputs[OutputKeys.PROVISIONING_SP_OBJECT_ID]
        job_id = context.outputs.get(OutputKeys.PROVISIONING_JOB_ID)
        if job_id:
            result = await self._check_job_details(sp_id, job_id, context)
            if result.completed:
                return result
        if context.outputs.get(OutputKeys.FLAG_M3_PROV_CREDS_CONFIGURED):
            return StepCheckResult(
                completed=True, message="Provisioning connection marked authorized."
            )
        return StepCheckResult(
            completed=False, message="Provisioning connection not yet authorized."
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        sp_id, app_id = self._provisioning_ids(context.outputs)
        jobs = await self.microsoft.list_sync_jobs(sp_id, context.logger)
        job = next((item for item in jobs if item.get("templateId") == SYNC_TEMPLATE_ID), None)
        if job is None:
            try:
                job = await self.microsoft.create_sync_job(sp_id, context.logger)
            except AlreadyExistsError:
                jobs = await self.microsoft.list_sync_jobs(sp_id, context.logger)
                job = jobs[0] if jobs else {}

        outputs: Dict[str, Any] = {OutputKeys.FLAG_M3_PROV_CREDS_CONFIGURED: True}
        if job.get("id"):
            outputs[OutputKeys.PROVISIONING_JOB_ID] = job["id"]
        return StepExecutionResult(
            success=True,
            message=(
                "ACTION REQUIRED: In the Azure portal, open the provisioning app, click "
                "'Authorize', and sign in with the Google provisioning user created in G-2. "
                "After testing the connection, mark this step complete."
            ),
            outputs=outputs,
            resource_url=self.portals.enterprise_app_provisioning(sp_id, app_id),
        )


class ConfigureAttributeMappings(MicrosoftStep, Checkable, Executable):
    id = "M-4"
    title = "Configure Attribute Mappings (Provisioning)"
    description = "Set up how user data syncs between systems"
    details = (
        "Configures attribute mappings so Azure AD fields sync correctly to Google "
        "Workspace."
    )
    category = "Microsoft"
    activity = "Provisioning"
    requires = ("M-3",)
    inputs = (
        key_input(OutputKeys.PROVISIONING_SP_OBJECT_ID, "M-1", "Provisioning service principal"),
        key_input(OutputKeys.PROVISIONING_JOB_ID, "M-3", "Synchronization job id"),
        key_input(OutputKeys.PROVISIONING_APP_ID, "M-1", "Provisioning app client id"),
    )
    outputs = (
        StepOutput(
            key=OutputKeys.FLAG_M4_PROV_MAPPINGS_CONFIGURED,
            description="Attribute mappings configured",
        ),
    )
    check_requires = (OutputKeys.PROVISIONING_SP_OBJECT_ID, OutputKeys.PROVISIONING_JOB_ID)
    required_outputs = (
        OutputKeys.PROVISIONING_SP_OBJECT_ID,
        OutputKeys.PROVISIONING_JOB_ID,
        OutputKeys.PROVISIONING_APP_ID,
    )

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        sp_id, app_id = self._provisioning_ids(outputs)
        if not sp_id or not app_id:
            return None
        return self.portals.enterprise_app_provisioning(sp_id, app_id)

    async def probe(self, context: StepContext) -> StepCheckResult:
        sp_id = context.outputs[OutputKeys.PROVISIONING_SP_OBJECT_ID]
        job_id = context.outputs[OutputKeys.PROVISIONING_JOB_ID]
        schema = await self.microsoft.get_sync_schema(sp_id, job_id, context.logger)
        if schema is None:
            return StepCheckResult(
                completed=False,
                message="Synchronization schema or job not found. Mappings cannot be checked.",
            )

        mappings: list = []
        for rule in schema.get("synchronizationRules") or []:
            for object_mapping in rule.get("objectMappings") or []:
                if (
                    (object_mapping.get("targetObjectName") or "").lower() == "user"
                    and (object_mapping.get("sourceObjectName") or "").lower() == "user"
                ):
                    mappings = object_mapping.get("attributeMappings") or []
                    break
            if mappings:
                break

        if _mapping_present(mappings, "userName", "userPrincipalName") and _mapping_present(
            mappings, WORK_EMAIL_ATTRIBUTE, "mail"
        ):
            return StepCheckResult(
                completed=True,
                message=(
                    "Key default attribute mappings (UPN to userName, mail to work email) "
                    "appear to be configured."
                ),
            )
        return StepCheckResult(
            completed=False,
            message="Key default attribute mappings not fully confirmed or schema/job not found.",
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        sp_id, app_id = self._provisioning_ids(context.outputs)
        job_id = context.outputs[OutputKeys.PROVISIONING_JOB_ID]
        try:
            await self.microsoft.put_sync_schema(
                sp_id, job_id, ATTRIBUTE_MAPPING_SCHEMA, context.logger
            )
        except AlreadyExistsError:
            logger.info(f"Attribute mappings already present on job {job_id}")
        return StepExecutionResult(
            success=True,
            message=(
                "Default attribute mappings configured. Review in Azure Portal; customize "
                "if specific needs exist."
            ),
            outputs={OutputKeys.FLAG_M4_PROV_MAPPINGS_CONFIGURED: True},
            resource_url=self.portals.enterprise_app_provisioning(sp_id, app_id),
        )


class StartProvisioning(MicrosoftStep, Checkable, Executable):
    id = "M-5"
    title = "Define Scope & Start Provisioning Job"
    description = (
        "Starts the Azure AD provisioning job. Configure the provisioning scope in the "
        "Azure Portal before starting."
    )
    details = (
        "Starts the synchronization job. Azure AD begins syncing users and groups to "
        "Google Workspace."
    )
    category = "Microsoft"
    activity = "Provisioning"
    requires = ("M-4",)
    inputs = ConfigureAttributeMappings.inputs
    check_requires = (OutputKeys.PROVISIONING_SP_OBJECT_ID, OutputKeys.PROVISIONING_JOB_ID)
    required_outputs = ConfigureAttributeMappings.required_outputs

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        sp_id, app_id = self._provisioning_ids(outputs)
        if not sp_id or not app_id:
            return None
        return self.portals.enterprise_app_provisioning(sp_id, app_id)

    async def probe(self, context: StepContext) -> StepCheckResult:
        result = await self._check_job_details(
            context.outputs[OutputKeys.PROVISIONING_SP_OBJECT_ID],
            context.outputs[OutputKeys.PROVISIONING_JOB_ID],
            context,
        )
        if result.completed and result.outputs.get("provisioningJobState") == "Active":
            return StepCheckResult(completed=True, message="Provisioning job is active.")
        return StepCheckResult(completed=False, message="Provisioning job is not active.")

    async def apply(self, context: StepContext) -> StepExecutionResult:
        sp_id, app_id = self._provisioning_ids(context.outputs)
        await self.microsoft.start_sync_job(
            sp_id, context.outputs[OutputKeys.PROVISIONING_JOB_ID], context.logger
        )
        return StepExecutionResult(
            success=True,
            message=(
                "User provisioning job started. Monitor its progress in the Azure Portal. "
                "Ensure user/group scope for provisioning is correctly set in Azure."
            ),
            resource_url=self.portals.enterprise_app_provisioning(sp_id, app_id),
        )


# ----------------------------------------------------------------------
# SAML single sign-on


class CreateSamlApp(MicrosoftStep, Checkable, Executable):
    id = "M-6"
    title = "Create Azure AD Enterprise App for SAML SSO"
    description = (
        "Adds a second instance of the 'Google Cloud / G Suite Connector by Microsoft' "
        "gallery app, dedicated to SAML Single Sign-On."
    )
    details = (
        "Creates a second gallery application specifically for SAML single sign-on with "
        "Google Workspace."
    )
    category = "SSO"
    activity = "SSO"
    outputs = (
        StepOutput(key=OutputKeys.SAML_SSO_APP_ID, description="SAML app client id"),
        StepOutput(key=OutputKeys.SAML_SSO_APP_OBJECT_ID, description="SAML application object id"),
        StepOutput(key=OutputKeys.SAML_SSO_SP_OBJECT_ID, description="SAML service principal id"),
    )
    check_requires = (OutputKeys.SAML_SSO_APP_ID,)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        sp_id, app_id = self._saml_ids(outputs)
        if not sp_id or not app_id:
            return None
        return self.portals.enterprise_app_overview(sp_id, app_id)

    async def probe(self, context: StepContext) -> StepCheckResult:
        return await self._check_service_principal(
            context.outputs[OutputKeys.SAML_SSO_APP_ID],
            context,
            (
                OutputKeys.SAML_SSO_SP_OBJECT_ID,
                OutputKeys.SAML_SSO_APP_ID,
                OutputKeys.SAML_SSO_APP_OBJECT_ID,
            ),
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        try:
            created = await self.microsoft.create_enterprise_app(
                SAML_APP_NAME, logger=context.logger
            )
        except AlreadyExistsError:
            return await _existing_app_result(
                self, SAML_APP_NAME, "for SAML SSO", context,
                (
                    OutputKeys.SAML_SSO_APP_ID,
                    OutputKeys.SAML_SSO_APP_OBJECT_ID,
                    OutputKeys.SAML_SSO_SP_OBJECT_ID,
                ),
            )
        application = created["application"]
        sp = created["servicePrincipal"]
        return StepExecutionResult(
            success=True,
            message=f"Enterprise app '{SAML_APP_NAME}' for SAML SSO created.",
            resource_url=self.portals.enterprise_app_overview(sp["id"], application["appId"]),
            outputs={
                OutputKeys.SAML_SSO_APP_ID: application["appId"],
                OutputKeys.SAML_SSO_APP_OBJECT_ID: application["id"],
                OutputKeys.SAML_SSO_SP_OBJECT_ID: sp["id"],
            },
        )


class ConfigureSamlApp(MicrosoftStep, Checkable, Executable):
    id = "M-7"
    title = "Configure Azure AD SAML App for Google"
    description = (
        "Configure the Identifier (Entity ID) and Reply URL (ACS URL) obtained from "
        "Google in G-5 on the Azure AD SAML app."
    )
    details = (
        "Updates the SAML application with Google's ACS URL and entity ID. Verify that "
        "NameID maps to the UPN in the portal."
    )
    category = "SSO"
    activity = "SSO"
    requires = ("M-6", "G-5")
    inputs = (
        key_input(OutputKeys.SAML_SSO_APP_OBJECT_ID, "M-6", "SAML application object id"),
        key_input(OutputKeys.SAML_SSO_SP_OBJECT_ID, "M-6", "SAML service principal id"),
        key_input(OutputKeys.SAML_SSO_APP_ID, "M-6", "SAML app client id"),
        key_input(OutputKeys.GOOGLE_SAML_SP_ENTITY_ID, "G-5", "Google SP entity id"),
        key_input(OutputKeys.GOOGLE_SAML_ACS_URL, "G-5", "Google ACS URL"),
    )
    outputs = (
        StepOutput(
            key=OutputKeys.FLAG_M7_SAML_APP_SETTINGS_CONFIGURED,
            description="SAML app settings configured",
        ),
    )
    check_requires = (
        OutputKeys.SAML_SSO_APP_OBJECT_ID,
        OutputKeys.GOOGLE_SAML_SP_ENTITY_ID,
        OutputKeys.GOOGLE_SAML_ACS_URL,
    )
    required_outputs = tuple(item.key for item in inputs)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        sp_id, app_id = self._saml_ids(outputs)
        if not sp_id or not app_id:
            return None
        return self.portals.enterprise_app_sso(sp_id, app_id)

    async def probe(self, context: StepContext) -> StepCheckResult:
        object_id = context.outputs[OutputKeys.SAML_SSO_APP_OBJECT_ID]
        entity_id = context.outputs[OutputKeys.GOOGLE_SAML_SP_ENTITY_ID]
        acs_url = context.outputs[OutputKeys.GOOGLE_SAML_ACS_URL]
        app = await self.microsoft.get_application(object_id, context.logger)
        if app is None:
            return StepCheckResult(
                completed=False, message=f"Application with Object ID '{object_id}' not found."
            )
        identifier_uris = app.get("identifierUris") or []
        redirect_uris = (app.get("web") or {}).get("redirectUris") or []
        has_identifier = entity_id in identifier_uris
        has_reply_url = acs_url in redirect_uris
        if has_identifier and has_reply_url:
            return StepCheckResult(
                completed=True,
                message="Azure AD SAML app settings (Entity ID, Reply URL) correctly configured.",
            )
        problems = []
        if not has_identifier:
            problems.append(
                f"Expected Identifier URI '{entity_id}' not found in {identifier_uris}."
            )
        if not has_reply_url:
            problems.append(f"Expected Reply URL '{acs_url}' not found in {redirect_uris}.")
        return StepCheckResult(
            completed=False,
            message="Azure AD SAML app settings not fully configured: " + " ".join(problems),
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        sp_id, app_id = self._saml_ids(context.outputs)
        updated = await self.microsoft.update_application(
            context.outputs[OutputKeys.SAML_SSO_APP_OBJECT_ID],
            {
                "identifierUris": [
                    context.outputs[OutputKeys.GOOGLE_SAML_SP_ENTITY_ID],
                    f"https://{context.domain}",
                ],
                "web": {
                    "redirectUris": [context.outputs[OutputKeys.GOOGLE_SAML_ACS_URL]],
                    "implicitGrantSettings": {
                        "enableIdTokenIssuance": False,
                        "enableAccessTokenIssuance": False,
                    },
                },
            },
            context.logger,
        )
        if not updated:
            logger.info("SAML app settings were already in place")
        return StepExecutionResult(
            success=True,
            message=(
                "Azure AD SAML app (Identifier URIs, Reply URL) configured. Verify 'User "
                "Attributes & Claims' (NameID should be UPN) manually in Azure Portal."
            ),
            outputs={OutputKeys.FLAG_M7_SAML_APP_SETTINGS_CONFIGURED: True},
            resource_url=self.portals.enterprise_app_sso(sp_id, app_id),
        )


class RetrieveIdpMetadata(MicrosoftStep, Checkable, Executable):
    id = "M-8"
    title = "Retrieve Azure AD IdP SAML Metadata for Google"
    description = (
        "Obtains the SAML signing certificate, login URL and Azure AD identifier from the "
        "SAML app. Google needs these to complete SAML setup."
    )
    details = (
        "Retrieves the Azure AD federation metadata XML which includes the IdP entity ID, "
        "login URL and certificate."
    )
    category = "SSO"
    activity = "SSO"
    requires = ("M-7",)
    inputs = (
        key_input(OutputKeys.SAML_SSO_APP_ID, "M-6", "SAML app client id"),
        key_input(OutputKeys.SAML_SSO_SP_OBJECT_ID, "M-6", "SAML service principal id"),
    )
    outputs = (
        StepOutput(key=OutputKeys.IDP_CERTIFICATE_BASE64, description="Signing certificate"),
        StepOutput(key=OutputKeys.IDP_SSO_URL, description="Azure AD login URL"),
        StepOutput(key=OutputKeys.IDP_ENTITY_ID, description="Azure AD identifier"),
    )
    required_outputs = (OutputKeys.SAML_SSO_APP_ID, OutputKeys.SAML_SSO_SP_OBJECT_ID)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        sp_id, app_id = self._saml_ids(outputs)
        if not sp_id or not app_id:
            return None
        return self.portals.enterprise_app_sso(sp_id, app_id)

    async def probe(self, context: StepContext) -> StepCheckResult:
        keys = (OutputKeys.IDP_CERTIFICATE_BASE64, OutputKeys.IDP_SSO_URL, OutputKeys.IDP_ENTITY_ID)
        if all(context.outputs.get(key) for key in keys):
            return StepCheckResult(completed=True, message="Azure AD IdP metadata retrieved.")
        return StepCheckResult(completed=False, message="Azure AD IdP metadata not retrieved.")

    async def apply(self, context: StepContext) -> StepExecutionResult:
        sp_id, app_id = self._saml_ids(context.outputs)
        metadata = await self.microsoft.get_saml_metadata(
            context.tenant_id, app_id, context.logger
        )
        return StepExecutionResult(
            success=True,
            message="Azure AD IdP SAML metadata (Entity ID, SSO URL, Certificate) retrieved.",
            outputs={
                OutputKeys.IDP_CERTIFICATE_BASE64: metadata.certificate,
                OutputKeys.IDP_SSO_URL: metadata.sso_url,
                OutputKeys.IDP_ENTITY_ID: metadata.entity_id,
            },
            resource_url=self.portals.enterprise_app_sso(sp_id, app_id),
        )


class AssignUsersSso(MicrosoftStep, Checkable, Executable):
    id = "M-9"
    title = "Assign Users/Groups to Azure AD SSO App"
    description = (
        "Assign the relevant users or groups to the Google Workspace SAML SSO application "
        "so they can sign in via Azure AD."
    )
    details = "Assigns users or groups to the SSO application so they can sign in to Google."
    category = "SSO"
    activity = "SSO"
    automatability = Automatability.SUPERVISED
    requires = ("M-6",)
    inputs = (
        key_input(OutputKeys.SAML_SSO_SP_OBJECT_ID, "M-6", "SAML service principal id"),
        key_input(OutputKeys.SAML_SSO_APP_ID, "M-6", "SAML app client id"),
    )
    check_requires = (OutputKeys.SAML_SSO_SP_OBJECT_ID,)
    required_outputs = (OutputKeys.SAML_SSO_SP_OBJECT_ID, OutputKeys.SAML_SSO_APP_ID)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        sp_id, app_id = self._saml_ids(outputs)
        if not sp_id or not app_id:
            return None
        return self.portals.enterprise_app_users(sp_id, app_id)

    async def probe(self, context: StepContext) -> StepCheckResult:
        sp_id = context.outputs[OutputKeys.SAML_SSO_SP_OBJECT_ID]
        try:
            assignments = await self.microsoft.list_app_role_assignments(sp_id, context.logger)
        except APIError as exc:
            if exc.status == HTTP_NOT_FOUND:
                return StepCheckResult(
                    completed=False,
                    message=f"Service Principal '{sp_id}' not found for checking assignments.",
                )
            raise
        if assignments:
            return StepCheckResult(completed=True, message="Application has user/group assignments.")
        return StepCheckResult(
            completed=False,
            message=(
                "Application currently has no user/group assignments. Users must be "
                "assigned for SSO access."
            ),
        )

    async def apply(self, context: StepContext) -> StepExecutionResult:
        sp_id, app_id = self._saml_ids(context.outputs)
        return StepExecutionResult(
            success=True,
            message=(
                f"Guidance: Assign users/groups to the '{SAML_APP_NAME}' app in Azure AD via "
                "its 'Users and groups' section to grant them SSO access."
            ),
            resource_url=self.portals.enterprise_app_users(sp_id, app_id),
        )


class ValidateSso(MicrosoftStep, Checkable):
    id = "M-10"
    title = "Test & Validate SSO Sign-in"
    description = (
        "Manual: Test the complete SAML SSO flow by signing in to a Google service with an "
        "Azure AD user assigned to the SSO app."
    )
    details = (
        "Tests the single sign-on flow using an assigned user account to confirm that "
        "authentication works as expected."
    )
    category = "SSO"
    activity = "SSO"
    automatability = Automatability.MANUAL
    automatable = False
    requires = ("G-7", "M-9")
    inputs = (
        completion_input("G-7", "SAML profile assigned in Google"),
        completion_input("M-9", "Users assigned to the SSO app"),
    )
    outputs = (StepOutput(key=OutputKeys.FLAG_M10_SSO_TESTED, description="SSO sign-in tested"),)

    def configure_url(self, outputs: Mapping[str, Any]) -> Optional[str]:
        return self.portals.my_apps()

    async def probe(self, context: StepContext) -> StepCheckResult:
        if context.outputs.get(OutputKeys.FLAG_M10_SSO_TESTED):
            return StepCheckResult(completed=True, message="SSO sign-in tested.")
        return StepCheckResult(completed=False, message="Manual testing required.")


MICROSOFT_STEPS = (
    CreateProvisioningApp,
    EnableProvisioningSp,
    AuthorizeProvisioning,
    ConfigureAttributeMappings,
    StartProvisioning,
    CreateSamlApp,
    ConfigureSamlApp,
    RetrieveIdpMetadata,
    AssignUsersSso,
    ValidateSso,
)
