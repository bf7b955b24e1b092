"""URL builders for the provider APIs and admin consoles."""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote, urlencode

from ..config import ApiBases, PortalBases


def _q(value: str) -> str:
    return quote(value, safe="")


class GoogleUrls:
    """Directory (Admin SDK) and Cloud Identity endpoints."""

    def __init__(self, bases: ApiBases) -> None:
        self.directory = f"{bases.google_directory}/admin/directory/v1"
        self.identity = f"{bases.google_identity}/v1"
        self.oauth = bases.google_oauth

    def _customer(self, customer_id: str) -> str:
        return f"{self.directory}/customer/{_q(customer_id)}"

    def org_units(self, customer_id: str) -> str:
        return f"{self._customer(customer_id)}/orgunits"

    def org_unit(self, customer_id: str, ou_path: str) -> str:
        return f"{self.org_units(customer_id)}/{_q(ou_path.lstrip('/'))}"

    def users(self) -> str:
        return f"{self.directory}/users"

    def user(self, user_key: str) -> str:
        return (
            f"{self.directory}/users/{_q(user_key)}"
            "?fields=isAdmin,suspended,primaryEmail,name,id,orgUnitPath,customerId"
        )

    def userinfo(self) -> str:
        return f"{self.oauth}/v1/userinfo"

    def domains(self, customer_id: str) -> str:
        return f"{self._customer(customer_id)}/domains"

    def domain(self, customer_id: str, domain_name: str) -> str:
        return f"{self.domains(customer_id)}/{_q(domain_name)}"

    def role_assignments(self, customer_id: str, user_key: Optional[str] = None) -> str:
        url = f"{self._customer(customer_id)}/roleassignments"
        if user_key:
            url += "?" + urlencode({"userKey": user_key})
        return url

    def saml_profiles(self) -> str:
        return f"{self.identity}/inboundSamlSsoProfiles"

    def saml_profile(self, full_name: str, update_mask: Optional[str] = None) -> str:
        url = f"{self.identity}/{full_name}"
        if update_mask:
            url += "?" + urlencode({"updateMask": update_mask})
        return url

    def assign_saml_profile(self, full_name: str) -> str:
        return f"{self.identity}/{full_name}:assignToOrgUnits"

    def idp_credentials(self, full_name: str) -> str:
        return f"{self.identity}/{full_name}/idpCredentials"

    def add_idp_credentials(self, full_name: str) -> str:
        return f"{self.identity}/{full_name}/idpCredentials:add"


class MicrosoftUrls:
    """Microsoft Graph and login endpoints."""

    def __init__(self, bases: ApiBases) -> None:
        self.graph = bases.microsoft_graph
        self.login = bases.microsoft_login

    def applications(self, filter_expr: Optional[str] = None) -> str:
        url = f"{self.graph}/applications"
        if filter_expr:
            url += "?" + urlencode({"$filter": filter_expr})
        return url

    def application(self, object_id: str) -> str:
        return f"{self.graph}/applications/{object_id}?$select=id,appId,displayName,identifierUris,web"

    def application_update(self, object_id: str) -> str:
        return f"{self.graph}/applications/{object_id}"

    def service_principals(self, filter_expr: Optional[str] = None) -> str:
        params = {"$select": "id,appId,displayName,accountEnabled,appOwnerOrganizationId"}
        if filter_expr:
            params = {"$filter": filter_expr, **params}
        return f"{self.graph}/servicePrincipals?" + urlencode(params)

    def service_principal(self, sp_id: str) -> str:
        return f"{self.graph}/servicePrincipals/{sp_id}?$select=id,appId,displayName,accountEnabled"

    def service_principal_update(self, sp_id: str) -> str:
        return f"{self.graph}/servicePrincipals/{sp_id}"

    def app_role_assignments(self, sp_id: str) -> str:
        return f"{self.graph}/servicePrincipals/{sp_id}/appRoleAssignedTo"

    def sync_jobs(self, sp_id: str) -> str:
        return f"{self.graph}/servicePrincipals/{sp_id}/synchronization/jobs"

    def sync_job(self, sp_id: str, job_id: str) -> str:
        return f"{self.sync_jobs(sp_id)}/{job_id}"

    def sync_job_start(self, sp_id: str, job_id: str) -> str:
        return f"{self.sync_job(sp_id, job_id)}/start"

    def sync_job_schema(self, sp_id: str, job_id: str) -> str:
        return f"{self.sync_job(sp_id, job_id)}/schema"

    def instantiate_template(self, template_id: str) -> str:
        return f"{self.graph}/applicationTemplates/{template_id}/instantiate"

    def saml_metadata(self, tenant_id: str, app_id: str) -> str:
        return (
            f"{self.login}/{tenant_id}/federationmetadata/2007-06/federationmetadata.xml?"
            + urlencode({"appid": app_id})
        )


class PortalUrls:
    """Links into the Google Admin console and the Azure portal."""

    def __init__(self, bases: PortalBases) -> None:
        self.google_admin = bases.google_admin
        self.azure_portal = bases.azure_portal
        self._my_apps = bases.my_apps

    def org_units(self) -> str:
        return f"{self.google_admin}/ac/orgunits"

    def org_unit_details(self, ou_ref: str) -> str:
        """Accepts an org unit id (``id:...``) or an org unit path."""
        param = "ouid" if ou_ref.startswith("id:") else "ouPath"
        return f"{self.google_admin}/ac/orgunits/details?" + urlencode({param: ou_ref})

    def org_unit_by_id(self, ou_id: str) -> str:
        return f"{self.google_admin}/ac/orgunits?" + urlencode({"ouid": ou_id})

    def users(self) -> str:
        return f"{self.google_admin}/ac/users"

    def user_details(self, email: str) -> str:
        return f"{self.google_admin}/ac/users/{_q(email)}"

    def domains(self, domain: Optional[str] = None) -> str:
        url = f"{self.google_admin}/ac/domains/manage"
        if domain:
            url += "?" + urlencode({"domain": domain})
        return url

    def sso(self) -> str:
        return f"{self.google_admin}/ac/sso"

    def saml_profile(self, full_name: str) -> str:
        profile_id = full_name.rsplit("/", 1)[-1]
        if not profile_id:
            return self.sso()
        return (
            f"{self.google_admin}/ac/security/sso/sso-profiles/"
            f"inboundSamlSsoProfiles{_q('/' + profile_id)}"
        )

    def _managed_app(self, blade: str, sp_id: str, app_id: str, sp_label: str = "objectId") -> str:
        base = f"{self.azure_portal}/#view/Microsoft_AAD_IAM/ManagedAppMenuBlade/~/{blade}"
        if sp_label == "servicePrincipalId":
            return f"{base}/servicePrincipalId/{sp_id}/appId/{app_id}"
        return f"{base}/appId/{app_id}/objectId/{sp_id}"

    def enterprise_app_overview(self, sp_id: str, app_id: str) -> str:
        return self._managed_app("Overview", sp_id, app_id, "servicePrincipalId")

    def enterprise_app_provisioning(self, sp_id: str, app_id: str) -> str:
        return self._managed_app("ProvisioningManagement", sp_id, app_id)

    def enterprise_app_sso(self, sp_id: str, app_id: str) -> str:
        return self._managed_app("SingleSignOn", sp_id, app_id)

    def enterprise_app_users(self, sp_id: str, app_id: str) -> str:
        return self._managed_app("UsersAndGroups", sp_id, app_id, "servicePrincipalId")

    def my_apps(self) -> str:
        return self._my_apps
