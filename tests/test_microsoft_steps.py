import httpx
import pytest

from fedsetup.constants import OutputKeys, StepErrorCode
from fedsetup.contracts import StepContext
from fedsetup.steps import build_registry
from fedsetup.steps.microsoft import WORK_EMAIL_ATTRIBUTE

DOMAIN = "example.com"
TENANT_ID = "tenant-123"

PROVISIONING = {
    OutputKeys.PROVISIONING_APP_ID: "app-1",
    OutputKeys.PROVISIONING_SP_OBJECT_ID: "sp-1",
}
SAML_APP = {
    OutputKeys.SAML_SSO_APP_ID: "app-2",
    OutputKeys.SAML_SSO_APP_OBJECT_ID: "obj-2",
    OutputKeys.SAML_SSO_SP_OBJECT_ID: "sp-2",
}

METADATA_XML = """<?xml version="1.0"?>
<EntityDescriptor entityID="https://sts.windows.net/tenant-123/">
  <IDPSSODescriptor>
    <KeyDescriptor use="signing"><KeyInfo><X509Data>
      <X509Certificate>MIIC8DCCAdigAwIBAgIQ</X509Certificate>
    </X509Data></KeyInfo></KeyDescriptor>
    <SingleSignOnService Binding="urn:oasis:names:tc:SAML:2.0:bindings:HTTP-Redirect"
      Location="https://login.microsoftonline.com/tenant-123/saml2" />
  </IDPSSODescriptor>
</EntityDescriptor>"""


def _context(**outputs):
    return StepContext(domain=DOMAIN, tenant_id=TENANT_ID, outputs=outputs)


@pytest.mark.asyncio
async def test_create_provisioning_app(apis, providers):
    providers.json(
        "POST",
        "/applicationTemplates/",
        {"application": {"appId": "app-1", "id": "obj-1"}, "servicePrincipal": {"id": "sp-1"}},
    )
    registry = build_registry(apis)

    result = await registry.execute_step("M-1", _context())

    assert result.success is True
    assert result.outputs == {
        OutputKeys.PROVISIONING_APP_ID: "app-1",
        OutputKeys.PROVISIONING_APP_OBJECT_ID: "obj-1",
        OutputKeys.PROVISIONING_SP_OBJECT_ID: "sp-1",
    }
    assert "servicePrincipalId/sp-1/appId/app-1" in result.resource_url
    body = providers.bodies("POST", "/applicationTemplates/")[0]
    assert body == {"displayName": "Google Workspace User Provisioning"}


@pytest.mark.asyncio
async def test_create_provisioning_app_recovers_existing(apis, providers):
    providers.error("POST", "/applicationTemplates/", 409, "Conflict")
    providers.json("GET", "/applications?", {"value": [{"appId": "app-1", "id": "obj-1"}]})
    providers.json("GET", "/servicePrincipals?", {"value": [{"id": "sp-1", "appId": "app-1"}]})
    registry = build_registry(apis)

    result = await registry.execute_step("M-1", _context())

    assert result.success is True
    assert "already exists" in result.message
    assert result.outputs[OutputKeys.PROVISIONING_SP_OBJECT_ID] == "sp-1"


@pytest.mark.asyncio
async def test_check_service_principal_disabled(apis, providers):
    providers.json("GET", "/servicePrincipals/sp-1", {"id": "sp-1", "accountEnabled": False})
    registry = build_registry(apis)

    result = await registry.check_step("M-2", _context(**PROVISIONING))

    assert result.completed is False
    assert result.message == "Service Principal is not enabled."


@pytest.mark.asyncio
async def test_enable_service_principal_patches_account(apis, providers):
    providers.add("PATCH", "/servicePrincipals/sp-1", httpx.Response(204))
    registry = build_registry(apis)

    result = await registry.execute_step("M-2", _context(**PROVISIONING))

    assert result.success is True
    assert result.outputs[OutputKeys.FLAG_M2_PROV_APP_PROPS_CONFIGURED] is True
    assert providers.bodies("PATCH", "/servicePrincipals/sp-1") == [{"accountEnabled": True}]


@pytest.mark.asyncio
async def test_authorize_provisioning_creates_sync_job(apis, providers):
    providers.json("GET", "/servicePrincipals/sp-1/synchronization/jobs", {"value": []})
    providers.json("POST", "/servicePrincipals/sp-1/synchronization/jobs", {"id": "job-1"})
    registry = build_registry(apis)

    result = await registry.execute_step("M-3", _context(**PROVISIONING))

    assert result.success is True
    assert result.outputs[OutputKeys.PROVISIONING_JOB_ID] == "job-1"
    assert result.outputs[OutputKeys.FLAG_M3_PROV_CREDS_CONFIGURED] is True
    assert "ProvisioningManagement" in result.resource_url


@pytest.mark.asyncio
async def test_check_attribute_mappings(apis, providers):
    providers.json(
        "GET",
        "/synchronization/jobs/job-1/schema",
        {
            "synchronizationRules": [
                {
                    "objectMappings": [
                        {
                            "sourceObjectName": "User",
                            "targetObjectName": "User",
                            "attributeMappings": [
                                {
                                    "targetAttributeName": "userName",
                                    "source": {"expression": "[userPrincipalName]"},
                                },
                                {
                                    "targetAttributeName": WORK_EMAIL_ATTRIBUTE,
                                    "source": {"expression": "[mail]"},
                                },
                            ],
                        }
                    ]
                }
            ]
        },
    )
    registry = build_registry(apis)

    result = await registry.check_step(
        "M-4", _context(**PROVISIONING, **{OutputKeys.PROVISIONING_JOB_ID: "job-1"})
    )

    assert result.completed is True


@pytest.mark.asyncio
async def test_start_provisioning_check_rejects_invalid_credentials(apis, providers):
    providers.json(
        "GET",
        "/synchronization/jobs/job-1",
        {
            "id": "job-1",
            "schedule": {"state": "Active"},
            "status": {
                "lastExecution": {
                    "error": {"code": "InvalidCredentials", "message": "Bad admin credentials"}
                }
            },
        },
    )
    registry = build_registry(apis)

    result = await registry.check_step(
        "M-5", _context(**PROVISIONING, **{OutputKeys.PROVISIONING_JOB_ID: "job-1"})
    )

    assert result.completed is False


@pytest.mark.asyncio
async def test_start_provisioning_check_active_job(apis, providers):
    providers.json("GET", "/synchronization/jobs/job-1", {"id": "job-1", "schedule": {"state": "Active"}})
    registry = build_registry(apis)

    result = await registry.check_step(
        "M-5", _context(**PROVISIONING, **{OutputKeys.PROVISIONING_JOB_ID: "job-1"})
    )

    assert result.completed is True


@pytest.mark.asyncio
async def test_check_saml_app_reports_missing_reply_url(apis, providers):
    providers.json(
        "GET",
        "/applications/obj-2",
        {"identifierUris": ["google.com/a/example.com"], "web": {"redirectUris": []}},
    )
    registry = build_registry(apis)

    result = await registry.check_step(
        "M-7",
        _context(
            **SAML_APP,
            **{
                OutputKeys.GOOGLE_SAML_SP_ENTITY_ID: "google.com/a/example.com",
                OutputKeys.GOOGLE_SAML_ACS_URL: "https://www.google.com/a/example.com/acs",
            },
        ),
    )

    assert result.completed is False
    assert "Reply URL" in result.message
    assert "Identifier URI" not in result.message


@pytest.mark.asyncio
async def test_retrieve_idp_metadata(apis, providers):
    providers.add(
        "GET",
        "/tenant-123/federationmetadata/2007-06/federationmetadata.xml",
        httpx.Response(200, text=METADATA_XML),
    )
    registry = build_registry(apis)

    result = await registry.execute_step("M-8", _context(**SAML_APP))

    assert result.success is True
    assert result.outputs == {
        OutputKeys.IDP_CERTIFICATE_BASE64: "MIIC8DCCAdigAwIBAgIQ",
        OutputKeys.IDP_SSO_URL: "https://login.microsoftonline.com/tenant-123/saml2",
        OutputKeys.IDP_ENTITY_ID: "https://sts.windows.net/tenant-123/",
    }
    request = providers.requests[0]
    assert request.url.params["appid"] == "app-2"


@pytest.mark.asyncio
async def test_check_assignments_missing_service_principal(apis, providers):
    providers.error("GET", "/servicePrincipals/sp-2/appRoleAssignedTo", 404, "Resource not found")
    registry = build_registry(apis)

    result = await registry.check_step("M-9", _context(**SAML_APP))

    assert result.completed is False
    assert result.message == "Service Principal 'sp-2' not found for checking assignments."


@pytest.mark.asyncio
async def test_sso_test_step_is_check_only(apis, providers):
    registry = build_registry(apis)

    pending = await registry.check_step("M-10", _context())
    tested = await registry.check_step("M-10", _context(**{OutputKeys.FLAG_M10_SSO_TESTED: True}))
    executed = await registry.execute_step("M-10", _context())

    assert pending.message == "Manual testing required."
    assert tested.completed is True
    assert executed.success is False
    assert executed.error.code == StepErrorCode.NO_EXECUTE_FUNCTION.value


@pytest.mark.asyncio
async def test_expired_microsoft_token_fails_execution(apis, providers):
    providers.error(
        "POST", "/applicationTemplates/", 401, "InvalidAuthenticationToken: Access token has expired"
    )
    registry = build_registry(apis)

    result = await registry.execute_step("M-1", _context())

    assert result.success is False
    assert result.error.is_auth_expired
    assert result.outputs["errorProvider"] == "microsoft"


SAML_CONFIG = {
    **SAML_APP,
    OutputKeys.GOOGLE_SAML_SP_ENTITY_ID: "google.com/a/example.com",
    OutputKeys.GOOGLE_SAML_ACS_URL: "https://www.google.com/a/example.com/acs",
}


@pytest.mark.asyncio
async def test_start_provisioning_job(apis, providers):
    providers.add("POST", "/synchronization/jobs/job-1/start", httpx.Response(204))
    registry = build_registry(apis)

    result = await registry.execute_step(
        "M-5", _context(**PROVISIONING, **{OutputKeys.PROVISIONING_JOB_ID: "job-1"})
    )

    assert result.success is True
    assert "provisioning job started" in result.message
    assert "ProvisioningManagement" in result.resource_url
    assert providers.bodies("POST", "/servicePrincipals/sp-1/synchronization/jobs/job-1/start") == [{}]


@pytest.mark.asyncio
async def test_start_provisioning_requires_job(apis, providers):
    registry = build_registry(apis)

    result = await registry.execute_step("M-5", _context(**PROVISIONING))

    assert result.success is False
    assert result.error.code == StepErrorCode.MISSING_DEPENDENCY.value
    assert "M-3" in result.error.message
    assert providers.requests == []


@pytest.mark.asyncio
async def test_create_saml_app(apis, providers):
    providers.json(
        "POST",
        "/applicationTemplates/",
        {"application": {"appId": "app-2", "id": "obj-2"}, "servicePrincipal": {"id": "sp-2"}},
    )
    registry = build_registry(apis)

    result = await registry.execute_step("M-6", _context())

    assert result.success is True
    assert result.outputs == SAML_APP
    assert "servicePrincipalId/sp-2/appId/app-2" in result.resource_url
    body = providers.bodies("POST", "/applicationTemplates/")[0]
    assert body == {"displayName": "Google Workspace SAML SSO"}


@pytest.mark.asyncio
async def test_create_saml_app_recovers_existing(apis, providers):
    providers.error("POST", "/applicationTemplates/", 409, "Conflict")
    providers.json("GET", "/applications?", {"value": [{"appId": "app-2", "id": "obj-2"}]})
    providers.json("GET", "/servicePrincipals?", {"value": [{"id": "sp-2", "appId": "app-2"}]})
    registry = build_registry(apis)

    result = await registry.execute_step("M-6", _context())

    assert result.success is True
    assert "for SAML SSO already exists" in result.message
    assert result.outputs == SAML_APP


@pytest.mark.asyncio
async def test_configure_saml_app_patches_identifiers(apis, providers):
    providers.add("PATCH", "/applications/obj-2", httpx.Response(204))
    registry = build_registry(apis)

    result = await registry.execute_step("M-7", _context(**SAML_CONFIG))

    assert result.success is True
    assert result.outputs == {OutputKeys.FLAG_M7_SAML_APP_SETTINGS_CONFIGURED: True}
    assert "SingleSignOn" in result.resource_url
    body = providers.bodies("PATCH", "/applications/obj-2")[0]
    assert body["identifierUris"] == ["google.com/a/example.com", "https://example.com"]
    assert body["web"]["redirectUris"] == ["https://www.google.com/a/example.com/acs"]


@pytest.mark.asyncio
async def test_configure_saml_app_conflict_is_success(apis, providers):
    providers.error("PATCH", "/applications/obj-2", 409, "Another object with the same value exists")
    registry = build_registry(apis)

    result = await registry.execute_step("M-7", _context(**SAML_CONFIG))

    assert result.success is True
    assert result.outputs[OutputKeys.FLAG_M7_SAML_APP_SETTINGS_CONFIGURED] is True


@pytest.mark.asyncio
async def test_assign_users_returns_guidance_only(apis, providers):
    registry = build_registry(apis)

    result = await registry.execute_step("M-9", _context(**SAML_APP))

    assert result.success is True
    assert result.message.startswith("Guidance:")
    assert "UsersAndGroups" in result.resource_url
    assert providers.requests == []


@pytest.mark.asyncio
async def test_check_assignments_present(apis, providers):
    providers.json(
        "GET", "/servicePrincipals/sp-2/appRoleAssignedTo", {"value": [{"principalId": "u-1"}]}
    )
    registry = build_registry(apis)

    result = await registry.check_step("M-9", _context(**SAML_APP))

    assert result.completed is True
