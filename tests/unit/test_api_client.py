import httpx
import pytest

from fedsetup.api import ApiClient, ApiLogger, RequestCache
from fedsetup.api.client import GENERIC_FAILURE, parse_json_response
from fedsetup.api.microsoft import parse_saml_metadata
from fedsetup.constants import Provider
from fedsetup.errors import APIError
from fedsetup.logstream import ServerLogger

URL = "https://graph.example/v1.0/applications"


async def _token():
    return "secret-token"


def _client(handler, **kwargs):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ApiClient(Provider.MICROSOFT, _token, lambda exc: exc, http=http, max_attempts=1, **kwargs)


def test_parse_json_response_error_shapes():
    with pytest.raises(APIError) as structured:
        parse_json_response(
            httpx.Response(404, json={"error": {"code": "Request_ResourceNotFound", "message": "Gone"}})
        )
    with pytest.raises(APIError) as bare:
        parse_json_response(httpx.Response(502, text="Bad Gateway"))

    assert (structured.value.status, structured.value.code) == (404, "Request_ResourceNotFound")
    assert structured.value.message == "Gone"
    assert bare.value.message == GENERIC_FAILURE
    assert parse_json_response(httpx.Response(204)) == {}


@pytest.mark.asyncio
async def test_requests_carry_bearer_token_and_are_logged_redacted():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"value": []})

    server_logger = ServerLogger()
    client = _client(handler, server_logger=server_logger)
    api_logger = ApiLogger()

    assert await client.get(URL, api_logger) == {"value": []}

    assert seen[0].headers["Authorization"] == "Bearer secret-token"
    entry = api_logger.get_logs()[0]
    assert entry.headers["Authorization"] == "Bearer [REDACTED]"
    assert entry.response_status == 200
    assert entry.provider == "microsoft"
    assert server_logger.get_recent_logs()[0].metadata["status"] == 200


@pytest.mark.asyncio
async def test_mutations_invalidate_cached_reads():
    calls = {"GET": 0, "POST": 0}

    def handler(request):
        calls[request.method] += 1
        return httpx.Response(200, json={"count": calls["GET"]})

    client = _client(handler, cache=RequestCache())

    assert await client.get(URL) == {"count": 1}
    assert await client.get(URL) == {"count": 1}
    await client.post(URL, {"displayName": "x"})
    assert await client.get(URL) == {"count": 2}


@pytest.mark.asyncio
async def test_error_hook_replaces_exception():
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "expired"}})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = ApiClient(
        Provider.GOOGLE, _token, lambda exc: LookupError("rewritten"), http=http, max_attempts=1
    )

    with pytest.raises(LookupError, match="rewritten"):
        await client.get(URL)


@pytest.mark.asyncio
async def test_get_text_raises_on_error_status():
    client = _client(lambda request: httpx.Response(503, text="busy"))

    with pytest.raises(APIError) as exc_info:
        await client.get_text(URL)
    assert exc_info.value.status == 503


def test_parse_saml_metadata():
    xml = (
        '<EntityDescriptor entityID="https://sts.windows.net/t/">'
        '<X509Certificate>\n  MIIB\n</X509Certificate>'
        '<SingleSignOnService Binding="urn:redirect" Location="https://login.example/saml2"/>'
        "</EntityDescriptor>"
    )

    metadata = parse_saml_metadata(xml)

    assert metadata.entity_id == "https://sts.windows.net/t/"
    assert metadata.sso_url == "https://login.example/saml2"
    assert metadata.certificate == "MIIB"
    with pytest.raises(APIError):
        parse_saml_metadata("<EntityDescriptor/>")
