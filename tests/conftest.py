"""Shared fixtures: mocked provider APIs and ready-made workflows."""

from __future__ import annotations

import json
from typing import Any, Callable, List, Optional, Tuple, Union

import httpx
import pytest

from fedsetup.api import build_provider_apis
from fedsetup.auth import Session, SessionValidator, TokenStore, TokenStoreSessionProvider
from fedsetup.config import FedSetupConfig, RetryConfig
from fedsetup.context import AppContext, reset_context
from fedsetup.persistence import InMemoryProgressRepository, ProgressRepository
from fedsetup.workflow import SetupWorkflow

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]

TENANT_ID = "tenant-123"


class MockProviders:
    """Route table standing in for the Google and Microsoft REST APIs.

    Routes match on method and a substring of the full URL; the most
    recently added match wins. Unmatched requests get a 404 error body.
    """

    def __init__(self) -> None:
        self.routes: List[Tuple[str, str, Responder]] = []
        self.requests: List[httpx.Request] = []

    def add(self, method: str, fragment: str, response: Responder) -> "MockProviders":
        self.routes.append((method.upper(), fragment, response))
        return self

    def json(self, method: str, fragment: str, payload: Any, status: int = 200) -> "MockProviders":
        return self.add(method, fragment, httpx.Response(status, json=payload))

    def error(self, method: str, fragment: str, status: int, message: str) -> "MockProviders":
        return self.json(method, fragment, {"error": {"message": message, "code": status}}, status)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        for method, fragment, response in reversed(self.routes):
            if request.method == method and fragment in url:
                return response(request) if callable(response) else response
        return httpx.Response(404, json={"error": {"message": f"No route for {url}"}})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def bodies(self, method: str, fragment: str) -> List[Any]:
        return [
            json.loads(request.content) if request.content else None
            for request in self.requests
            if request.method == method and fragment in str(request.url)
        ]


def signed_in_session() -> Session:
    return Session(
        user="admin@example.com",
        has_google_auth=True,
        has_microsoft_auth=True,
        google_token="google-token",
        microsoft_token="microsoft-token",
        microsoft_tenant_id=TENANT_ID,
    )


@pytest.fixture(autouse=True)
def _isolated_context():
    yield
    reset_context()


@pytest.fixture
def config() -> FedSetupConfig:
    return FedSetupConfig(retry=RetryConfig(attempts=1))


@pytest.fixture
def providers() -> MockProviders:
    return MockProviders()


@pytest.fixture
def token_store() -> TokenStore:
    store = TokenStore()
    store.set(signed_in_session())
    return store


@pytest.fixture
def apis(config, providers, token_store):
    validator = SessionValidator(TokenStoreSessionProvider(token_store))
    http = httpx.AsyncClient(transport=providers.transport())
    return build_provider_apis(config, validator, http=http)


@pytest.fixture
def make_workflow(config, providers):
    """Build a :class:`SetupWorkflow` talking to ``providers``."""

    def _make(
        session: Optional[Session] = None,
        repository: Optional[ProgressRepository] = None,
        signed_in: bool = True,
    ) -> SetupWorkflow:
        context = AppContext(config=config)
        if signed_in:
            context.token_store.set(session or signed_in_session())
        http = httpx.AsyncClient(transport=providers.transport())
        return SetupWorkflow(
            context, repository=repository or InMemoryProgressRepository(), http=http
        )

    return _make
