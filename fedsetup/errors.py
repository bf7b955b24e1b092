"""Exception hierarchy and provider error translation."""

from __future__ import annotations

import re
from typing import Optional

from .constants import Provider, StepErrorCode

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


class APIError(Exception):
    """An upstream provider rejected a call, or a call could not be made."""

    def __init__(self, message: str, status: int, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status={self.status}, code={self.code!r})"


class AuthenticationError(APIError):
    """Provider credentials are missing or expired."""

    def __init__(
        self,
        message: str,
        provider: Provider | str,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, HTTP_UNAUTHORIZED, StepErrorCode.AUTH_EXPIRED.value)
        self.provider = Provider(provider)
        self.original_error = original_error


class AlreadyExistsError(APIError):
    def __init__(self, message: str) -> None:
        super().__init__(message, HTTP_CONFLICT, StepErrorCode.ALREADY_EXISTS.value)


class StepValidationError(Exception):
    """A caller or configuration precondition was not met."""

    def __init__(self, message: str, code: str = StepErrorCode.VALIDATION_ERROR.value) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class StepNotFoundError(LookupError):
    """Raised for step ids that are not part of the registry."""

    def __init__(self, step_id: str) -> None:
        super().__init__(f"Step {step_id} not found in registry")
        self.step_id = step_id


_AUTH_MESSAGE_PATTERNS = (
    "invalid authentication credentials",
    "OAuth 2 access token",
    "Token has been expired or revoked",
    "InvalidAuthenticationToken",
    "Access token validation failure",
    "CompactToken parsing failed",
    "Lifetime validation failed",
)


def is_authentication_error(error: BaseException) -> bool:
    if isinstance(error, AuthenticationError):
        return True
    if not isinstance(error, APIError):
        return False
    if error.status == HTTP_UNAUTHORIZED:
        return True
    return any(pattern in (error.message or "") for pattern in _AUTH_MESSAGE_PATTERNS)


def wrap_auth_error(error: BaseException, provider: Provider | str) -> AuthenticationError:
    """Convert an authentication failure into a provider-tagged error."""
    provider = Provider(provider)
    if isinstance(error, AuthenticationError):
        return error
    if isinstance(error, APIError) and error.status == HTTP_UNAUTHORIZED:
        name = "Google Workspace" if provider is Provider.GOOGLE else "Microsoft"
        return AuthenticationError(
            f"{name} authentication expired. Please sign in again.", provider, error
        )
    return AuthenticationError(
        f"Authentication failed for {provider.value}. Please sign in again.",
        provider,
        error,
    )


_ENABLEMENT_PATTERNS = (
    (
        re.compile(r"Cloud Identity API has not been used in project (\d+) before or it is disabled"),
        "Google Cloud Identity API",
        "cloudidentity.googleapis.com",
    ),
    (
        re.compile(r"Admin SDK API has not been used in project (\d+) before or it is disabled"),
        "Google Admin SDK API",
        "admin.googleapis.com",
    ),
)


def is_api_enablement_error(error: BaseException) -> bool:
    if not isinstance(error, APIError) or error.status != HTTP_FORBIDDEN:
        return False
    return any(pattern.search(error.message or "") for pattern, _, _ in _ENABLEMENT_PATTERNS)


def enablement_url(service: str, project_id: str) -> str:
    return f"https://console.developers.google.com/apis/api/{service}/overview?project={project_id}"


def create_enablement_error(error: APIError) -> APIError:
    """Rewrite a disabled-API error into an actionable message.

    The status is preserved and the code becomes ``API_NOT_ENABLED``. Errors
    that do not match a known pattern are returned unchanged.
    """
    for pattern, api_name, service in _ENABLEMENT_PATTERNS:
        match = pattern.search(error.message or "")
        if not match:
            continue
        url = enablement_url(service, match.group(1))
        message = (
            f"{api_name} is not enabled for your Google Cloud project.\n\n"
            "To fix this:\n"
            f"1. Click here to enable the API: {url}\n"
            "2. Wait 2-3 minutes for the change to propagate\n"
            "3. Try this step again\n\n"
            f"Original error: {error.message}"
        )
        return APIError(message, error.status, StepErrorCode.API_NOT_ENABLED.value)
    return error
