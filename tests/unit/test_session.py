import pytest

from fedsetup.auth import Session, SessionValidator, TokenStore, TokenStoreSessionProvider
from fedsetup.constants import StepErrorCode
from fedsetup.errors import APIError


def _validator(session=None):
    store = TokenStore()
    if session is not None:
        store.set(session)
    return SessionValidator(TokenStoreSessionProvider(store)), store


@pytest.mark.asyncio
async def test_no_session():
    validator, _ = _validator()

    result = await validator.validate()

    assert result.valid is False
    assert result.error.provider == "both"
    assert result.error.code == StepErrorCode.NO_SESSION.value


@pytest.mark.asyncio
async def test_missing_provider_is_named():
    validator, _ = _validator(Session(has_google_auth=True, google_token="g"))

    result = await validator.validate()

    assert result.google_valid is True
    assert result.microsoft_valid is False
    assert result.error.provider == "microsoft"
    assert result.error.message == "Please sign in with Microsoft"


@pytest.mark.asyncio
async def test_flag_without_token_is_not_valid():
    validator, _ = _validator(
        Session(has_google_auth=True, has_microsoft_auth=True, microsoft_token="m")
    )

    result = await validator.validate()

    assert result.error.message == "Please sign in with Google"


@pytest.mark.asyncio
async def test_refresh_failure_cleans_up_session():
    validator, store = _validator(
        Session(
            error="RefreshTokenError",
            has_google_auth=True,
            has_microsoft_auth=True,
            google_token="g",
            microsoft_token="m",
        )
    )

    validation = await validator.validate()
    refreshed = await validator.refresh_if_needed()

    assert validation.error.code == StepErrorCode.REFRESH_TOKEN_ERROR.value
    assert refreshed is False
    assert store.get() is None


@pytest.mark.asyncio
async def test_require_both_providers_raises_401():
    validator, _ = _validator(Session(has_microsoft_auth=True, microsoft_token="m"))

    with pytest.raises(APIError) as exc_info:
        await validator.require_both_providers()

    assert exc_info.value.status == 401
    assert exc_info.value.message == "Please sign in with Google"


@pytest.mark.asyncio
async def test_token_getters():
    validator, _ = _validator(Session(has_google_auth=True, google_token="g"))

    assert await validator.get_google_token() == "g"
    with pytest.raises(APIError) as exc_info:
        await validator.get_microsoft_token()
    assert exc_info.value.code == StepErrorCode.MS_AUTH_REQUIRED.value


@pytest.mark.asyncio
async def test_refresh_uses_update_callback():
    validator, store = _validator(Session(has_google_auth=True, google_token="g"))
    calls = []

    async def refreshed():
        calls.append("ok")
        return Session(has_google_auth=True, google_token="g2")

    async def refresh_failed():
        calls.append("failed")
        return Session(error="RefreshTokenError")

    async def no_session():
        calls.append("none")
        return None

    assert await validator.refresh_if_needed(refreshed) is True
    assert await validator.refresh_if_needed(refresh_failed) is False
    assert await validator.refresh_if_needed(no_session) is True
    assert calls == ["ok", "failed", "none"]
    assert store.get().google_token == "g"
