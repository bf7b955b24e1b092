"""Dual-provider session validation."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Optional, Protocol

from pydantic import BaseModel

from ..config import SessionConfig
from ..constants import ADMIN_SESSION_KEY, REFRESH_TOKEN_ERROR_MARKER, StepErrorCode
from ..contracts import SessionError, SessionValidation
from ..errors import HTTP_UNAUTHORIZED, APIError

logger = logging.getLogger(__name__)


class Session(BaseModel):
    """The authenticated admin session as handed over by the sign-in layer."""

    user: Optional[str] = None
    error: Optional[str] = None
    has_google_auth: bool = False
    has_microsoft_auth: bool = False
    google_token: Optional[str] = None
    microsoft_token: Optional[str] = None
    microsoft_tenant_id: Optional[str] = None

    @property
    def google_valid(self) -> bool:
        return bool(self.google_token) and self.has_google_auth

    @property
    def microsoft_valid(self) -> bool:
        return bool(self.microsoft_token) and self.has_microsoft_auth


class ValidSession(Session):
    google_token: str
    microsoft_token: str


class SessionProvider(Protocol):
    """Source of the current session."""

    async def get_session(self) -> Session | None:
        """Return the current session or ``None`` when nobody is signed in."""

    async def cleanup(self) -> None:
        """Forget a session whose refresh failed."""


class TokenStore:
    """Holds the single admin session of this process."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def get(self) -> Session | None:
        return self._sessions.get(ADMIN_SESSION_KEY)

    def set(self, session: Session) -> None:
        self._sessions[ADMIN_SESSION_KEY] = session

    def cleanup(self) -> None:
        self._sessions.pop(ADMIN_SESSION_KEY, None)


class TokenStoreSessionProvider:
    def __init__(self, store: TokenStore) -> None:
        self.store = store

    async def get_session(self) -> Session | None:
        return self.store.get()

    async def cleanup(self) -> None:
        self.store.cleanup()


def session_from_config(config: SessionConfig) -> Session | None:
    """Build a session from statically configured tokens, if any are set."""
    if not (config.google_token or config.microsoft_token):
        return None
    return Session(
        user=config.user,
        has_google_auth=bool(config.google_token),
        has_microsoft_auth=bool(config.microsoft_token),
        google_token=config.google_token,
        microsoft_token=config.microsoft_token,
        microsoft_tenant_id=config.microsoft_tenant_id,
    )


class SessionValidator:
    def __init__(self, provider: SessionProvider) -> None:
        self.provider = provider

    async def validate(self) -> SessionValidation:
        try:
            session = await self.provider.get_session()
            if session is None:
                return self._failure("both", "No session found", StepErrorCode.NO_SESSION)
            if session.error == REFRESH_TOKEN_ERROR_MARKER:
                return self._failure(
                    "both", "Session expired - refresh failed", StepErrorCode.REFRESH_TOKEN_ERROR
                )

            google_valid = session.google_valid
            microsoft_valid = session.microsoft_valid
            if not google_valid or not microsoft_valid:
                if not google_valid and not microsoft_valid:
                    missing, message = "both", "Both providers authentication required"
                elif not google_valid:
                    missing, message = "google", "Please sign in with Google"
                else:
                    missing, message = "microsoft", "Please sign in with Microsoft"
                return SessionValidation(
                    valid=False,
                    google_valid=google_valid,
                    microsoft_valid=microsoft_valid,
                    error=SessionError(
                        provider=missing, message=message, code=StepErrorCode.AUTH_MISSING.value
                    ),
                )
            return SessionValidation(valid=True, google_valid=True, microsoft_valid=True)
        except Exception as exc:
            logger.error(f"Session validation error: {exc!r}")
            return self._failure(
                "both", "Failed to validate session", StepErrorCode.VALIDATION_ERROR
            )

    @staticmethod
    def _failure(provider: str, message: str, code: StepErrorCode) -> SessionValidation:
        return SessionValidation(
            valid=False,
            google_valid=False,
            microsoft_valid=False,
            error=SessionError(provider=provider, message=message, code=code.value),
        )

    async def require_both_providers(self) -> ValidSession:
        """Return the session with both tokens present, or raise a 401 :class:`APIError`."""
        validation = await self.validate()
        if not validation.valid:
            error = validation.error
            raise APIError(
                error.message if error else "Authentication required",
                HTTP_UNAUTHORIZED,
                error.code if error else None,
            )
        session = await self.provider.get_session()
        return ValidSession.model_validate(session.model_dump())

    async def refresh_if_needed(
        self, update_fn: Optional[Callable[[], Awaitable[Session | None]]] = None
    ) -> bool:
        if update_fn is not None:
            updated = await update_fn()
            return updated is None or updated.error != REFRESH_TOKEN_ERROR_MARKER
        session = await self.provider.get_session()
        if session is not None and session.error == REFRESH_TOKEN_ERROR_MARKER:
            logger.info("Session refresh failed; clearing stored session")
            await self.provider.cleanup()
            return False
        return True

    async def get_google_token(self) -> str:
        session = await self.provider.get_session()
        if session is None or not session.google_token:
            raise APIError(
                "Please sign in with Google",
                HTTP_UNAUTHORIZED,
                StepErrorCode.GOOGLE_AUTH_REQUIRED.value,
            )
        return session.google_token

    async def get_microsoft_token(self) -> str:
        session = await self.provider.get_session()
        if session is None or not session.microsoft_token:
            raise APIError(
                "Please sign in with Microsoft",
                HTTP_UNAUTHORIZED,
                StepErrorCode.MS_AUTH_REQUIRED.value,
            )
        return session.microsoft_token
