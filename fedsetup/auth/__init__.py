from .session import (
    Session,
    SessionProvider,
    SessionValidator,
    TokenStore,
    TokenStoreSessionProvider,
    ValidSession,
    session_from_config,
)

__all__ = [
    "Session",
    "SessionProvider",
    "SessionValidator",
    "TokenStore",
    "TokenStoreSessionProvider",
    "ValidSession",
    "session_from_config",
]
