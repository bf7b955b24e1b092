"""Process-scoped collaborators shared by the workflow components."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .api.cache import RequestCache
from .auth.session import TokenStore, session_from_config
from .config import FedSetupConfig, load_config
from .logstream import ServerLogger, ServerLogHandler

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "fedsetup"


@dataclass
class AppContext:
    """Objects that live as long as the process.

    Components receive these explicitly; nothing reaches for a module-level
    singleton except :func:`get_context` itself.
    """

    config: FedSetupConfig
    token_store: TokenStore = field(default_factory=TokenStore)
    cache: RequestCache = field(default_factory=RequestCache)
    server_logger: ServerLogger = field(default_factory=ServerLogger)
    log_handler: Optional[ServerLogHandler] = None

    def attach_log_handler(self) -> None:
        """Mirror the package's log records into the debug log stream."""
        if self.log_handler is not None:
            return
        level = logging.DEBUG if self.config.api_debug else logging.INFO
        self.log_handler = ServerLogHandler(self.server_logger, level=level)
        logging.getLogger(PACKAGE_LOGGER).addHandler(self.log_handler)

    def detach_log_handler(self) -> None:
        if self.log_handler is not None:
            logging.getLogger(PACKAGE_LOGGER).removeHandler(self.log_handler)
            self.log_handler = None

    def clear(self) -> None:
        """Forget the session and everything derived from it (logout)."""
        self.token_store.cleanup()
        self.cache.clear()
        self.server_logger.clear()


_context: AppContext | None = None


def init_context(config: Optional[FedSetupConfig] = None) -> AppContext:
    """Create the process context, seeding the token store from configuration."""
    global _context
    if _context is not None:
        _context.detach_log_handler()
    config = config or load_config()
    context = AppContext(config=config)
    session = session_from_config(config.session)
    if session is not None:
        context.token_store.set(session)
    context.attach_log_handler()
    _context = context
    logger.debug("Application context initialised")
    return context


def get_context() -> AppContext:
    if _context is None:
        return init_context()
    return _context


def reset_context() -> None:
    global _context
    if _context is not None:
        _context.detach_log_handler()
        _context.clear()
    _context = None
