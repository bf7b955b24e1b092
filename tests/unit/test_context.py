import logging

from fedsetup.config import FedSetupConfig, SessionConfig
from fedsetup.context import get_context, init_context, reset_context


def test_init_context_seeds_session_from_config():
    config = FedSetupConfig(
        session=SessionConfig(google_token="g", microsoft_token="m", user="admin@example.com")
    )

    context = init_context(config)

    session = context.token_store.get()
    assert session.google_valid and session.microsoft_valid
    assert session.user == "admin@example.com"
    assert get_context() is context
    assert context.log_handler in logging.getLogger("fedsetup").handlers


def test_reset_context_detaches_handler_and_clears_session():
    context = init_context(FedSetupConfig(session=SessionConfig(google_token="g")))
    handler = context.log_handler

    reset_context()

    assert handler not in logging.getLogger("fedsetup").handlers
    assert context.token_store.get() is None
    assert get_context() is not context


def test_package_logs_reach_the_debug_stream():
    context = init_context(FedSetupConfig(api_debug=True))
    logging.getLogger("fedsetup").setLevel(logging.DEBUG)
    try:
        logging.getLogger("fedsetup.runner").debug("Applied UpdateStep")
    finally:
        logging.getLogger("fedsetup").setLevel(logging.NOTSET)

    messages = [entry.metadata["message"] for entry in context.server_logger.get_recent_logs()]
    assert "Applied UpdateStep" in messages
