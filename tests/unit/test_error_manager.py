from fedsetup.constants import Provider, StepErrorCode
from fedsetup.error_manager import GENERIC_ERROR_MESSAGE, ErrorManager, classify_error
from fedsetup.errors import APIError, AuthenticationError, StepValidationError
from fedsetup.state import DismissError, WorkflowStore


def test_auth_classification_is_exact_and_pure():
    error = AuthenticationError("Token expired", Provider.GOOGLE)

    first = classify_error(error)
    second = classify_error(error)

    assert first == second
    assert first.category == "auth"
    assert first.message == "Token expired"
    assert first.code == StepErrorCode.AUTH_EXPIRED.value
    assert first.provider == "google"
    assert first.recoverable is True
    assert first.action.kind == "SIGN_IN"


def test_api_not_enabled_offers_enable_action():
    url = "https://console.developers.google.com/apis/api/admin.googleapis.com/overview?project=1"
    error = APIError(f"Admin SDK is not enabled.\n1. Click here: {url}\n", 403, "API_NOT_ENABLED")

    managed = classify_error(error)

    assert managed.category == "api"
    assert managed.recoverable is True
    assert managed.action.kind == "ENABLE_API"
    assert managed.action.url == url


def test_other_categories():
    api = classify_error(APIError("Conflict", 409, "ALREADY_EXISTS"))
    validation = classify_error(StepValidationError("Missing config", "MISSING_CONFIG"))
    system = classify_error(RuntimeError("disk full"))
    opaque = classify_error({"not": "an exception"})

    assert (api.category, api.code, api.recoverable) == ("api", "ALREADY_EXISTS", False)
    assert (validation.category, validation.code) == ("validation", "MISSING_CONFIG")
    assert (system.category, system.message) == ("system", "disk full")
    assert opaque.message == GENERIC_ERROR_MESSAGE


def test_dispatch_fills_error_slot():
    store = WorkflowStore()
    manager = ErrorManager(store)

    manager.dispatch(
        AuthenticationError("Microsoft authentication expired", Provider.MICROSOFT),
        {"step_id": "M-1"},
    )

    error = store.get_state().active_error
    assert error.title == "Microsoft Sign-In Required"
    assert error.category == "auth"
    assert [action.kind for action in error.actions] == ["SIGN_IN", "DISMISS"]
    assert error.details == {"step_id": "M-1"}
    assert len(store.get_state().error_history) == 1

    store.dispatch(DismissError())
    assert store.get_state().active_error is None
    assert store.get_state().error_history[0].dismissed is True
