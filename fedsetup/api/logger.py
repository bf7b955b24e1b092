"""Per-invocation capture of outbound API calls."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..contracts import ApiLogEntry

REDACTED_AUTHORIZATION = "Bearer [REDACTED]"


def redact_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {
        name: REDACTED_AUTHORIZATION if name.lower() == "authorization" else value
        for name, value in headers.items()
    }


class ApiLogger:
    """Collects request/response pairs for one check or execute call.

    The registry attaches a fresh instance to every step invocation and
    returns the captured entries alongside the step result.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, ApiLogEntry] = {}

    def log_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        provider: str = "other",
    ) -> str:
        entry = ApiLogEntry(
            method=method,
            url=url,
            headers=redact_headers(headers or {}),
            request_body=body,
            provider=provider,
        )
        self._entries[entry.id] = entry
        return entry.id

    def log_response(self, log_id: str, status: int, body: Any, duration_ms: float) -> None:
        entry = self._entries.get(log_id)
        if entry is None:
            return
        self._entries[log_id] = entry.model_copy(
            update={"response_status": status, "response_body": body, "duration": duration_ms}
        )

    def log_error(self, log_id: str, error: BaseException, duration_ms: float) -> None:
        entry = self._entries.get(log_id)
        if entry is None:
            return
        self._entries[log_id] = entry.model_copy(
            update={"error": str(error) or type(error).__name__, "duration": duration_ms}
        )

    def get_logs(self) -> List[ApiLogEntry]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()
