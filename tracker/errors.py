"""Error taxonomy for the tracker client.

Every error carries a ``kind`` and a human-readable ``message``; ``to_dict``
gives the normalized ``{kind, message}`` shape the dashboard renders.
"""

from typing import Any

import httpx

GENERIC_MESSAGE = "Something went wrong. Please try again."


class TrackerError(Exception):
    kind = "error"

    def __init__(self, message: str = GENERIC_MESSAGE):
        self.message = message or GENERIC_MESSAGE
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": str(self)}


class ConnectivityError(TrackerError):
    """The backend health probe failed."""
    kind = "connectivity"


class AuthError(TrackerError):
    """Bad credentials, or the server rejected a token."""
    kind = "auth"


class ValidationError(TrackerError):
    """Input rejected client-side, before any network call."""
    kind = "validation"


class SyncError(TrackerError):
    """A logs or stats fetch failed or reported ``success: false``."""
    kind = "sync"

    def __init__(self, endpoint: str, message: str = GENERIC_MESSAGE):
        super().__init__(message)
        self.endpoint = endpoint

    def __str__(self) -> str:
        return f"{self.endpoint.capitalize()} API: {self.message}"


class SubmissionError(TrackerError):
    """The prompt processing call failed or reported ``success: false``."""
    kind = "submission"


def message_from_payload(payload: Any, fallback: str) -> str:
    """Pull ``message`` out of a server reply, whatever shape it has."""
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return fallback


def message_from_response(response: httpx.Response | None, fallback: str) -> str:
    if response is None:
        return fallback
    try:
        payload = response.json()
    except ValueError:
        return fallback
    return message_from_payload(payload, fallback)


def describe_http_error(exc: httpx.HTTPError, fallback: str) -> str:
    """Server-supplied text for a status error, the transport's own text otherwise."""
    if isinstance(exc, httpx.HTTPStatusError):
        return message_from_response(exc.response, fallback)
    return str(exc) or fallback
