"""Error taxonomy for the bridge API.

Every error raised by a service carries the HTTP status it should surface
as. A single exception handler registered in ``main.py`` turns them into
``{"error": "<message>"}`` JSON responses.

Usage:
    from chatbridge.errors import NotReadyError

    if not store.is_ready:
        raise NotReadyError()
"""


class BridgeError(Exception):
    """Base exception for errors surfaced through the API."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class NotReadyError(BridgeError):
    """Raised when the messaging session is not in the ready state."""

    status_code = 503

    def __init__(self, message: str = "Not connected"):
        super().__init__(message)


class InvalidInputError(BridgeError):
    """Raised for malformed request bodies or parameters."""

    status_code = 400


class AlreadyConnectedError(InvalidInputError):
    """Raised when a pairing code is requested for a ready session."""

    def __init__(self, message: str = "Already connected"):
        super().__init__(message)


class NotFoundError(BridgeError):
    """Raised when the requested resource does not exist."""

    status_code = 404


class UpstreamTimeoutError(BridgeError):
    """Raised when a session call exceeds its deadline."""

    status_code = 500


class UpstreamFailureError(BridgeError):
    """Raised when the session rejects or fails a call."""

    status_code = 500


class ChatUnavailableError(UpstreamFailureError):
    """Raised when a chat handle cannot be resolved (timeout or not found)."""
