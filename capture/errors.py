"""
Error taxonomy for the capture service.

Every failure a caller can observe is one of these kinds. Each carries a
stable ``kind`` string and the HTTP status the web layer maps it to; the
message is safe to show to clients (raw engine/driver text is only logged).
"""


class CaptureError(Exception):
    """Base class for classified capture failures."""
    kind = "InternalError"
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {"error": self.message, "kind": self.kind}


class InvalidRequest(CaptureError):
    """Bad input; raised before any engine resource is acquired. Never retried."""
    kind = "InvalidRequest"
    status_code = 400
    default_message = "Invalid capture request"


class AuthError(CaptureError):
    """Identity verification failed (missing or rejected credential)."""
    kind = "AuthError"
    status_code = 403
    default_message = "Invalid or expired token"

    def __init__(self, message=None, missing=False):
        super().__init__(message or ("Access token required" if missing else None))
        if missing:
            self.status_code = 401


class EngineUnavailable(CaptureError):
    """The browser engine process could not be started in time."""
    kind = "EngineUnavailable"
    status_code = 503
    default_message = "Rendering engine unavailable"


class NavigationTimeout(CaptureError):
    """The page did not become render-ready before its timeout."""
    kind = "NavigationTimeout"
    status_code = 504
    default_message = "Timed out waiting for the page to render"


class InvalidTarget(CaptureError):
    """The target URL is unreachable or cannot be navigated to."""
    kind = "InvalidTarget"
    status_code = 400
    default_message = "Target URL could not be loaded"


class CaptureFailed(CaptureError):
    """The page rendered but the image could not be extracted."""
    kind = "CaptureFailed"
    status_code = 500
    default_message = "Failed to capture screenshot"


class CapacityExceeded(CaptureError):
    """The governor refused admission. Clients should back off and retry."""
    kind = "CapacityExceeded"
    status_code = 429
    default_message = "Too many captures in progress, please try again later"


class LedgerWriteFailed(CaptureError):
    """
    The image was produced but its record could not be written.
    Image delivery is suppressed for these requests.
    """
    kind = "LedgerWriteFailed"
    status_code = 500
    default_message = "Failed to record capture"
