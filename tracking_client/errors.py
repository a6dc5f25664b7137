"""
Error taxonomy for the tracking client.

Validation failures are user-facing and never retried. Backend failures
are logged and usually absorbed by the fallback policy. Permission
failures stop the sampler for good.
"""


class TrackingError(Exception):
    """Base class for all tracking client errors."""


class ValidationError(TrackingError):
    """Invalid user input (missing subject, missing or inverted date range)."""


class PermissionDenied(TrackingError):
    """The position provider cannot be used (no permission or capability)."""


class BackendError(TrackingError):
    """A backend call failed; raised by uplink sends and dashboard fetches."""


class NetworkError(BackendError):
    """Transport-level failure: connection refused, DNS, timeout, dropped stream."""


class ServerRejected(BackendError):
    """The backend answered with a non-2xx status or a body that is not JSON."""

    def __init__(self, status_code: int, body: str = '') -> None:
        self.status_code = status_code
        self.body = body
        detail = f": {body[:200]}" if body else ''
        super().__init__(f"Backend rejected request with HTTP {status_code}{detail}")
