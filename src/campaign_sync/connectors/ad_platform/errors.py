"""Error taxonomy for Ad Platform API calls."""

__all__ = [
    "AdPlatformError",
    "AuthError",
    "ClientError",
    "RateLimitSignal",
    "ServerError",
    "TransientError",
]


class AdPlatformError(Exception):
    """Base class for Ad Platform API failures.

    Attributes:
        status_code: HTTP status of the failing response, if there was one
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class AuthError(AdPlatformError):
    """Credential exchange failed or 401 retries were exhausted.

    Fatal when it ends pagination; counted as a per-campaign failure otherwise.
    """


class RateLimitSignal(AdPlatformError):
    """429 received. Handled inside the executor and never surfaced."""

    def __init__(self, retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__("Rate limited (429)", status_code=429)


class TransientError(AdPlatformError):
    """Timeout or network fault that outlived the retry ceiling."""


class ServerError(TransientError):
    """5xx response that outlived the retry ceiling."""


class ClientError(AdPlatformError):
    """Non-retryable 4xx response."""
