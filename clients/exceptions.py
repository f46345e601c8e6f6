from typing import Any, Optional


class MeliClientError(Exception):
    pass


class FetchError(MeliClientError):
    """Network failure, non-2xx response or malformed JSON from the marketplace."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            base = f"{base} (status={self.status_code})"
        if self.body:
            base = f"{base}: {self.body[:300]}"
        return base


class RateLimitError(FetchError):
    def __init__(self, message: str, retry_after: Optional[float] = None, body: Optional[str] = None):
        super().__init__(message, status_code=429, body=body)
        self.retry_after = retry_after


class UnrecognizedPayloadShape(MeliClientError):
    def __init__(self, payload: Any):
        super().__init__(f"Unrecognized competitor payload shape: {str(payload)[:500]}")
        self.payload = payload


class AuthError(MeliClientError):
    pass


class NotificationDeliveryError(Exception):
    pass
