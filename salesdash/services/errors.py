"""
Service layer exceptions.

Every error raised at the upstream boundary carries a ``retryable`` tag so the
retry layer never has to guess from message text.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    retryable: bool = False

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class RateLimitError(ServiceError):
    """Rate limit or quota exceeded upstream."""

    retryable = True

    def __init__(self, service_id: str, retry_after: float | None = None):
        self.retry_after = retry_after
        msg = f"Rate limit exceeded for service '{service_id}'"
        if retry_after:
            msg += f", retry after {retry_after}s"
        super().__init__(msg, service_id=service_id)


class UpstreamError(ServiceError):
    """Upstream call failed in a way retrying will not fix."""

    def __init__(
        self,
        message: str,
        service_id: str | None = None,
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, service_id=service_id)


class QueueClearedError(ServiceError):
    """Queued write was dropped by clear_queue() before it started."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Queue cleared before '{name}' could run")
