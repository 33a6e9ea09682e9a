"""Exception hierarchy for transfer orchestration."""


class TransferError(Exception):
    """Base exception for all transfer operations."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class RetryableError(TransferError):
    """Transient network or service failure; safe to retry."""
    pass


class NonRetryableError(TransferError):
    """Errors that should NOT be retried."""
    pass


class NotFoundError(NonRetryableError):
    """Target object does not exist."""
    pass


class AccessDeniedError(NonRetryableError):
    """Access denied - check credentials and bucket policy."""
    pass


class PreparationError(NonRetryableError):
    """Payload content could not be read or split into chunks."""
    pass


class InvalidPayloadError(NonRetryableError):
    """Payload content is not one of the supported shapes."""
    pass


class ExhaustedRetriesError(TransferError):
    """Every attempt failed; wraps the last underlying cause."""

    def __init__(
        self,
        message: str,
        last_cause: BaseException | None = None,
        attempts: int = 0,
        details: dict | None = None,
    ):
        super().__init__(message, details=details)
        self.last_cause = last_cause
        self.attempts = attempts


class SessionAbortError(TransferError):
    """Aborting a multipart session failed during cleanup."""
    pass
