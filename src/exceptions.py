from typing import Optional, Dict, Any


class NewsIngestError(Exception):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "details": self.details
        }


class ValidationError(NewsIngestError):
    pass


class ConfigurationError(NewsIngestError):
    pass


class ExternalServiceError(NewsIngestError):
    pass


class RewriteServiceError(ExternalServiceError):
    pass


class RateLimitExceededError(RewriteServiceError):
    def __init__(self, attempts: int, last_error: Optional[str] = None):
        super().__init__(
            message=f"Rewrite service still rate limited after {attempts} attempts",
            details={"attempts": attempts, "last_error": last_error}
        )
        self.attempts = attempts


class BatchAlignmentError(RewriteServiceError):
    """Batch response item count does not match the request."""

    def __init__(self, expected: int, received: int):
        super().__init__(
            message=f"Rewrite batch returned {received} items for {expected} inputs",
            details={"expected": expected, "received": received}
        )
        self.expected = expected
        self.received = received


class StoreError(NewsIngestError):
    pass


class FeedFetchError(ExternalServiceError):
    pass
