from matching.errors import DedupeError


class ServiceUnavailable(DedupeError):
    """The standardization service failed: transport, non-2xx, or a bad payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code is not None and (self.status_code == 429 or self.status_code >= 500)


class ConfigurationError(DedupeError):
    """A setting the standardization service needs (URL, API key) is missing."""
