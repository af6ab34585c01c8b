"""Exception types raised across the query pipeline."""


class RAGQueryError(Exception):
    """Base exception for the query service."""
    pass


class ConfigurationError(RAGQueryError):
    """Raised at startup when the service cannot be configured.

    Covers a missing or malformed corpus artifact, inconsistent vector
    dimensions and missing provider credentials. The process must not
    start serving requests after this is raised.
    """
    pass


class ValidationError(RAGQueryError):
    """Raised when an incoming request is malformed."""
    pass


class ProviderError(RAGQueryError):
    """Exception raised for embedding or completion provider failures."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        return f"[{self.status_code}] {self.message}"
