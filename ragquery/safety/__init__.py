"""Safety module for request validation."""

from ragquery.safety.request_validator import RequestValidator, get_request_validator

__all__ = ["RequestValidator", "get_request_validator"]
