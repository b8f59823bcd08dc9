"""
Custom exceptions for the restgraph system.
"""

from __future__ import annotations

from typing import Any, Optional


class RestGraphError(Exception):
    """Base exception for all restgraph errors."""
    pass


class TranslationError(RestGraphError):
    """Raised when an OpenAPI document cannot be translated."""

    def __init__(self, message: str, addendum: Optional[str] = None):
        self.addendum = addendum
        super().__init__(f"{message}\n{addendum}" if addendum else message)


class ResolverError(RestGraphError):
    """Raised when a generated resolver cannot complete its call."""
    pass


class ServiceError(ResolverError):
    """Raised when the REST API returns an error or cannot be reached."""

    def __init__(
        self,
        operation: str,
        status_code: int,
        message: str,
        body: Any = None,
    ):
        self.operation = operation
        self.status_code = status_code
        self.body = body
        super().__init__(f"Operation '{operation}' returned {status_code}: {message}")


class MissingServerError(ResolverError):
    """Raised when no server URL can be derived for an invoked operation."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"No server defined for operation '{operation}'")


class AuthenticationError(ResolverError):
    """Raised when a viewer operation is called without credentials."""

    def __init__(self, operation: str, requirements: list[str]):
        self.operation = operation
        self.requirements = requirements
        super().__init__(
            f"Missing credentials for operation '{operation}', "
            f"expected one of {requirements}"
        )


class PayloadValidationError(ResolverError):
    """Raised when a required request body is not provided."""

    def __init__(self, operation: str, argument: str):
        self.operation = operation
        self.argument = argument
        super().__init__(
            f"Operation '{operation}' requires a request body in argument '{argument}'"
        )


class SubscriptionError(ResolverError):
    """Raised when a subscription cannot be opened."""
    pass
