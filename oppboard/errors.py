"""Error types shared by the oppboard query and mutation layer."""

from __future__ import annotations


class ValidationError(ValueError):
    """Raised when a required field is missing or malformed."""


class NotFoundError(LookupError):
    """Raised when an operation targets an identifier that does not exist."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(f"{resource} {identifier} not found")
        self.resource = resource
        self.identifier = identifier


class AuthorizationError(PermissionError):
    """Raised when the caller is not allowed to perform an operation."""


class InvalidCredentialsError(AuthorizationError):
    """Raised when an admin login attempt does not match the configured secrets."""


class UpstreamError(RuntimeError):
    """Raised when a third-party service call did not complete."""
