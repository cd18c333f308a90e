"""Error taxonomy shared by services, steps and API routes.

Every expected failure of the core is one of these types. Services raise
them, steps convert them into failure results, and the API layer renders
them as ``{"error": ..., "details": ...}`` with the matching status code.
"""

from typing import Any


class ChangewatchError(Exception):
    """Base exception for all expected failures.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        status_code: HTTP status code for API responses
        details: Optional structured context (never secrets)
    """

    code = "changewatch_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Render as the JSON error body."""
        body: dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ChangewatchError):
    """Malformed caller input (URL, missing fields)."""

    code = "validation_error"
    status_code = 400


class ConfigError(ChangewatchError):
    """Integration misconfigured (missing client id/secret/tokens)."""

    code = "config_error"
    status_code = 400


class UnauthenticatedError(ChangewatchError):
    """No caller session."""

    code = "unauthenticated"
    status_code = 401


class NotFoundError(ChangewatchError):
    """Integration, workflow, execution or baseline absent."""

    code = "not_found"
    status_code = 404


class OwnershipError(ChangewatchError):
    """Resource belongs to a different workflow or user."""

    code = "ownership_error"
    status_code = 403


class AuthExpiredError(ChangewatchError):
    """Provider answered 401: the account has to be reconnected."""

    code = "auth_expired"
    status_code = 401


class ProviderPermissionError(ChangewatchError):
    """Provider answered 403: plan or admin permission missing."""

    code = "permission_denied"
    status_code = 403


class UpstreamError(ChangewatchError):
    """Provider answered with any other non-2xx status."""

    code = "upstream_error"
    status_code = 502

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.upstream_status = upstream_status


class TransportError(ChangewatchError):
    """Network failure or unparseable provider response."""

    code = "transport_error"
    status_code = 502


class UpstreamAuthError(ChangewatchError):
    """Token endpoint rejected an exchange or refresh."""

    code = "upstream_auth_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        upstream_body: str | None = None,
    ) -> None:
        details = {"upstream_status": upstream_status} if upstream_status else None
        super().__init__(message, details)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
