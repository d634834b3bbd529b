"""
OAuth exception classes for Google Calendar integration.

This module defines the exception hierarchy for the desktop authorization
flow and the token lifecycle. Every failure terminates the current attempt
and is surfaced to the caller unchanged; nothing here is retried.
"""

from typing import Optional


class CalendarOAuthError(Exception):
    """Base exception for all calendar OAuth errors."""

    pass


class ConfigurationError(CalendarOAuthError):
    """OAuth configuration error (missing or invalid configuration)."""

    pass


class AuthorizationError(CalendarOAuthError):
    """OAuth authorization flow error."""

    pass


class FlowAlreadyActiveError(AuthorizationError):
    """An authorization flow is already waiting for its callback."""

    pass


class AuthorizationTimeoutError(AuthorizationError):
    """No callback arrived before the authorization deadline."""

    pass


class ProviderDeniedError(AuthorizationError):
    """The provider redirected back with an ``error`` parameter."""

    def __init__(self, error: str, description: Optional[str] = None):
        self.error = error
        self.description = description
        message = f"Authorization denied by provider: {error}"
        if description:
            message = f"{message} - {description}"
        super().__init__(message)


class SecurityViolationError(AuthorizationError):
    """
    Callback state did not match the state issued for this attempt.

    This indicates a possible CSRF attack and must be reported to the user
    with a distinct warning, never as a generic failure.
    """

    pass


class CallbackListenerError(AuthorizationError):
    """The loopback callback listener could not be started."""

    pass


class TokenExchangeError(CalendarOAuthError):
    """Failed to exchange authorization code for tokens."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class MissingRefreshTokenError(TokenExchangeError):
    """Token endpoint did not issue a refresh token (re-consent required)."""

    pass


class IdentityLookupError(TokenExchangeError):
    """Could not read the account email from the user-info endpoint."""

    pass


class TokenRefreshError(CalendarOAuthError):
    """
    Failed to refresh access token using refresh token.

    Callers should treat this as "calendar temporarily unavailable"; the
    stored credential is kept.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class NotConnectedError(CalendarOAuthError):
    """No credential stored (need to authorize first)."""

    pass


class CredentialStorageError(CalendarOAuthError):
    """Credential storage operation failed."""

    pass
