"""
OAuth 2.0 module for Google Calendar integration.

This module provides the desktop OAuth 2.0 Authorization Code flow used to
connect the task tracker to a user's Google Calendar. The app has no public
callback endpoint, so the redirect is received by a short-lived listener on
127.0.0.1.

Public API:
    GoogleOAuthConfig: OAuth configuration management
    CredentialRecord: Stored credential (email, tokens, expiry)
    CredentialStore: Single-record storage contract
    JsonFileCredentialStore / SqlCredentialStore / InMemoryCredentialStore
    CallbackListener: Loopback listener for the OAuth redirect
    TokenExchanger: Token endpoint client
    OAuthCoordinator: High-level OAuth interface

Exceptions:
    CalendarOAuthError: Base exception
    ConfigurationError: Configuration error
    AuthorizationError: Authorization flow error
    FlowAlreadyActiveError: Another flow is waiting for its callback
    AuthorizationTimeoutError: No callback before the deadline
    ProviderDeniedError: Google returned an error
    SecurityViolationError: CSRF state mismatch
    CallbackListenerError: Callback port could not be bound
    TokenExchangeError: Code exchange failed
    MissingRefreshTokenError: No refresh token issued
    IdentityLookupError: Account email lookup failed
    TokenRefreshError: Token refresh failed
    NotConnectedError: No credential stored
    CredentialStorageError: Storage operation failed
"""

from .authorization import build_authorization_url
from .callback_server import CallbackListener, CallbackResult
from .config import GoogleOAuthConfig
from .coordinator import OAuthCoordinator
from .credential_store import (
    CredentialStore,
    InMemoryCredentialStore,
    JsonFileCredentialStore,
    SqlCredentialStore,
)
from .exceptions import (
    AuthorizationError,
    AuthorizationTimeoutError,
    CalendarOAuthError,
    CallbackListenerError,
    ConfigurationError,
    CredentialStorageError,
    FlowAlreadyActiveError,
    IdentityLookupError,
    MissingRefreshTokenError,
    NotConnectedError,
    ProviderDeniedError,
    SecurityViolationError,
    TokenExchangeError,
    TokenRefreshError,
)
from .models import AuthFlowState, AuthSession, ConnectionStatus, CredentialRecord
from .state import generate_state
from .token_exchanger import TokenExchanger

__all__ = [
    # Configuration
    "GoogleOAuthConfig",
    # Data model
    "CredentialRecord",
    "AuthSession",
    "AuthFlowState",
    "ConnectionStatus",
    # Credential storage
    "CredentialStore",
    "InMemoryCredentialStore",
    "JsonFileCredentialStore",
    "SqlCredentialStore",
    # Authorization request
    "generate_state",
    "build_authorization_url",
    # Callback listener
    "CallbackListener",
    "CallbackResult",
    # Token endpoint
    "TokenExchanger",
    # Coordinator
    "OAuthCoordinator",
    # Exceptions
    "CalendarOAuthError",
    "ConfigurationError",
    "AuthorizationError",
    "FlowAlreadyActiveError",
    "AuthorizationTimeoutError",
    "ProviderDeniedError",
    "SecurityViolationError",
    "CallbackListenerError",
    "TokenExchangeError",
    "MissingRefreshTokenError",
    "IdentityLookupError",
    "TokenRefreshError",
    "NotConnectedError",
    "CredentialStorageError",
]
