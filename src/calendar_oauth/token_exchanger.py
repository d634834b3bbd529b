"""
Token endpoint client for Google Calendar OAuth.

This module talks to Google's token endpoint:
- Authorization code exchange (code -> access/refresh tokens + account email)
- Access token refresh (refresh token -> new access token)

Nothing is persisted and nothing is retried here; the coordinator decides
what to store and callers decide whether to try again.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

import requests

from .config import GoogleOAuthConfig
from .exceptions import (
    IdentityLookupError,
    MissingRefreshTokenError,
    TokenExchangeError,
    TokenRefreshError,
)
from .models import CredentialRecord, utc_now

logger = logging.getLogger(__name__)


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


class TokenExchanger:
    """
    Exchanges authorization codes and refresh tokens at the token endpoint.

    Both operations post a form-encoded body with the client credentials
    and use a bounded request timeout.
    """

    def __init__(
        self,
        config: GoogleOAuthConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize token exchanger.

        Args:
            config: OAuth configuration
            clock: Source of the current UTC time (for expiry computation)
        """
        self.config = config
        self.clock = clock

    def exchange_code(self, code: str, redirect_uri: str) -> CredentialRecord:
        """
        Exchange authorization code for a complete credential.

        Args:
            code: Code received from OAuth callback
            redirect_uri: Redirect URI used in the authorization request

        Returns:
            CredentialRecord with tokens, expiry and account email

        Raises:
            TokenExchangeError: If the token endpoint call fails
            MissingRefreshTokenError: If no refresh token was issued
            IdentityLookupError: If the account email cannot be read
        """
        logger.info("Exchanging authorization code for tokens")

        try:
            response = requests.post(
                self.config.token_url,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "redirect_uri": redirect_uri,
                },
                timeout=self.config.request_timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error(f"Network error during token exchange: {e}")
            raise TokenExchangeError(f"Network error during token exchange: {e}") from e

        if not _is_success(response.status_code):
            logger.error(f"Token exchange failed: {response.status_code} - {response.text}")
            raise TokenExchangeError(
                f"Token exchange failed with status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
            access_token = data["access_token"]
            expires_in = int(data["expires_in"])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid response from token endpoint: {e}")
            raise TokenExchangeError(
                f"Invalid response from token endpoint: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        refresh_token: Optional[str] = data.get("refresh_token")
        if not refresh_token:
            logger.error("Token endpoint did not return a refresh token")
            raise MissingRefreshTokenError(
                "No refresh token received. Revoke the app's access in your Google "
                "account and connect again.",
                status_code=response.status_code,
            )

        token_expiry = self.clock() + timedelta(seconds=expires_in)
        account_email = self.fetch_account_email(access_token)

        logger.info(f"Obtained tokens for {account_email}")
        return CredentialRecord(
            account_email=account_email,
            access_token=access_token,
            refresh_token=refresh_token,
            token_expiry=token_expiry,
        )

    def fetch_account_email(self, access_token: str) -> str:
        """
        Read the account email from the user-info endpoint.

        Raises:
            IdentityLookupError: On network error, non-success status or
                a response without an email
        """
        try:
            response = requests.get(
                self.config.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.config.request_timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error(f"Network error during user-info lookup: {e}")
            raise IdentityLookupError(f"Failed to get user info: {e}") from e

        if not _is_success(response.status_code):
            logger.error(f"User-info lookup failed: {response.status_code}")
            raise IdentityLookupError(
                f"Failed to get user email: status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            email = response.json()["email"]
        except (KeyError, TypeError, ValueError) as e:
            raise IdentityLookupError(
                f"Invalid response from user-info endpoint: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if not email:
            raise IdentityLookupError("User-info response contained an empty email")
        return email

    def refresh(self, refresh_token: str) -> Tuple[str, int]:
        """
        Obtain a new access token using the refresh token.

        A refresh token returned by the endpoint is ignored; the existing one
        stays valid and is kept by the caller.

        Args:
            refresh_token: Stored refresh token

        Returns:
            Tuple of (new access token, lifetime in seconds)

        Raises:
            TokenRefreshError: If the refresh fails for any reason
        """
        logger.info("Refreshing access token")

        try:
            response = requests.post(
                self.config.token_url,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                },
                timeout=self.config.request_timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning(f"Network error during token refresh: {e}")
            raise TokenRefreshError(f"Network error during token refresh: {e}") from e

        if not _is_success(response.status_code):
            logger.error(f"Token refresh failed: {response.status_code} - {response.text}")
            raise TokenRefreshError(
                f"Token refresh failed with status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
            access_token = data["access_token"]
            expires_in = int(data["expires_in"])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid response from token endpoint: {e}")
            raise TokenRefreshError(
                f"Invalid response from token endpoint: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        logger.info("Successfully refreshed access token")
        return access_token, expires_in
