"""
OAuth configuration for Google Calendar integration.

This module provides configuration management for the desktop OAuth 2.0
flow. Configuration can be provided programmatically, loaded from
environment variables, or loaded from a YAML file with environment
variable overrides.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = (
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
)


def _default_credential_file() -> str:
    return str(Path.home() / ".taskpad" / "calendar_credentials.json")


@dataclass
class GoogleOAuthConfig:
    """
    Configuration for Google Calendar OAuth 2.0.

    The redirect URI registered with Google must exactly match
    ``redirect_uri`` (host, port and path), since the loopback listener
    binds to that address.

    Attributes:
        client_id: OAuth client ID from Google Cloud Console
        client_secret: OAuth client secret from Google Cloud Console
        callback_host: Loopback address for the callback listener
        callback_port: Port for the callback listener (default: 3333)
        callback_path: URL path for callback (default: /oauth/callback)
        authorization_url: Google OAuth authorization endpoint
        token_url: Google OAuth token endpoint
        userinfo_url: Google user-info endpoint (account email lookup)
        scopes: Requested OAuth scopes
        credential_file: Path to the credential JSON file
        refresh_buffer_seconds: Refresh tokens this many seconds before expiry
        authorization_timeout_seconds: How long to wait for the callback
        request_timeout_seconds: Timeout for token/user-info HTTP requests
    """

    # Required - from Google Cloud Console
    client_id: str
    client_secret: str

    # Callback configuration
    callback_host: str = "127.0.0.1"
    callback_port: int = 3333
    callback_path: str = "/oauth/callback"

    # Google OAuth endpoints
    authorization_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url: str = "https://oauth2.googleapis.com/token"
    userinfo_url: str = "https://www.googleapis.com/oauth2/v2/userinfo"

    scopes: tuple = DEFAULT_SCOPES

    credential_file: str = field(default_factory=_default_credential_file)

    # Timing
    refresh_buffer_seconds: int = 300  # Refresh 5 min before expiry
    authorization_timeout_seconds: int = 300
    request_timeout_seconds: int = 30

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.client_id:
            raise ConfigurationError("client_id cannot be empty")

        if not self.client_secret:
            raise ConfigurationError("client_secret cannot be empty")

        if not isinstance(self.callback_port, int) or not (
            1 <= self.callback_port <= 65535
        ):
            raise ConfigurationError(
                f"callback_port must be between 1 and 65535, got {self.callback_port}"
            )

        if not self.callback_path.startswith("/"):
            raise ConfigurationError(
                f"callback_path must start with '/', got {self.callback_path!r}"
            )

        self.scopes = tuple(self.scopes)
        if not self.scopes:
            raise ConfigurationError("at least one scope is required")

        if self.refresh_buffer_seconds < 0:
            raise ConfigurationError("refresh_buffer_seconds cannot be negative")

        if self.authorization_timeout_seconds <= 0:
            raise ConfigurationError("authorization_timeout_seconds must be positive")

        if self.request_timeout_seconds <= 0:
            raise ConfigurationError("request_timeout_seconds must be positive")

    @property
    def redirect_uri(self) -> str:
        """
        Full loopback redirect URI.

        Returns:
            Callback URL (e.g., http://127.0.0.1:3333/oauth/callback)
        """
        return f"http://{self.callback_host}:{self.callback_port}{self.callback_path}"

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Default YAML configuration path (~/.taskpad/calendar_oauth.yaml)."""
        return Path.home() / ".taskpad" / "calendar_oauth.yaml"

    @classmethod
    def from_env(cls) -> "GoogleOAuthConfig":
        """
        Load configuration from environment variables.

        Required environment variables:
            GOOGLE_CLIENT_ID: OAuth client ID
            GOOGLE_CLIENT_SECRET: OAuth client secret

        Optional environment variables:
            CALENDAR_OAUTH_CALLBACK_HOST: Callback address (default: 127.0.0.1)
            CALENDAR_OAUTH_CALLBACK_PORT: Callback port (default: 3333)
            CALENDAR_OAUTH_SCOPES: Space separated scopes
            CALENDAR_OAUTH_CREDENTIAL_FILE: Credential file path

        Returns:
            GoogleOAuthConfig instance

        Raises:
            ConfigurationError: If required environment variables are missing
        """
        return cls.merge_with_env({})

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "GoogleOAuthConfig":
        """
        Load configuration from a YAML file, then apply environment overrides.

        A missing file is not an error; defaults and environment variables
        are used instead.

        Args:
            path: Config file path (default: ~/.taskpad/calendar_oauth.yaml)

        Returns:
            GoogleOAuthConfig instance

        Raises:
            ConfigurationError: If the file is invalid or credentials are missing
        """
        config_path = path or cls.get_default_config_path()
        config_dict: dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Invalid YAML in configuration file: {e}"
                ) from e
            except OSError as e:
                raise ConfigurationError(
                    f"Failed to load configuration file: {e}"
                ) from e

            if file_config:
                if not isinstance(file_config, dict):
                    raise ConfigurationError(
                        f"Configuration file {config_path} must contain a mapping"
                    )
                config_dict = file_config
            logger.debug(f"Loaded configuration from {config_path}")
        else:
            logger.debug(f"Configuration file not found at {config_path}, using defaults")

        return cls.merge_with_env(config_dict)

    @classmethod
    def merge_with_env(cls, config_dict: dict[str, Any]) -> "GoogleOAuthConfig":
        """
        Build configuration from a file mapping and environment variables.

        Precedence order (highest to lowest):
        1. Environment variables
        2. Config file values (``client`` / ``callback`` / ``storage`` sections)
        3. Default values
        """
        client_config = config_dict.get("client", {}) or {}
        callback_config = config_dict.get("callback", {}) or {}
        storage_config = config_dict.get("storage", {}) or {}

        client_id = os.environ.get("GOOGLE_CLIENT_ID", client_config.get("id"))
        client_secret = os.environ.get(
            "GOOGLE_CLIENT_SECRET", client_config.get("secret")
        )

        if not client_id or not client_secret:
            raise ConfigurationError(
                "Missing Google OAuth credentials. Set environment variables:\n"
                "  GOOGLE_CLIENT_ID=your_client_id\n"
                "  GOOGLE_CLIENT_SECRET=your_client_secret\n"
                "\n"
                "Get credentials from: https://console.cloud.google.com/apis/credentials"
            )

        kwargs: dict[str, Any] = {
            "client_id": client_id,
            "client_secret": client_secret,
        }

        host = os.environ.get("CALENDAR_OAUTH_CALLBACK_HOST", callback_config.get("host"))
        if host:
            kwargs["callback_host"] = host

        port = os.environ.get("CALENDAR_OAUTH_CALLBACK_PORT", callback_config.get("port"))
        if port is not None:
            try:
                kwargs["callback_port"] = int(port)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"callback port must be an integer, got {port!r}") from e

        if callback_config.get("path"):
            kwargs["callback_path"] = callback_config["path"]

        scopes = os.environ.get("CALENDAR_OAUTH_SCOPES")
        if scopes:
            kwargs["scopes"] = tuple(scopes.split())
        elif client_config.get("scopes"):
            kwargs["scopes"] = tuple(client_config["scopes"])

        credential_file = os.environ.get(
            "CALENDAR_OAUTH_CREDENTIAL_FILE", storage_config.get("credential_file")
        )
        if credential_file:
            kwargs["credential_file"] = os.path.expanduser(credential_file)

        for key in (
            "refresh_buffer_seconds",
            "authorization_timeout_seconds",
            "request_timeout_seconds",
        ):
            if key in config_dict:
                try:
                    kwargs[key] = int(config_dict[key])
                except (TypeError, ValueError) as e:
                    raise ConfigurationError(
                        f"{key} must be an integer, got {config_dict[key]!r}"
                    ) from e

        return cls(**kwargs)
