"""
Authorization request construction.

Builds the URL the user's browser is sent to in order to grant calendar
access. Consent is forced and offline access requested on every attempt so
that Google always issues a refresh token, even when the user has granted
access before.
"""

import logging
from typing import Iterable
from urllib.parse import quote, urlencode

from .config import GoogleOAuthConfig

logger = logging.getLogger(__name__)


def build_authorization_url(
    config: GoogleOAuthConfig,
    state: str,
    redirect_uri: str,
    scopes: Iterable[str],
) -> str:
    """
    Generate the Google authorization URL.

    Args:
        config: OAuth configuration (authorization endpoint and client ID)
        state: CSRF state token for this attempt
        redirect_uri: Loopback redirect URI registered with Google
        scopes: Requested scopes (joined with spaces)

    Returns:
        Complete authorization URL with query parameters
    """
    params = {
        "client_id": config.client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(scopes),
        "state": state,
        "access_type": "offline",
        "prompt": "consent",
    }
    url = f"{config.authorization_url}?{urlencode(params, quote_via=quote)}"
    logger.debug(f"Generated authorization URL for redirect {redirect_uri}")
    return url
