"""CSRF state tokens for the authorization redirect."""

import secrets
import string

STATE_LENGTH = 32
STATE_ALPHABET = string.ascii_letters + string.digits


def generate_state(length: int = STATE_LENGTH) -> str:
    """
    Generate an unguessable alphanumeric CSRF state token.

    Args:
        length: Token length (at least 32 characters)

    Returns:
        Random token drawn from the OS cryptographic source

    Raises:
        ValueError: If length is below 32
    """
    if length < STATE_LENGTH:
        raise ValueError(f"state length must be at least {STATE_LENGTH}, got {length}")
    return "".join(secrets.choice(STATE_ALPHABET) for _ in range(length))
