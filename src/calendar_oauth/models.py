"""
Data structures for the calendar OAuth flow.

CredentialRecord is the single durable record; AuthSession lives only in
memory for the duration of one authorization attempt.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AuthFlowState(Enum):
    """States of one authorization attempt."""

    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    COMPLETE = "complete"
    FAILED = "failed"


class ConnectionStatus(Enum):
    """Calendar connection state as shown by the desktop UI."""

    CONNECTED = "connected"
    NOT_CONNECTED = "not_connected"
    CONNECTING = "connecting"


@dataclass(frozen=True)
class CredentialRecord:
    """
    Provider credential bound to this installation.

    Attributes:
        account_email: Google account email (display only)
        access_token: Short-lived access token for API calls
        refresh_token: Long-lived token for obtaining new access tokens
        token_expiry: When the access token expires (timezone-aware UTC)
    """

    account_email: str
    access_token: str
    refresh_token: Optional[str]
    token_expiry: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "token_expiry", _as_utc(self.token_expiry))

    @property
    def is_expired(self) -> bool:
        """True if the access token has expired."""
        return utc_now() >= self.token_expiry

    def expires_within(self, seconds: int, now: Optional[datetime] = None) -> bool:
        """
        Check if the access token expires within given seconds.

        Args:
            seconds: Buffer in seconds
            now: Reference time (default: current UTC time)

        Returns:
            True if ``now + seconds >= token_expiry``
        """
        reference = _as_utc(now) if now is not None else utc_now()
        return reference + timedelta(seconds=seconds) >= self.token_expiry

    def to_dict(self) -> dict:
        """JSON-safe representation (expiry as ISO-8601)."""
        return {
            "account_email": self.account_email,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_expiry": self.token_expiry.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CredentialRecord":
        """
        Create CredentialRecord from dictionary.

        Raises:
            KeyError: If required fields are missing
            ValueError: If token_expiry is not an ISO-8601 timestamp
        """
        return cls(
            account_email=data["account_email"],
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            token_expiry=datetime.fromisoformat(data["token_expiry"]),
        )

    def __repr__(self) -> str:
        # Token values stay out of logs and tracebacks
        return (
            f"CredentialRecord(account_email={self.account_email!r}, "
            f"token_expiry={self.token_expiry.isoformat()!r}, "
            f"has_refresh_token={self.refresh_token is not None})"
        )


@dataclass(frozen=True)
class AuthSession:
    """
    In-memory state of one authorization attempt.

    Attributes:
        expected_state: CSRF token issued for this attempt
        deadline: Absolute UTC time after which the attempt is abandoned
    """

    expected_state: str
    deadline: datetime

    def remaining_seconds(self, now: Optional[datetime] = None) -> float:
        """Seconds left before the deadline (never negative)."""
        reference = _as_utc(now) if now is not None else utc_now()
        return max(0.0, (self.deadline - reference).total_seconds())
