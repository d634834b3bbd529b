"""Tests for calendar OAuth data structures."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from src.calendar_oauth.models import AuthSession, CredentialRecord, utc_now


class TestCredentialRecord:
    """Tests for CredentialRecord."""

    def test_record_creation(self, fixed_now):
        """CredentialRecord keeps all fields."""
        record = CredentialRecord(
            account_email="user@example.com",
            access_token="A1",
            refresh_token="R1",
            token_expiry=fixed_now,
        )

        assert record.account_email == "user@example.com"
        assert record.access_token == "A1"
        assert record.refresh_token == "R1"
        assert record.token_expiry == fixed_now

    def test_naive_expiry_is_treated_as_utc(self):
        """A naive expiry timestamp is interpreted as UTC."""
        record = CredentialRecord("u@example.com", "A", "R", datetime(2026, 1, 25, 10, 0, 0))

        assert record.token_expiry == datetime(2026, 1, 25, 10, 0, 0, tzinfo=timezone.utc)

    def test_expiry_converted_to_utc(self):
        """An aware expiry in another zone is normalized to UTC."""
        plus_two = timezone(timedelta(hours=2))
        record = CredentialRecord("u@example.com", "A", "R", datetime(2026, 1, 25, 12, 0, tzinfo=plus_two))

        assert record.token_expiry == datetime(2026, 1, 25, 10, 0, tzinfo=timezone.utc)
        assert record.token_expiry.tzinfo == timezone.utc

    def test_expires_within_false_when_outside_buffer(self, fixed_now, make_record):
        """Token expiring after now + buffer is not due for refresh."""
        record = make_record(expires_in=3600, now=fixed_now)

        assert record.expires_within(300, now=fixed_now) is False

    def test_expires_within_true_inside_buffer(self, fixed_now, make_record):
        """Token expiring within the buffer is due for refresh."""
        record = make_record(expires_in=200, now=fixed_now)

        assert record.expires_within(300, now=fixed_now) is True

    def test_expires_within_true_at_exact_boundary(self, fixed_now, make_record):
        """now + buffer == expiry counts as expiring."""
        record = make_record(expires_in=300, now=fixed_now)

        assert record.expires_within(300, now=fixed_now) is True

    def test_is_expired(self, make_record):
        """is_expired reflects the current time."""
        assert make_record(expires_in=-10).is_expired is True
        assert make_record(expires_in=3600).is_expired is False

    def test_dict_form_is_json_safe(self, fixed_now, make_record):
        """to_dict renders the expiry as ISO-8601 and from_dict reads it back."""
        record = make_record(now=fixed_now)

        data = record.to_dict()

        assert data["token_expiry"] == "2026-10-17T13:00:00+00:00"
        assert CredentialRecord.from_dict(data) == record

    def test_from_dict_allows_missing_refresh_token(self, fixed_now):
        """refresh_token may be absent."""
        record = CredentialRecord.from_dict(
            {
                "account_email": "u@example.com",
                "access_token": "A",
                "token_expiry": fixed_now.isoformat(),
            }
        )

        assert record.refresh_token is None

    def test_from_dict_missing_field_raises(self):
        """from_dict raises KeyError when a required field is missing."""
        with pytest.raises(KeyError):
            CredentialRecord.from_dict({"account_email": "u@example.com"})

    def test_record_is_immutable(self, make_record):
        """Records are replaced, never mutated."""
        record = make_record()

        with pytest.raises(FrozenInstanceError):
            record.access_token = "other"

    def test_repr_hides_tokens(self, make_record):
        """Token values never appear in repr."""
        record = make_record(access_token="secret-access", refresh_token="secret-refresh")

        text = repr(record)

        assert "secret-access" not in text
        assert "secret-refresh" not in text
        assert "user@example.com" in text


class TestAuthSession:
    """Tests for AuthSession."""

    def test_remaining_seconds(self, fixed_now):
        """remaining_seconds counts down to the deadline."""
        session = AuthSession(expected_state="s" * 32, deadline=fixed_now + timedelta(minutes=5))

        assert session.remaining_seconds(now=fixed_now) == 300

    def test_remaining_seconds_never_negative(self, fixed_now):
        """Past deadlines report zero."""
        session = AuthSession(expected_state="s" * 32, deadline=fixed_now)

        assert session.remaining_seconds(now=fixed_now + timedelta(minutes=1)) == 0


def test_utc_now_is_timezone_aware():
    """utc_now returns an aware UTC datetime."""
    assert utc_now().tzinfo == timezone.utc
