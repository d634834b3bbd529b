"""
Credential storage for Google Calendar OAuth.

The store holds zero or one CredentialRecord. Saving replaces the previous
record entirely; clearing an empty store is not an error.

Implementations:
    InMemoryCredentialStore: Lock-guarded slot (tests, ephemeral sessions)
    JsonFileCredentialStore: Plaintext JSON file written atomically (chmod 600)
    SqlCredentialStore: Single-row SQLAlchemy table (CHECK id = 1)
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from .exceptions import CredentialStorageError
from .models import CredentialRecord

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """
    Single-record credential persistence.

    Implementations must make ``save`` and ``load`` atomic at the record
    level: a reader never observes a partially written record.
    """

    @abstractmethod
    def save(self, record: CredentialRecord) -> None:
        """Replace the stored record."""

    @abstractmethod
    def load(self) -> Optional[CredentialRecord]:
        """Return the stored record, or None if there is none."""

    @abstractmethod
    def clear(self) -> None:
        """Remove the stored record (no-op when empty)."""


class InMemoryCredentialStore(CredentialStore):
    """Credential store that lives only as long as the process."""

    def __init__(self, record: Optional[CredentialRecord] = None):
        self._record = record
        self._lock = threading.Lock()

    def save(self, record: CredentialRecord) -> None:
        with self._lock:
            self._record = record

    def load(self) -> Optional[CredentialRecord]:
        with self._lock:
            return self._record

    def clear(self) -> None:
        with self._lock:
            self._record = None


class JsonFileCredentialStore(CredentialStore):
    """
    File-based credential storage (plaintext JSON).

    Writes go to a temporary file in the same directory which then replaces
    the credential file, so a concurrent reader sees either the old or the
    new record.
    """

    def __init__(self, credential_file: str):
        """
        Initialize credential storage.

        Args:
            credential_file: Path to the credential file
                       (e.g., ~/.taskpad/calendar_credentials.json)
        """
        self.credential_file = Path(credential_file).expanduser()
        self._lock = threading.Lock()

    def _ensure_directory(self) -> None:
        """Create parent directory if needed."""
        self.credential_file.parent.mkdir(parents=True, exist_ok=True)

    def save(self, record: CredentialRecord) -> None:
        """
        Save credential to file with user-only permissions (600).

        Raises:
            CredentialStorageError: If save operation fails
        """
        with self._lock:
            tmp_path = None
            try:
                self._ensure_directory()
                fd, tmp_path = tempfile.mkstemp(
                    dir=self.credential_file.parent,
                    prefix=f".{self.credential_file.name}.",
                    suffix=".tmp",
                )
                with os.fdopen(fd, "w") as f:
                    json.dump(record.to_dict(), f, indent=2)
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, self.credential_file)
                tmp_path = None
                logger.info(f"Credential saved to {self.credential_file}")
            except OSError as e:
                logger.error(f"Failed to save credential: {e}")
                raise CredentialStorageError(f"Failed to save credential: {e}") from e
            finally:
                if tmp_path is not None and os.path.exists(tmp_path):
                    os.unlink(tmp_path)

    def load(self) -> Optional[CredentialRecord]:
        """
        Load credential from file.

        Returns:
            CredentialRecord if file exists and is valid, None otherwise

        Notes:
            - Returns None if file doesn't exist (normal before first connect)
            - Returns None if file is corrupted (logs warning)
        """
        with self._lock:
            if not self.credential_file.exists():
                logger.debug(f"No credential file found at {self.credential_file}")
                return None

            try:
                with open(self.credential_file, "r") as f:
                    data = json.load(f)
                return CredentialRecord.from_dict(data)
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning(
                    f"Invalid credential file at {self.credential_file}, "
                    f"will need re-authorization: {e}"
                )
                return None
            except OSError as e:
                logger.warning(f"Could not read credential file: {e}")
                return None

    def clear(self) -> None:
        """
        Delete the credential file.

        Raises:
            CredentialStorageError: If the file exists but cannot be deleted
        """
        with self._lock:
            try:
                self.credential_file.unlink()
                logger.info(f"Credential file deleted: {self.credential_file}")
            except FileNotFoundError:
                logger.debug(f"Credential file does not exist: {self.credential_file}")
            except OSError as e:
                logger.error(f"Failed to delete credential file: {e}")
                raise CredentialStorageError(f"Failed to delete credential file: {e}") from e


Base = declarative_base()


class CalendarCredentialRow(Base):
    """
    Calendar credential table (single row).

    The CHECK constraint pins the primary key to 1, so the table can never
    hold more than one credential.
    """

    __tablename__ = "calendar_credentials"
    __table_args__ = (CheckConstraint("id = 1", name="ck_calendar_credentials_single_row"),)

    id = Column(Integer, primary_key=True, autoincrement=False, default=1)
    email = Column(String(255), nullable=False)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_expiry = Column(DateTime, nullable=False)  # naive UTC
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    def to_record(self) -> CredentialRecord:
        return CredentialRecord(
            account_email=self.email,
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            token_expiry=self.token_expiry,
        )

    def __repr__(self) -> str:
        return f"<CalendarCredentialRow(email={self.email}, expiry={self.token_expiry})>"


class SqlCredentialStore(CredentialStore):
    """
    Credential storage in a relational database via SQLAlchemy.

    Example:
        store = SqlCredentialStore("sqlite:///~/.taskpad/tasks.db")
    """

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        """
        Initialize SQL credential storage.

        Args:
            database_url: SQLAlchemy database URL (ignored if engine is given)
            engine: Existing engine to share with the rest of the application

        Raises:
            CredentialStorageError: If the table cannot be created
        """
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False}
                if database_url.startswith("sqlite")
                else {},
            )
        self.engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        try:
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as e:
            raise CredentialStorageError(f"Failed to create credential table: {e}") from e

    def save(self, record: CredentialRecord) -> None:
        expiry = record.token_expiry.replace(tzinfo=None)
        session = self._session_factory()
        try:
            row = session.get(CalendarCredentialRow, 1)
            if row is None:
                row = CalendarCredentialRow(id=1)
                session.add(row)
            row.email = record.account_email
            row.access_token = record.access_token
            row.refresh_token = record.refresh_token
            row.token_expiry = expiry
            session.commit()
            logger.info("Credential saved to database")
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to save credential: {e}")
            raise CredentialStorageError(f"Failed to save credential: {e}") from e
        finally:
            session.close()

    def load(self) -> Optional[CredentialRecord]:
        session = self._session_factory()
        try:
            row = session.get(CalendarCredentialRow, 1)
            return row.to_record() if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load credential: {e}")
            raise CredentialStorageError(f"Failed to load credential: {e}") from e
        finally:
            session.close()

    def clear(self) -> None:
        session = self._session_factory()
        try:
            session.query(CalendarCredentialRow).delete()
            session.commit()
            logger.info("Credential removed from database")
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to clear credential: {e}")
            raise CredentialStorageError(f"Failed to clear credential: {e}") from e
        finally:
            session.close()
