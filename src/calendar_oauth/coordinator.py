"""
OAuth coordinator for high-level calendar OAuth operations.

This module provides the main interface for OAuth operations in the
application. It runs the authorization flow (state machine below), owns
the on-demand refresh path, and exposes the connection status.

Flow states:
    IDLE -> AWAITING_CALLBACK -> EXCHANGING -> COMPLETE
    any non-terminal state -> FAILED
"""

import logging
import threading
import webbrowser
from concurrent.futures import Future
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from .authorization import build_authorization_url
from .callback_server import CallbackListener, CallbackResult
from .config import GoogleOAuthConfig
from .credential_store import CredentialStore, JsonFileCredentialStore
from .exceptions import (
    AuthorizationTimeoutError,
    FlowAlreadyActiveError,
    MissingRefreshTokenError,
    NotConnectedError,
    ProviderDeniedError,
    SecurityViolationError,
)
from .models import (
    AuthFlowState,
    AuthSession,
    ConnectionStatus,
    CredentialRecord,
    utc_now,
)
from .pages import SECURITY_ERROR_PAGE, SUCCESS_PAGE, render_error_page
from .state import generate_state
from .token_exchanger import TokenExchanger

logger = logging.getLogger(__name__)

# Shared by every coordinator: one flow may await a callback per process
_active_flow_lock = threading.Lock()


class OAuthCoordinator:
    """
    High-level coordinator for calendar OAuth operations.

    This is the main interface that applications should use for OAuth.

    Example:
        coordinator = OAuthCoordinator()
        record = coordinator.start_authorization()
        token = coordinator.get_valid_access_token()
        # Use token for Calendar API calls
    """

    def __init__(
        self,
        config: Optional[GoogleOAuthConfig] = None,
        store: Optional[CredentialStore] = None,
        exchanger: Optional[TokenExchanger] = None,
        open_browser: Callable[[str], object] = webbrowser.open,
        listener_factory: Callable[..., CallbackListener] = CallbackListener,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize OAuth coordinator.

        Args:
            config: OAuth configuration (loaded from file/environment if not provided)
            store: Credential store (JSON file at config.credential_file if not provided)
            exchanger: Token endpoint client
            open_browser: Opens a URL in the user's browser (fire-and-forget)
            listener_factory: Builds the loopback callback listener
            clock: Source of the current UTC time
        """
        self.config = config or GoogleOAuthConfig.load()
        self.store = store or JsonFileCredentialStore(self.config.credential_file)
        self.exchanger = exchanger or TokenExchanger(self.config, clock=clock)
        self.open_browser = open_browser
        self.listener_factory = listener_factory
        self.clock = clock

        self._flow_active = False
        self._token_lock = threading.Lock()
        self._flow_state = AuthFlowState.IDLE

    @property
    def flow_state(self) -> AuthFlowState:
        """State of the current (or most recent) authorization attempt."""
        return self._flow_state

    def _set_flow_state(self, state: AuthFlowState) -> None:
        logger.debug(f"Authorization flow: {self._flow_state.value} -> {state.value}")
        self._flow_state = state

    # ------------------------------------------------------------------
    # Authorization flow
    # ------------------------------------------------------------------

    def start_authorization(self) -> CredentialRecord:
        """
        Run the complete OAuth authorization flow (blocking).

        1. Generates a CSRF state and the authorization URL
        2. Opens the browser and starts the loopback listener
        3. Waits for the callback until the deadline
        4. Validates the state, exchanges the code for tokens
        5. Saves the credential

        Returns:
            The stored CredentialRecord

        Raises:
            FlowAlreadyActiveError: Another flow is in progress
            AuthorizationTimeoutError: No callback before the deadline
            ProviderDeniedError: Google returned an error (or no code)
            SecurityViolationError: Callback state did not match
            TokenExchangeError: Code exchange / identity lookup failed
        """
        self._claim_flow()
        try:
            return self._run_flow()
        finally:
            self._release_flow()

    def start_authorization_async(self) -> "Future[CredentialRecord]":
        """
        Run the authorization flow on a dedicated worker thread.

        The single-flight check happens before this method returns, so a
        second concurrent call raises immediately.

        Returns:
            Future resolving to the stored CredentialRecord or the flow error

        Raises:
            FlowAlreadyActiveError: Another flow is in progress
        """
        self._claim_flow()

        future: "Future[CredentialRecord]" = Future()
        future.set_running_or_notify_cancel()

        def worker() -> None:
            # Release before resolving so waiters observe the finished flow
            try:
                record = self._run_flow()
            except BaseException as e:
                self._release_flow()
                future.set_exception(e)
            else:
                self._release_flow()
                future.set_result(record)

        try:
            threading.Thread(target=worker, name="oauth-authorization-flow", daemon=True).start()
        except BaseException:
            self._release_flow()
            raise
        return future

    def _claim_flow(self) -> None:
        if not _active_flow_lock.acquire(blocking=False):
            raise FlowAlreadyActiveError("An authorization flow is already in progress")
        self._flow_active = True

    def _release_flow(self) -> None:
        self._flow_active = False
        _active_flow_lock.release()

    def _run_flow(self) -> CredentialRecord:
        self._set_flow_state(AuthFlowState.IDLE)
        session = AuthSession(
            expected_state=generate_state(),
            deadline=self.clock()
            + timedelta(seconds=self.config.authorization_timeout_seconds),
        )

        try:
            result = self._await_callback(session)
            code = self._validate_callback(session, result)

            self._set_flow_state(AuthFlowState.EXCHANGING)
            record = self.exchanger.exchange_code(code, self.config.redirect_uri)
            self.store.save(record)
        except BaseException:
            self._set_flow_state(AuthFlowState.FAILED)
            raise

        self._set_flow_state(AuthFlowState.COMPLETE)
        logger.info(f"Calendar connected for {record.account_email}")
        return record

    def _await_callback(self, session: AuthSession) -> CallbackResult:
        listener = self.listener_factory(
            self.config.callback_host,
            self.config.callback_port,
            self.config.callback_path,
            lambda result: self._render_callback_page(session, result),
            clock=self.clock,
        )
        listener.start()
        try:
            self._set_flow_state(AuthFlowState.AWAITING_CALLBACK)

            auth_url = build_authorization_url(
                self.config,
                session.expected_state,
                self.config.redirect_uri,
                self.config.scopes,
            )
            logger.info(f"Please authorize calendar access by visiting: {auth_url}")
            logger.info(
                f"Waiting up to {session.remaining_seconds(now=self.clock()):.0f}s for the callback"
            )
            try:
                self.open_browser(auth_url)
            except Exception as e:
                logger.warning(f"Could not open browser automatically: {e}")

            return listener.wait(session.deadline)
        finally:
            listener.stop()

    def _validate_callback(self, session: AuthSession, result: CallbackResult) -> str:
        """Map the callback outcome to an authorization code or a flow error."""
        if result.is_timeout:
            raise AuthorizationTimeoutError(
                f"No callback received within {self.config.authorization_timeout_seconds} "
                f"seconds. Please ensure you completed the authorization in your browser."
            )

        if result.is_provider_error:
            raise ProviderDeniedError(result.error, result.error_description)

        if result.returned_state != session.expected_state:
            logger.error("OAuth callback state mismatch - possible CSRF attack")
            raise SecurityViolationError("Invalid state - possible CSRF attack")

        if not result.code:
            raise ProviderDeniedError("missing_code", "No authorization code received")

        return result.code

    @staticmethod
    def _render_callback_page(session: AuthSession, result: CallbackResult) -> str:
        if result.is_provider_error:
            return render_error_page(result.error)
        if result.returned_state != session.expected_state:
            return SECURITY_ERROR_PAGE
        if not result.code:
            return render_error_page("missing_code")
        return SUCCESS_PAGE

    # ------------------------------------------------------------------
    # Token access
    # ------------------------------------------------------------------

    def get_valid_access_token(self) -> str:
        """
        Get a valid access token, refreshing if necessary.

        Concurrent callers are serialized; a caller that waited while another
        refreshed re-reads the store and finds the fresh token.

        Returns:
            Valid access token string

        Raises:
            NotConnectedError: No credential stored
            MissingRefreshTokenError: Token expiring and no refresh token stored
            TokenRefreshError: Refresh failed (stored credential is kept)
        """
        with self._token_lock:
            record = self.store.load()
            if record is None:
                raise NotConnectedError("Calendar not connected. Run authorization flow first.")

            now = self.clock()
            if not record.expires_within(self.config.refresh_buffer_seconds, now=now):
                return record.access_token

            logger.info(
                f"Access token expires soon "
                f"(within {self.config.refresh_buffer_seconds}s), refreshing..."
            )
            if not record.refresh_token:
                raise MissingRefreshTokenError(
                    "No refresh token stored. Disconnect and connect the calendar again."
                )

            access_token, expires_in = self.exchanger.refresh(record.refresh_token)
            refreshed = replace(
                record,
                access_token=access_token,
                token_expiry=self.clock() + timedelta(seconds=expires_in),
            )
            self.store.save(refreshed)
            return refreshed.access_token

    def get_authorization_header(self) -> dict:
        """
        Get Authorization header dict for Calendar API requests.

        Returns:
            Dict with Authorization header: {"Authorization": "Bearer <token>"}

        Raises:
            NotConnectedError: If not connected
        """
        token = self.get_valid_access_token()
        return {"Authorization": f"Bearer {token}"}

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> Optional[CredentialRecord]:
        """Stored credential, or None when not connected."""
        return self.store.load()

    def connection_status(self) -> ConnectionStatus:
        """Connection state for display (connected / not connected / connecting)."""
        if self._flow_active:
            return ConnectionStatus.CONNECTING
        if self.store.load() is not None:
            return ConnectionStatus.CONNECTED
        return ConnectionStatus.NOT_CONNECTED

    def disconnect(self) -> None:
        """
        Remove the stored credential.

        Idempotent. This does NOT revoke the tokens at Google; it only
        forgets them locally.
        """
        with self._token_lock:
            self.store.clear()
        logger.info("Calendar disconnected. Re-authorization required.")
