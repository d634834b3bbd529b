"""
Loopback OAuth callback listener for Google Calendar integration.

This module provides a short-lived HTTP server bound to 127.0.0.1 that
accepts exactly one OAuth redirect on the registered callback path and
then shuts down, releasing its port.

IMPORTANT: This server is designed for single-user, personal use. Only the
callback path is routed; any other request gets a 404 and the listener
keeps waiting until the callback arrives or the deadline passes.
Each connection is handled on its own thread, so an idle connection
(e.g. a browser preconnect) cannot hold up the redirect or the shutdown.
"""

import logging
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from flask import Flask, Response, request
from werkzeug.serving import BaseWSGIServer, make_server

from .exceptions import CallbackListenerError
from .models import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallbackResult:
    """
    Parsed outcome of the single callback request.

    Exactly one of three shapes:
    - received: ``code`` (may be None for a malformed redirect) and
      ``returned_state``
    - provider error: ``error`` and optional ``error_description``
    - timeout: ``timed_out`` is True

    Attributes:
        code: Authorization code from the redirect
        returned_state: ``state`` parameter echoed back by the provider
        error: Error code from the provider
        error_description: Human-readable error description from the provider
        timed_out: No callback arrived before the deadline
    """

    code: Optional[str] = None
    returned_state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None
    timed_out: bool = False

    @classmethod
    def received(cls, code: Optional[str], returned_state: Optional[str]) -> "CallbackResult":
        return cls(code=code, returned_state=returned_state)

    @classmethod
    def provider_error(
        cls, error: str, error_description: Optional[str] = None
    ) -> "CallbackResult":
        return cls(error=error, error_description=error_description)

    @classmethod
    def timeout(cls) -> "CallbackResult":
        return cls(timed_out=True)

    @property
    def is_timeout(self) -> bool:
        return self.timed_out

    @property
    def is_provider_error(self) -> bool:
        return self.error is not None


PageRenderer = Callable[[CallbackResult], str]


class CallbackListener:
    """
    Single-use loopback HTTP listener for the OAuth redirect.

    The listener does not decide what the browser sees: ``render_page`` is
    called with the parsed result and its return value is sent back as the
    HTML body before the listener stops.

    Usage:
        listener = CallbackListener("127.0.0.1", 3333, "/oauth/callback", render)
        result = listener.wait(deadline)   # binds, waits, always releases the port

    Attributes:
        host: Loopback address to bind
        port: Port bound (resolved after ``start()`` when 0 was requested)
        callback_path: Registered redirect path
        result: Parsed callback, once received
        clock: Source of the current UTC time, used against the deadline
    """

    def __init__(
        self,
        host: str,
        port: int,
        callback_path: str,
        render_page: PageRenderer,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.host = host
        self.port = port
        self.callback_path = callback_path
        self.render_page = render_page
        self.clock = clock
        self.result: Optional[CallbackResult] = None

        self.app = Flask(__name__)
        self.app.logger.setLevel(logging.WARNING)  # Suppress Flask logs
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

        self._server: Optional[BaseWSGIServer] = None
        self._thread: Optional[threading.Thread] = None
        self._callback_received = threading.Event()
        self._result_lock = threading.Lock()

        self.app.add_url_rule(
            self.callback_path,
            "oauth_callback",
            self._handle_callback,
            methods=["GET"],
        )

    def _handle_callback(self) -> Response:
        """Handle the OAuth redirect from Google."""
        with self._result_lock:
            first = self.result is None
            if first:
                self.result = self._parse_callback()
            result = self.result

        response = Response(self.render_page(result), status=200, content_type="text/html")
        if first:
            # Wake the waiter only once the page has been written to the browser
            response.call_on_close(self._callback_received.set)
        return response

    def _parse_callback(self) -> CallbackResult:
        logger.info("Received OAuth callback")

        error = request.args.get("error")
        if error:
            error_desc = request.args.get("error_description")
            logger.error(f"OAuth error from provider: {error} - {error_desc}")
            return CallbackResult.provider_error(error, error_desc)

        code = request.args.get("code") or None
        returned_state = request.args.get("state")
        if code is None:
            logger.warning("OAuth callback carried no authorization code")
        return CallbackResult.received(code, returned_state)

    @property
    def is_running(self) -> bool:
        return self._server is not None

    def start(self) -> None:
        """
        Bind the loopback port and serve in a background thread.

        Raises:
            CallbackListenerError: If the port cannot be bound
        """
        if self._server is not None:
            return

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
            sock.listen(8)
        except OSError as e:
            sock.close()
            raise CallbackListenerError(
                f"Could not listen on {self.host}:{self.port} for the OAuth callback: {e}"
            ) from e

        try:
            self.port = sock.getsockname()[1]
            # The server takes its own duplicate of the listening socket
            self._server = make_server(
                self.host, self.port, self.app, threaded=True, fd=sock.fileno()
            )
        finally:
            sock.close()

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="oauth-callback-listener",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            f"OAuth callback listener started on http://{self.host}:{self.port}"
            f"{self.callback_path}"
        )

    def wait(self, deadline: datetime) -> CallbackResult:
        """
        Wait for the OAuth callback until the deadline.

        Starts the listener if needed. The port is released before this
        method returns, whatever the outcome.

        Args:
            deadline: Absolute UTC time after which the wait is abandoned

        Returns:
            CallbackResult with code/state, provider error, or timeout
        """
        try:
            self.start()
            timeout = max(0.0, (deadline - self.clock()).total_seconds())
            logger.info(f"Waiting for OAuth callback (timeout: {timeout:.0f}s)")

            self._callback_received.wait(timeout=timeout)
            with self._result_lock:
                result = self.result
            # A callback recorded before the deadline counts even if its page is still being sent
            if result is not None:
                return result

            logger.warning(f"Timeout waiting for OAuth callback after {timeout:.0f}s")
            return CallbackResult.timeout()
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop serving and release the port. Safe to call more than once."""
        server, self._server = self._server, None
        if server is None:
            return

        server.shutdown()
        server.server_close()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        logger.info("OAuth callback listener shut down")

    def __enter__(self) -> "CallbackListener":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
