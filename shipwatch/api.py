"""The HTTP server that exposes the token-protected API endpoints."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import urlsplit

log = logging.getLogger(__name__)

TOKEN_MISSING_MSG = "api token is empty or has not been set. exiting"
DEFAULT_PORT = 8080

Handler = Callable[[bytes], Any]


class TokenMissingError(RuntimeError):
    """The API was started with handlers but without a token."""

    def __init__(self) -> None:
        super().__init__(TOKEN_MISSING_MSG)


class Api:
    """Routes HTTP requests to registered handlers once the bearer token matches."""

    def __init__(self, token: str = "") -> None:
        self.token = token
        self._handlers: dict[str, Handler] = {}
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def has_handlers(self) -> bool:
        """Tell whether any endpoint has been registered."""
        return bool(self._handlers)

    def is_authorized(self, authorization: Optional[str]) -> bool:
        """Tell whether an Authorization header value carries the expected token."""
        return (authorization or "") == f"Bearer {self.token}"

    def register(self, path: str, handler: Handler) -> None:
        """Serve ``path`` with ``handler``, which receives the request body."""
        self._handlers[path] = handler

    def dispatch(
        self, path: str, authorization: Optional[str], body: bytes = b""
    ) -> tuple[HTTPStatus, bytes]:
        """Handle one request and return its status and response body.

        A request with a wrong token is answered with an empty response and
        the handler is not called.
        """
        handler = self._handlers.get(path)
        if handler is None:
            return HTTPStatus.NOT_FOUND, b"404 page not found\n"
        if not self.is_authorized(authorization):
            log.debug("Invalid token %r", authorization)
            return HTTPStatus.OK, b""
        log.debug("Valid token found.")
        result = handler(body)
        return HTTPStatus.OK, result if isinstance(result, bytes) else b""

    def start(self, block: bool = False, port: int = DEFAULT_PORT) -> Optional[int]:
        """Start serving when any handler is registered.

        Returns the port being served, or None when there is nothing to serve.
        Raises TokenMissingError when no token has been set.
        """
        if not self._handlers:
            log.debug("Watchtower HTTP API skipped.")
            return None
        if not self.token:
            raise TokenMissingError()

        log.info("Watchtower HTTP API started.")
        server = ThreadingHTTPServer(("", port), _make_request_handler(self))
        self._server = server
        bound_port = server.server_address[1]
        log.info("Serving HTTP")
        if block:
            try:
                server.serve_forever()
            finally:
                server.server_close()
        else:
            self._thread = threading.Thread(
                target=server.serve_forever, name="http-api", daemon=True
            )
            self._thread.start()
        return bound_port

    def stop(self) -> None:
        """Stop the server if it is running."""
        server, self._server = self._server, None
        if server is None:
            return
        server.shutdown()
        server.server_close()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join()


def _make_request_handler(api: Api) -> type[BaseHTTPRequestHandler]:
    class _RequestHandler(BaseHTTPRequestHandler):
        def _serve(self) -> None:
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length > 0 else b""
            status, payload = api.dispatch(
                urlsplit(self.path).path, self.headers.get("Authorization", ""), body
            )
            self.send_response(status)
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            if payload:
                self.wfile.write(payload)

        do_GET = _serve
        do_POST = _serve
        do_PUT = _serve
        do_PATCH = _serve
        do_DELETE = _serve

        def log_message(self, format: str, *args: Any) -> None:
            log.debug("%s - %s", self.address_string(), format % args)

    return _RequestHandler