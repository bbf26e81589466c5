"""
httpmocker Mock Server

FastAPI-based HTTP mock server that answers requests from registered rules.

Features:
- Exact (method, path) routing with raw query string overrides
- Static responses (status, content type, headers, body)
- Custom handlers for full control over a reply
- Unknown-request fallback handler
- Pluggable diagnostics logger
- Runs uvicorn in a background thread on an ephemeral local port
"""

from __future__ import annotations

import inspect
import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.types import Receive, Scope, Send

from .context import RequestContext
from .errors import MockServerError
from .logger import Logger
from .rules import Handler, Rule, RuleStore

logger = logging.getLogger("httpmocker.server")


@dataclass
class MockConfig:
    """Configuration for mock server behavior."""

    # Server options
    host: str = "127.0.0.1"
    port: int = 0  # 0 = ephemeral port
    log_level: str = "warning"
    access_log: bool = False

    # Lifecycle
    startup_timeout: float = 5.0  # Seconds to wait for the listener
    shutdown_timeout: float = 5.0  # Seconds to wait for in-flight requests


async def _invoke(handler: Handler, ctx: RequestContext) -> None:
    """Call a handler; sync handlers run in the threadpool so they may block."""
    if inspect.iscoroutinefunction(handler):
        result = handler(ctx)
    else:
        result = await run_in_threadpool(handler, ctx)
    if inspect.isawaitable(result):
        await result


class _DispatchEndpoint:
    """ASGI endpoint handing every request to a MockServer."""

    def __init__(self, server: MockServer):
        self.server = server

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        response = await self.server._handle_request(Request(scope, receive, send))
        await response(scope, receive, send)


class MockServer:
    """
    HTTP mock server serving canned responses from rules.

    Rules are resolved by exact method and path. Among rules for the same
    method and path, one whose query equals the request's raw query string
    overrides the default rule (the one without a query).

    Example:
        server = MockServer(
            Rule('GET', '/hello', status_code=200, body='hello, world'),
        )
        server.start()
        try:
            requests.get(f'{server.url}/hello').text  # 'hello, world'
        finally:
            server.close()

        # Or launch and close with a context manager
        with launch().add('GET', '/hello', 200, 'hello, world') as server:
            requests.get(f'{server.url}/hello')
    """

    def __init__(self, *rules: Rule, config: Optional[MockConfig] = None):
        """
        Initialize mock server.

        Args:
            *rules: Initial rules, in matching order
            config: Optional MockConfig for server behavior
        """
        self.config = config or MockConfig()
        self.rules = RuleStore().add_rules(*rules)
        self.url = ""

        # Diagnostics sink, silent when unset
        self.logger: Optional[Logger] = None
        self.unknown_request_handler: Optional[Handler] = None

        self.server: Optional[uvicorn.Server] = None
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with a catch-all route."""
        # No docs routes: they would shadow rules for /docs and /openapi.json
        app = FastAPI(
            title="httpmocker",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )
        # An ASGI endpoint (not a function) keeps the route open to every verb
        app.add_route("/{path:path}", _DispatchEndpoint(self), include_in_schema=False)
        return app

    # Rule registration

    def add_rule(self, rule: Rule) -> MockServer:
        self.rules.add_rule(rule)
        return self

    def add_rules(self, *rules: Rule) -> MockServer:
        """Add rules in the given order."""
        self.rules.add_rules(*rules)
        return self

    def add(self, method: str, path: str, status_code: int, body: str) -> MockServer:
        """Add a static rule answering ``status_code`` and ``body``."""
        return self.add_rule(Rule(method=method, path=path, status_code=status_code, body=body))

    def add_empty_response(self, method: str, path: str, status_code: int) -> MockServer:
        """Add a static rule answering ``status_code`` with an empty body."""
        return self.add_rule(Rule(method=method, path=path, status_code=status_code))

    # Dispatch

    def _logf(self, msg: str, *args: Any):
        if self.logger is not None:
            self.logger.log(msg, *args)

    async def _handle_request(self, request: Request) -> Response:
        """
        Resolve a request against the rules and build the response.

        Args:
            request: Incoming Starlette request

        Returns:
            Response built from the matched rule, the unknown-request
            handler, or an empty 200 when neither applies
        """
        ctx = await RequestContext.from_request(request)
        method = ctx.method
        path = ctx.path

        rule = self.rules.find_rule(method, path, ctx.query)

        if rule is None:
            self._logf("unknown request: %s %s", method, path)
            if self.unknown_request_handler is not None:
                await _invoke(self.unknown_request_handler, ctx)
            return ctx.to_response()

        if rule.is_delegated:
            await _invoke(rule.handler, ctx)
            return ctx.to_response()

        # Content-Type is always sent, even when empty
        ctx.set_header("Content-Type", rule.content_type)
        for name, value in rule.header_items():
            ctx.set_header(name, value)
        if rule.status_code:
            ctx.write_header(rule.status_code)
        ctx.write(rule.body)

        self._logf("handler : %s %s -> %r", method, path, rule)
        return ctx.to_response()

    # Lifecycle

    def start(self) -> MockServer:
        """
        Start serving in a background thread.

        Binds ``config.host``/``config.port`` and blocks until the server
        accepts connections. Calling start() on a running server does nothing.

        Returns:
            self, with ``url`` set to the base URL

        Raises:
            OSError: If the socket cannot be bound
            MockServerError: If the server does not come up in time
        """
        with self._lock:
            if self._thread is not None:
                return self

            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                sock.bind((self.config.host, self.config.port))
            except OSError:
                sock.close()
                raise
            host, port = sock.getsockname()[:2]

            config = uvicorn.Config(
                self.app,
                log_level=self.config.log_level,
                access_log=self.config.access_log,
                lifespan="off",
            )
            server = uvicorn.Server(config)
            thread = threading.Thread(
                target=server.run,
                kwargs={"sockets": [sock]},
                name=f"httpmocker-{port}",
                daemon=True,
            )

            self.server = server
            self._socket = sock
            self._thread = thread
            thread.start()

            deadline = time.monotonic() + self.config.startup_timeout
            while not server.started:
                if not thread.is_alive() or time.monotonic() > deadline:
                    self._stop()
                    raise MockServerError(f"mock server failed to start on {host}:{port}")
                time.sleep(0.01)

            self.url = f"http://{host}:{port}"
            logger.debug(f"Mock server listening on {self.url} ({len(self.rules)} rules)")
            return self

    def close(self):
        """
        Stop the server and wait for in-flight requests.

        Safe to call on a server that was never started or is already closed.
        """
        with self._lock:
            if self._thread is None:
                return
            self._stop()
            logger.debug(f"Mock server on {self.url} stopped")

    def _stop(self):
        server, thread, sock = self.server, self._thread, self._socket
        self._thread = None
        self._socket = None

        if server is not None:
            server.should_exit = True
        if thread is not None:
            thread.join(self.config.shutdown_timeout)
            if thread.is_alive():
                logger.warning("Mock server did not stop in time, forcing exit")
                server.force_exit = True
                thread.join()
        if sock is not None:
            sock.close()

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing without a socket.

        Returns:
            FastAPI application instance
        """
        return self.app

    def __enter__(self) -> MockServer:
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.close()


def launch(*rules: Rule, config: Optional[MockConfig] = None) -> MockServer:
    """
    Create a mock server with the given rules and start it.

    Args:
        *rules: Initial rules, in matching order
        config: Optional MockConfig

    Returns:
        Running MockServer; the caller must close() it

    Example:
        server = launch(Rule('GET', '/hello', status_code=200, body='hello'))
        try:
            ...
        finally:
            server.close()
    """
    return MockServer(*rules, config=config).start()
