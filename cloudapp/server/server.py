"""
The life of a Server.

A `Server` is built once from its `Options` and the routers it should answer.
Building it opens no sockets. `start()` binds the listening socket and blocks
while requests are served; `stop()`, usually called from another thread by the
process supervisor, stops accepting connections, lets in-flight requests
finish and cancels whatever is still running once the shutdown deadline
expires.

Graceful closure is not an error: `start()` simply returns after `stop()`.
Failures surface as `ServerStartError` / `ServerStopError` with the underlying
cause chained.
"""

import socket
import threading
from enum import StrEnum
from typing import Any, Iterable, Optional

from fastapi import APIRouter, FastAPI
from loguru import logger

from cloudapp.core.exceptions import ServerStartError, ServerStopError
from cloudapp.core.handlers import setup_api_exception_handler
from cloudapp.core.models.config import AppInfoConfig
from cloudapp.server.engine import HTTPEngine, build_engine
from cloudapp.server.middleware import RequestTimeoutMiddleware
from cloudapp.server.options import Options, join_host_port

# extra time stop() waits beyond the shutdown deadline before giving up
STOP_GRACE_PERIOD = 5.0


class LifecycleState(StrEnum):
    UNSTARTED = "unstarted"
    LISTENING = "listening"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Server:
    """
    HTTP server with a start/stop lifecycle.

    Args:
        options (Options): Address and timeouts.
        routers (Iterable[APIRouter]): Routes to serve, registered at construction.
        info (Optional[AppInfoConfig]): Metadata for the FastAPI application.
        log: loguru logger used for lifecycle messages.

    Example:
        ```python
        server = Server(Options(host="127.0.0.1", port=8000), routers=[health.router])
        threading.Thread(target=server.start).start()
        ...
        server.stop()
        ```
    """

    def __init__(
        self,
        options: Options,
        routers: Iterable[APIRouter] = (),
        info: Optional[AppInfoConfig] = None,
        log: Any = None,
    ) -> None:
        self.options = options
        self.address = join_host_port(options.host, options.port)
        self.log = log or logger.bind(logger_name="server")
        self.app = self._build_app(routers, info or AppInfoConfig())
        self.engine: HTTPEngine = build_engine(
            self.app, options, on_started=self._on_engine_started
        )

        self._lock = threading.Lock()
        self._state = LifecycleState.UNSTARTED
        self._ready = threading.Event()
        self._finished = threading.Event()
        self._serving_thread: Optional[threading.Thread] = None
        self._listen_address: Optional[str] = None
        self._stop_error: Optional[ServerStopError] = None

    def _build_app(self, routers: Iterable[APIRouter], info: AppInfoConfig) -> FastAPI:
        app = FastAPI(**info.defined_fields())
        for router in routers:
            app.include_router(router)
        setup_api_exception_handler(app)
        app.add_middleware(
            RequestTimeoutMiddleware,
            read_timeout=self.options.read_timeout,
            write_timeout=self.options.write_timeout,
        )
        return app

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def listen_address(self) -> Optional[str]:
        """The bound "host:port", with the real port when 0 was requested."""
        return self._listen_address

    def start(self) -> None:
        """
        Bind the listening socket and serve until `stop()` is called.

        Returns None once the server closed gracefully.

        Raises:
            ServerStartError: If the server was already started, the socket
                could not be bound, or serving ended for any other reason.
        """
        with self._lock:
            if self._state is not LifecycleState.UNSTARTED:
                raise ServerStartError(self.address, "server has already been started")
            self._state = LifecycleState.LISTENING
            self._serving_thread = threading.current_thread()

        try:
            self._serve()
        finally:
            with self._lock:
                self._state = LifecycleState.STOPPED
            self._ready.set()
            self._finished.set()

    def _serve(self) -> None:
        try:
            sock = self._bind()
        except OSError as exc:
            self.log.error(f"Could not listen on {self.address}: {exc}")
            raise ServerStartError(self.address, f"error starting server: {exc}") from exc

        host, port = sock.getsockname()[:2]
        self._listen_address = join_host_port(host, port)
        self.log.info(f"Starting on {self._listen_address}")

        try:
            self.engine.run(sockets=[sock])
        except SystemExit as exc:
            # uvicorn reports fatal startup errors through sys.exit()
            raise ServerStartError(self.address, "error starting server") from exc
        except Exception as exc:
            raise ServerStartError(self.address, f"error serving requests: {exc}") from exc
        finally:
            sock.close()

        if not self.engine.started:
            raise ServerStartError(self.address, "application startup failed")
        self.log.info(f"Server on {self._listen_address} closed")

    def _bind(self) -> socket.socket:
        family, socktype, proto, _, sockaddr = socket.getaddrinfo(
            self.options.host or None,
            self.options.port,
            type=socket.SOCK_STREAM,
            flags=socket.AI_PASSIVE,
        )[0]
        sock = socket.socket(family, socktype, proto)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
            sock.listen(self.options.backlog)
        except OSError:
            sock.close()
            raise
        return sock

    def _on_engine_started(self) -> None:
        self._ready.set()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the server accepts connections or `start()` has returned.

        Returns True if the server is accepting connections.
        """
        self._ready.wait(timeout)
        return self.engine.started and not self._finished.is_set()

    def stop(self) -> None:
        """
        Gracefully stop a started server.

        Calling it before `start()` does nothing. Later calls wait for the
        shutdown begun by the first one and report the same outcome.

        Raises:
            ServerStopError: If in-flight requests had to be cancelled at the
                shutdown deadline, or the server did not exit in time.
        """
        with self._lock:
            state = self._state
            if state is LifecycleState.LISTENING:
                self._state = LifecycleState.STOPPING

        if state is LifecycleState.UNSTARTED:
            self.log.warning(f"Stop requested for {self.address} before start; nothing to stop")
            return

        deadline = self.options.shutdown_timeout
        if state is LifecycleState.LISTENING:
            self.log.info("Stopping")
            # the engine must finish startup first or it would skip its shutdown
            self._ready.wait(deadline)
            self.engine.request_exit()
            if threading.current_thread() is self._serving_thread:
                return

        if not self._finished.wait(deadline + STOP_GRACE_PERIOD):
            self.engine.force_exit = True
            self._finished.wait(STOP_GRACE_PERIOD)
            self._stop_error = ServerStopError(
                self.address,
                f"error stopping the server: did not exit within {deadline}s",
            )
        elif self.engine.drain_timed_out and self._stop_error is None:
            self._stop_error = ServerStopError(
                self.address,
                f"error stopping the server: graceful shutdown exceeded {deadline}s, "
                "remaining requests were cancelled",
            )

        if self._stop_error is not None:
            raise self._stop_error
