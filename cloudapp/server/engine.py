"""
uvicorn pieces used by `Server`.

`HeaderTimeoutH11Protocol` adds the read-header deadline uvicorn lacks, and
`HTTPEngine` leaves signal handling to the caller and reports whether the
graceful drain had to cancel requests.
"""

import asyncio
import functools
from contextlib import contextmanager
from typing import Any, Callable, Generator, List, Optional

import uvicorn
from loguru import logger
from uvicorn.protocols.http.h11_impl import H11Protocol

from cloudapp.server.options import Options


class HeaderTimeoutH11Protocol(H11Protocol):
    """
    h11 protocol that closes connections whose request line and headers do
    not fully arrive within `read_header_timeout` seconds.

    The deadline starts when the connection is accepted and again when the
    first byte of every following keep-alive request arrives. Idle time
    between requests is covered by uvicorn's keep-alive timeout.
    """

    def __init__(self, *args: Any, read_header_timeout: float, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.read_header_timeout = read_header_timeout
        self._header_timer: Optional[asyncio.TimerHandle] = None

    def connection_made(self, transport: asyncio.Transport) -> None:  # type: ignore[override]
        super().connection_made(transport)
        self._arm_header_timer()

    def data_received(self, data: bytes) -> None:
        if self._header_timer is None and self._awaiting_headers():
            self._arm_header_timer()
        super().data_received(data)
        if not self._awaiting_headers():
            self._cancel_header_timer()

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._cancel_header_timer()
        super().connection_lost(exc)

    def _awaiting_headers(self) -> bool:
        return self.cycle is None or self.cycle.response_complete

    def _arm_header_timer(self) -> None:
        self._cancel_header_timer()
        self._header_timer = self.loop.call_later(
            self.read_header_timeout, self._on_header_timeout
        )

    def _cancel_header_timer(self) -> None:
        if self._header_timer is not None:
            self._header_timer.cancel()
            self._header_timer = None

    def _on_header_timeout(self) -> None:
        self._header_timer = None
        if self._awaiting_headers() and not self.transport.is_closing():
            logger.debug(
                f"Closing connection from {self.client}: request headers not "
                f"received within {self.read_header_timeout}s"
            )
            self.transport.close()


class HTTPEngine(uvicorn.Server):
    """
    uvicorn server driven by an external supervisor.

    Signals are not captured: stopping is requested through `request_exit()`,
    which may be called from any thread.
    """

    def __init__(
        self,
        config: uvicorn.Config,
        on_started: Optional[Callable[[], None]] = None,
    ) -> None:
        super().__init__(config)
        self.drain_timed_out = False
        self._on_started = on_started
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # uvicorn < 0.29
    def install_signal_handlers(self) -> None:
        return None

    # uvicorn >= 0.29
    @contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        yield

    async def startup(self, sockets: Optional[List[Any]] = None) -> None:
        self._loop = asyncio.get_running_loop()
        await super().startup(sockets=sockets)
        if self.started and self._on_started is not None:
            self._on_started()

    async def shutdown(self, sockets: Optional[List[Any]] = None) -> None:
        in_flight = set(self.server_state.tasks)
        await super().shutdown(sockets=sockets)
        # uvicorn cancels the tasks still running when the deadline expires
        in_flight |= set(self.server_state.tasks)
        self.drain_timed_out = any(task.cancelling() for task in in_flight)

    def request_exit(self) -> None:
        """Ask the serving loop to begin its graceful shutdown."""
        loop = self._loop
        if loop is None or loop.is_closed():
            self.should_exit = True
            return
        try:
            # set on the loop thread so the flag is read after startup completes
            loop.call_soon_threadsafe(self._set_should_exit)
        except RuntimeError:
            self.should_exit = True

    def _set_should_exit(self) -> None:
        self.should_exit = True


def build_engine(
    app: Any,
    options: Options,
    on_started: Optional[Callable[[], None]] = None,
) -> HTTPEngine:
    """Create the uvicorn engine serving `app` with the timeouts of `options`."""
    config = uvicorn.Config(
        app,
        host=options.host,
        port=options.port,
        loop="asyncio",
        http=functools.partial(
            HeaderTimeoutH11Protocol,
            read_header_timeout=options.read_header_timeout,
        ),
        ws="none",
        lifespan="on",
        timeout_keep_alive=options.idle_timeout,
        timeout_graceful_shutdown=options.shutdown_timeout,
        backlog=options.backlog,
        log_config=None,
        access_log=options.access_log,
    )
    return HTTPEngine(config, on_started=on_started)
