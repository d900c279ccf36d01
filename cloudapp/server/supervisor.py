import signal
import threading
from typing import Iterable

from loguru import logger

from cloudapp.core.exceptions import ServerStartError, ServerStopError
from cloudapp.server.server import STOP_GRACE_PERIOD, LifecycleState, Server

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_signal_handlers(
    stop_event: threading.Event,
    signals: Iterable[signal.Signals] = TERMINATION_SIGNALS,
) -> None:
    """
    Set `stop_event` when one of `signals` is received.

    Must be called from the main thread.
    """

    def handle_signal(signum, frame):
        if stop_event.is_set():
            logger.debug(f"Signal {signum} received but shutdown already in progress")
            return
        logger.info(f"Received signal {signal.Signals(signum).name}, shutting down...")
        stop_event.set()

    for sig in signals:
        signal.signal(sig, handle_signal)


def serve_until_stopped(
    server: Server,
    stop_event: threading.Event,
    poll_interval: float = 0.5,
) -> int:
    """
    Run `server.start()` on a worker thread until `stop_event` is set.

    The calling thread keeps waiting on the event so that signal handlers run
    promptly, then calls `server.stop()` and joins the worker.

    Returns:
        int: Process exit status, 0 on graceful closure and 1 on failure.
    """
    failures = []

    def run() -> None:
        try:
            server.start()
        except ServerStartError as e:
            failures.append(e)

    runner = threading.Thread(target=run, name="http-server", daemon=True)
    runner.start()

    while runner.is_alive() and not stop_event.wait(poll_interval):
        pass

    if runner.is_alive():
        # stop() ignores a server whose start() has not claimed it yet
        while runner.is_alive() and server.state is LifecycleState.UNSTARTED:
            runner.join(poll_interval)
        try:
            server.stop()
        except ServerStopError as e:
            logger.error(str(e))
            failures.append(e)
        runner.join(STOP_GRACE_PERIOD)

    for failure in failures:
        if isinstance(failure, ServerStartError):
            logger.opt(exception=failure).critical(f"Server failed: {failure}")

    return 1 if failures else 0
