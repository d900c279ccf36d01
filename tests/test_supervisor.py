"""
Tests for the signal-driven supervisor around `Server.start()` / `Server.stop()`.
"""

from __future__ import annotations

import os
import signal
import socket
import threading
import time

import httpx

from cloudapp.server.server import LifecycleState
from cloudapp.server.supervisor import install_signal_handlers, serve_until_stopped


def test_serve_until_stopped_returns_zero_on_graceful_closure(make_server):
    server = make_server()
    stop_event = threading.Event()
    statuses = []

    def probe_then_stop():
        assert server.wait_until_ready(timeout=10)
        statuses.append(httpx.get(f"http://{server.listen_address}/health").status_code)
        stop_event.set()

    prober = threading.Thread(target=probe_then_stop)
    prober.start()

    exit_code = serve_until_stopped(server, stop_event, poll_interval=0.05)
    prober.join(timeout=5)

    assert exit_code == 0
    assert statuses == [200]
    assert server.state is LifecycleState.STOPPED


def test_serve_until_stopped_returns_one_when_start_fails(make_server):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupied:
        occupied.bind(("127.0.0.1", 0))
        occupied.listen(1)
        server = make_server(port=occupied.getsockname()[1])

        exit_code = serve_until_stopped(server, threading.Event(), poll_interval=0.05)

    assert exit_code == 1
    assert server.state is LifecycleState.STOPPED


def test_signal_sets_stop_event():
    stop_event = threading.Event()
    previous = signal.getsignal(signal.SIGUSR1)
    try:
        install_signal_handlers(stop_event, signals=(signal.SIGUSR1,))
        os.kill(os.getpid(), signal.SIGUSR1)
        assert stop_event.wait(timeout=5)

        # a second signal while stopping is ignored
        os.kill(os.getpid(), signal.SIGUSR1)
        assert stop_event.is_set()
    finally:
        signal.signal(signal.SIGUSR1, previous)


class _LateStartingServer:
    """Stands in for a `Server` whose worker thread is slow to reach `start()`."""

    def __init__(self, delay: float):
        self.delay = delay
        self.state = LifecycleState.UNSTARTED
        self.released = threading.Event()
        self.stop_calls = []

    def start(self):
        time.sleep(self.delay)
        self.state = LifecycleState.LISTENING
        self.released.wait(10)
        self.state = LifecycleState.STOPPED

    def stop(self):
        self.stop_calls.append(self.state)
        if self.state is not LifecycleState.UNSTARTED:
            self.released.set()


def test_stop_waits_for_a_server_that_has_not_started_yet():
    server = _LateStartingServer(delay=0.3)
    stop_event = threading.Event()
    stop_event.set()

    started = time.monotonic()
    exit_code = serve_until_stopped(server, stop_event, poll_interval=0.05)

    assert exit_code == 0
    assert server.stop_calls == [LifecycleState.LISTENING]
    assert server.state is LifecycleState.STOPPED
    assert time.monotonic() - started < 5
