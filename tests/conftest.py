"""
Pytest fixtures for cloudapp tests.

Servers are bound to 127.0.0.1 on an ephemeral port and run on a background
thread, the way the supervisor runs them.
"""

from __future__ import annotations

import asyncio
import sys
import threading

import pytest
from fastapi import APIRouter, Request
from loguru import logger

from cloudapp.core.exceptions import APIException
from cloudapp.routes import health

handler_entered = threading.Event()

sample_router = APIRouter()


@sample_router.get("/slow")
async def slow(delay: float = 1.0):
    handler_entered.set()
    await asyncio.sleep(delay)
    return {"slept": delay}


@sample_router.post("/echo")
async def echo(request: Request):
    body = await request.body()
    return {"received": len(body)}


@sample_router.get("/teapot")
async def teapot():
    raise APIException(status_code=418, message="I'm a teapot", code="TEAPOT")


class ServerThread:
    """A started `Server` plus the thread blocked in `start()`."""

    def __init__(self, server):
        self.server = server
        self.result = None
        self.error = None
        self.thread = threading.Thread(target=self._run, daemon=True)

    def _run(self):
        try:
            self.result = self.server.start()
        except Exception as e:
            self.error = e

    @property
    def url(self) -> str:
        return f"http://{self.server.listen_address}"

    def start(self) -> "ServerThread":
        self.thread.start()
        assert self.server.wait_until_ready(timeout=10), self.error
        return self


def _stop_quietly(server):
    from cloudapp.core.exceptions import ServerStopError
    from cloudapp.server.server import LifecycleState

    if server.state in (LifecycleState.LISTENING, LifecycleState.STOPPING):
        try:
            server.stop()
        except ServerStopError:
            pass


@pytest.fixture(autouse=True)
def reset_handler_event():
    handler_entered.clear()
    yield
    handler_entered.clear()


@pytest.fixture(autouse=True)
def reset_loguru():
    """Drop sinks added by setup_logging, some of which point at closed streams."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture(autouse=True)
def reset_settings():
    from cloudapp.core.settings import reset_config_cache

    reset_config_cache()
    yield
    reset_config_cache()


@pytest.fixture
def make_server():
    """
    Factory building a `Server` on 127.0.0.1:0 with the given option overrides.

    Every server created is stopped at teardown.
    """
    from cloudapp.server.options import Options
    from cloudapp.server.server import Server

    created = []

    def factory(**overrides) -> Server:
        options = Options(**{"host": "127.0.0.1", "port": 0, **overrides})
        server = Server(options, routers=[health.router, sample_router])
        created.append(server)
        return server

    yield factory

    for server in created:
        _stop_quietly(server)


@pytest.fixture
def run_server(make_server):
    """Factory returning a `ServerThread` whose server is already accepting connections."""

    threads = []

    def factory(**overrides) -> ServerThread:
        running = ServerThread(make_server(**overrides)).start()
        threads.append(running)
        return running

    yield factory

    for running in threads:
        _stop_quietly(running.server)
        running.thread.join(timeout=40)
