"""
Tests for server options, address joining and the server section of the config.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from cloudapp.core.models.config import ServerConfig
from cloudapp.server.options import Options, join_host_port


@pytest.mark.parametrize(
    ("host", "port", "expected"),
    [
        ("127.0.0.1", 8080, "127.0.0.1:8080"),
        ("localhost", 0, "localhost:0"),
        ("", 8080, ":8080"),
        ("::1", 443, "[::1]:443"),
        ("fe80::1%eth0", 80, "[fe80::1%eth0]:80"),
    ],
)
def test_join_host_port(host, port, expected):
    assert join_host_port(host, port) == expected


def test_options_default_timeouts():
    options = Options(host="127.0.0.1", port=8000)

    assert options.read_timeout == 5
    assert options.read_header_timeout == 5
    assert options.write_timeout == 5
    assert options.idle_timeout == 5
    assert options.shutdown_timeout == 30
    assert options.address == "127.0.0.1:8000"


def test_options_are_immutable():
    options = Options(host="127.0.0.1", port=8000)

    with pytest.raises(ValidationError):
        options.port = 9000


def test_options_reject_non_positive_timeouts():
    with pytest.raises(ValidationError):
        Options(host="127.0.0.1", port=8000, shutdown_timeout=0)


def test_options_leave_host_validation_to_the_network_stack():
    options = Options(host="not a host!", port=8000)
    assert options.address == "not a host!:8000"


def test_server_config_to_options():
    options = ServerConfig(host="0.0.0.0", port=9000, write_timeout=1.5).to_options()

    assert isinstance(options, Options)
    assert options.address == "0.0.0.0:9000"
    assert options.write_timeout == 1.5
    assert options.shutdown_timeout == 30


def test_server_config_rejects_out_of_range_port():
    with pytest.raises(ValidationError):
        ServerConfig(port=70000)
