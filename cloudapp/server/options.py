from pydantic import BaseModel, field_validator

DEFAULT_READ_TIMEOUT = 5.0
DEFAULT_READ_HEADER_TIMEOUT = 5.0
DEFAULT_WRITE_TIMEOUT = 5.0
DEFAULT_IDLE_TIMEOUT = 5.0
DEFAULT_SHUTDOWN_TIMEOUT = 30.0
DEFAULT_BACKLOG = 2048


def join_host_port(host: str, port: int) -> str:
    """
    Combine host and port into a "host:port" address.

    IPv6 literals are wrapped in square brackets, an empty host yields ":port".
    """
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class Options(BaseModel):
    """
    Construction parameters of a `Server`.

    Host and port are not validated here; a malformed value is reported by the
    network stack when `Server.start()` binds the socket. Durations are seconds.

    Attributes:
        host (str): Hostname or IP address to bind.
        port (int): TCP port to bind, 0 for an ephemeral port.
        read_timeout (float): Max time to read the whole request.
        read_header_timeout (float): Max time to read the request line and headers.
        write_timeout (float): Max time from the end of the headers to the end of the response.
        idle_timeout (float): Max time a keep-alive connection may stay idle.
        shutdown_timeout (float): Graceful shutdown deadline.
        backlog (int): Listen backlog of the socket.
        access_log (bool): Whether uvicorn emits one log line per request.
    """

    host: str
    port: int
    read_timeout: float = DEFAULT_READ_TIMEOUT
    read_header_timeout: float = DEFAULT_READ_HEADER_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT
    backlog: int = DEFAULT_BACKLOG
    access_log: bool = False

    model_config = {"frozen": True}

    @field_validator(
        "read_timeout",
        "read_header_timeout",
        "write_timeout",
        "idle_timeout",
        "shutdown_timeout",
    )
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be greater than zero")
        return v

    @property
    def address(self) -> str:
        return join_host_port(self.host, self.port)
