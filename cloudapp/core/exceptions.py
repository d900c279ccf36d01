from typing import Any, Dict, Optional

from fastapi import status


class APIException(Exception):
    def __init__(
        self,
        *,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        message: str,
        code: str = "ERROR",
        detail: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.code = code
        self.detail = detail
        self.headers = headers
        super().__init__(message)


class ServerError(Exception):
    """Base class for lifecycle failures of a `Server`."""

    def __init__(self, address: str, message: str):
        self.address = address
        self.message = message
        super().__init__(f"{message} ({address})")


class ServerStartError(ServerError):
    """The server could not start listening, or stopped for a reason other than `stop()`."""


class ServerStopError(ServerError):
    """Graceful shutdown did not complete before its deadline."""
