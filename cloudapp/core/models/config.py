from enum import StrEnum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from cloudapp.server.options import (
    DEFAULT_BACKLOG,
    DEFAULT_IDLE_TIMEOUT,
    DEFAULT_READ_HEADER_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_SHUTDOWN_TIMEOUT,
    DEFAULT_WRITE_TIMEOUT,
    Options,
)


class AppInfoConfig(BaseModel):
    """
    Metadata passed to the FastAPI constructor.

    Documentation routes are disabled unless explicitly configured, so a fresh
    server only answers the routes it was given.

    Attributes:
        title (Optional[str]): The title of the application.
        description (Optional[str]): A longer description of the application.
        version (Optional[str]): The application version string.
        openapi_url (Optional[str]): Path of the OpenAPI schema. None disables it.
        docs_url (Optional[str]): Path of the Swagger UI. None disables it.
        redoc_url (Optional[str]): Path of the ReDoc UI. None disables it.

    Example:
        ```python
        info = AppInfoConfig(title="My API", version="1.0.0")
        app = FastAPI(**info.defined_fields())
        ```
    """

    title: Optional[str] = "cloudapp"
    description: Optional[str] = None
    version: Optional[str] = None

    openapi_url: Optional[str] = None
    docs_url: Optional[str] = None
    redoc_url: Optional[str] = None

    model_config = {
        "extra": "allow",
        "populate_by_name": True,
    }

    def defined_fields(self) -> Dict[str, Any]:
        """
        Returns the keyword arguments for `FastAPI(...)`.

        Unset optional metadata is dropped, while the documentation URLs are
        always passed through so that `None` actually disables them.
        """
        fields = self.model_dump(exclude_none=True)
        fields["openapi_url"] = self.openapi_url
        fields["docs_url"] = self.docs_url
        fields["redoc_url"] = self.redoc_url
        return fields


class ServerConfig(BaseModel):
    """
    Network and timeout settings of the HTTP server.

    All durations are in seconds.

    Attributes:
        host (str): Hostname or IP address to bind. Empty binds every interface.
        port (int): TCP port to bind. 0 picks an ephemeral port.
        read_timeout (float): Max time to read the whole request.
        read_header_timeout (float): Max time to read the request line and headers.
        write_timeout (float): Max time from the end of the headers to the end of the response.
        idle_timeout (float): Max time a keep-alive connection may stay idle.
        shutdown_timeout (float): Graceful shutdown deadline.
        backlog (int): Listen backlog of the socket.
        access_log (bool): Whether uvicorn emits one log line per request.

    Example:
        ```python
        ServerConfig(host="0.0.0.0", port=8080).to_options()
        ```
    """

    host: str = Field(default="127.0.0.1", description="Host to bind the server to")
    port: int = Field(default=8000, description="Port to bind the server to")
    read_timeout: float = DEFAULT_READ_TIMEOUT
    read_header_timeout: float = DEFAULT_READ_HEADER_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT
    backlog: int = DEFAULT_BACKLOG
    access_log: bool = False

    @field_validator("port")
    def validate_port(cls, v: int) -> int:
        """Ensure that the port is within the valid range (0-65535)."""
        if not (0 <= v <= 65535):
            raise ValueError("Port must be between 0 and 65535")
        return v

    def to_options(self) -> Options:
        return Options(**self.model_dump())


class LoggerLevel(StrEnum):
    """
    Available logging levels.

    Enum:
        DEBUG: Debug-level logs (more verbose).
        INFO: Informational logs.
        WARNING: Only warnings and errors.
        ERROR: Only errors.
    """

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LoggerConfig(BaseModel):
    """
    Logging configuration for the application.

    Attributes:
        level (Optional[LoggerLevel]): Logging level.
        log_file (Optional[str]): Optional path to a log file.
        json_log (Optional[bool]): Whether to output logs in JSON format.

    Example:
        ```python
        LoggerConfig(level="DEBUG", log_file="logs/app.log", json_log=True)
        ```
    """

    level: Optional[LoggerLevel] = LoggerLevel.INFO
    log_file: Optional[str] = None
    json_log: Optional[bool] = False


class AppConfig(BaseModel):
    """
    Top-level application configuration schema.

    Every section has defaults, so an empty configuration file is valid.

    Attributes:
        logger (LoggerConfig): Logging configuration.
        info (AppInfoConfig): Application metadata.
        server (ServerConfig): Server options.
    """

    logger: LoggerConfig = Field(default_factory=LoggerConfig)
    info: AppInfoConfig = Field(default_factory=AppInfoConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
