"""
JSON envelope shared by every cloudapp response, successful or not.

Routes return it through `create_response`, while the exception handlers and
the timeout middleware build the failed variant with `create_error_response`.
"""

from typing import Any, Optional

from fastapi import status
from pydantic import BaseModel, Field

DEFAULT_ERROR_CODE = status.HTTP_400_BAD_REQUEST

TIMESTAMP_PATTERN = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$"


class Meta(BaseModel):
    timestamp: str = Field(
        ...,
        pattern=TIMESTAMP_PATTERN,
        description="UTC time the response was built, as YYYY-MM-DDTHH:MM:SSZ",
    )
    requestId: str = Field(..., description="Random UUID4 identifying this response")


class APIError(BaseModel):
    """Error section of a failed response. `status_code` mirrors the HTTP status."""

    status_code: int = Field(..., description="HTTP status code sent with the error")
    detail: Optional[Any] = Field(
        None, description="Validation errors or other context, if any"
    )
    message: str = Field(
        default="Internal server error", description="Human-readable error message"
    )
    code: str = Field(
        default="ERROR",
        description="Machine-readable code such as HTTP_404, READ_TIMEOUT or WRITE_TIMEOUT",
    )


class APIResponse(BaseModel):
    success: bool = Field(..., description="False when `error` is set")
    message: Optional[str] = Field(None, description="Optional message for the client")
    data: Optional[Any] = Field(None, description="Route payload, only when successful")
    error: Optional[APIError] = Field(None, description="Set only when not successful")
    meta: Meta
