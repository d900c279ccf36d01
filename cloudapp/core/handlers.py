from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException

from cloudapp.core.exceptions import APIException
from cloudapp.core.response import create_error_response

STATUS_MESSAGES = {
    404: "The requested resource could not be found",
    405: "Method not allowed for this endpoint",
    408: "The request was not received in time",
    422: "Invalid request data provided",
    500: "Internal server error occurred",
    503: "The server could not answer in time",
}


def setup_api_exception_handler(app: FastAPI) -> None:
    """
    Registers global exception handlers for API exceptions and HTTP errors.

    Both produce the standard `APIResponse` envelope with `success=False`.

    Note:
        Must be called after app creation but before starting the server
    """

    @app.exception_handler(APIException)
    async def api_exception_handler(
        request: Request, exc: APIException
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"Server error ({exc.code}): {exc.message}")
        elif exc.status_code >= 400:
            logger.warning(f"Client error ({exc.code}): {exc.message}")

        error_response = create_error_response(
            exc.status_code, exc.message, code=exc.code, detail=exc.detail
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(),
            headers=exc.headers or {},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        user_message = STATUS_MESSAGES.get(exc.status_code, str(exc.detail))

        if exc.status_code >= 500:
            logger.error(
                f"HTTP {exc.status_code}: {user_message} - Path: {request.url.path}"
            )
        elif exc.status_code >= 400:
            logger.warning(
                f"HTTP {exc.status_code}: {user_message} - Path: {request.url.path}"
            )

        error_response = create_error_response(
            exc.status_code, user_message, detail=str(exc.detail)
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(),
            headers=getattr(exc, "headers", None) or {},
        )

    logger.debug("Registered global API exception handlers")
