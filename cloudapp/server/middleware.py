import asyncio

from fastapi import status
from loguru import logger
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from cloudapp.core.handlers import STATUS_MESSAGES
from cloudapp.core.response import create_error_response


class RequestTimeoutMiddleware:
    """
    Pure ASGI middleware enforcing per-request read and write deadlines.

    The read deadline bounds the time spent waiting for the request body. The
    write deadline bounds the whole handler run, from the moment the headers
    were parsed until the response is finished. When either expires the
    handler is cancelled. A `408` (read) or `503` (write) envelope is sent if
    no response has started yet; otherwise the connection is dropped by
    returning with the response incomplete.
    """

    def __init__(self, app: ASGIApp, read_timeout: float, write_timeout: float) -> None:
        self.app = app
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        loop = asyncio.get_running_loop()
        read_deadline = loop.time() + self.read_timeout
        read_expired = asyncio.Event()
        body_complete = False
        response_started = False

        async def receive_with_deadline() -> Message:
            nonlocal body_complete
            if body_complete:
                return await receive()
            try:
                message = await asyncio.wait_for(
                    receive(), timeout=max(read_deadline - loop.time(), 0)
                )
            except asyncio.TimeoutError:
                read_expired.set()
                # parked until the handler task is cancelled
                await loop.create_future()
                raise
            if message["type"] != "http.request" or not message.get("more_body", False):
                body_complete = True
            return message

        async def send_with_tracking(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        handler = asyncio.create_task(
            self.app(scope, receive_with_deadline, send_with_tracking)
        )
        expired = asyncio.create_task(read_expired.wait())
        try:
            await asyncio.wait(
                {handler, expired},
                timeout=self.write_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            handler.cancel()
            raise
        finally:
            expired.cancel()

        if handler.done():
            handler.result()
            return

        handler.cancel()
        await asyncio.wait({handler})
        if not handler.cancelled() and handler.exception() is not None:
            logger.opt(exception=handler.exception()).warning(
                "Request handler failed while being cancelled"
            )

        if read_expired.is_set():
            status_code, kind, timeout = (
                status.HTTP_408_REQUEST_TIMEOUT,
                "read",
                self.read_timeout,
            )
        else:
            status_code, kind, timeout = (
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "write",
                self.write_timeout,
            )
        logger.warning(
            f"Request {scope['method']} {scope['path']} aborted: "
            f"{kind} timeout of {timeout}s exceeded"
        )

        if response_started:
            return

        error_response = create_error_response(
            status_code,
            STATUS_MESSAGES[status_code],
            code=f"{kind.upper()}_TIMEOUT",
        )
        response = JSONResponse(
            status_code=status_code,
            content=error_response.model_dump(),
            headers={"Connection": "close"},
        )
        await response(scope, receive, send)
