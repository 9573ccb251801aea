import asyncio
import time
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send
import logging

CONVERT_PATHS = ("/convert-to-webp", "/convert-to-webp-file")
DESCRIBE_PATHS = ("/describe",)
# Headroom for reading the upload on top of the model call itself.
DESCRIBE_MARGIN_SECONDS = 15


def timeout_for(request: Request) -> int:
    """Pick the time budget for a request based on its route."""
    config = request.app.state.config
    path = request.url.path.rstrip("/")

    if path in CONVERT_PATHS:
        return config.convert_timeout_seconds
    if path in DESCRIBE_PATHS:
        return config.describe_timeout_seconds + DESCRIBE_MARGIN_SECONDS
    return config.request_timeout_seconds


class TimeoutMiddleware:
    """Times out requests after a per-route duration.

    Plain ASGI rather than ``app.middleware("http")`` so the route sees the
    server's own ``receive`` and can notice client disconnects.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        timeout_seconds = timeout_for(request)
        start_time = time.time()
        response_started = False

        async def send_wrapper(message: Message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await asyncio.wait_for(self.app(scope, receive, send_wrapper), timeout=timeout_seconds)

        except asyncio.TimeoutError:
            elapsed_time = time.time() - start_time
            logging.error(f"{request.url.path} timed out after {elapsed_time:.2f} seconds")
            if response_started:
                return

            response = JSONResponse(
                status_code=504,
                content={
                    "status": "error",
                    "message": f"Request timed out after {timeout_seconds} seconds. Please try with a smaller image or try again later.",
                    "type": "TimeoutError",
                }
            )
            await response(scope, receive, send)
