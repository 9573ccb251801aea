import time
import uuid
import logging

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggerMiddleware:
    """Logs request start and finish and tags responses with a request id."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        request_id = headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        method, path = scope["method"], scope["path"]
        start_time = time.time()
        status_code = None
        logging.info(
            f"[{request_id}] Request started: {method} {path} "
            f"- Content-Length: {headers.get('content-length', 'unknown')}"
        )

        async def send_wrapper(message: Message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            process_time = time.time() - start_time
            logging.info(
                f"[{request_id}] Request completed: {method} {path} "
                f"- Status: {status_code} - Time: {process_time:.2f}s"
            )
