import logging
import traceback

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from image_gateway.core.responses import error_response

UNHANDLED_MESSAGE = "An error occurred while processing your request. Please try again later."


class ErrorHandlerMiddleware:
    """Last line of defence for anything a route did not turn into a response."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            logging.error(f"Unhandled error on {scope['method']} {scope['path']}: {str(e)}")
            logging.error("Full traceback:")
            logging.error(traceback.format_exc())
            if response_started:
                raise

            response = error_response(e, UNHANDLED_MESSAGE)
            await response(scope, receive, send)
