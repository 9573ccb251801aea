import asyncio
import logging
import threading
from typing import Awaitable, Optional, TypeVar

from fastapi import Request

from image_gateway.core.errors import ClientDisconnectedError

T = TypeVar("T")

POLL_INTERVAL_SECONDS = 0.1


async def run_until_disconnected(
    request: Request,
    work: Awaitable[T],
    cancel_event: Optional[threading.Event] = None,
    poll_interval: float = POLL_INTERVAL_SECONDS,
) -> T:
    """Await ``work`` while watching for the client to go away.

    On disconnect the cancel event is set so worker threads stop at their next
    checkpoint, the pending task is cancelled and ClientDisconnectedError is
    raised.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                logging.warning(f"Client disconnected during {request.url.path}, aborting work")
                raise ClientDisconnectedError("Client disconnected before processing finished")
    finally:
        if not task.done():
            if cancel_event is not None:
                cancel_event.set()
            task.cancel()
