"""Time reference endpoint consumed by the clock synchronization client.

The response body is exactly ``"<recv_micros>\\n<send_micros>"``: the
microsecond instant the request was received, taken by
:class:`ReceivedAtMiddleware` before routing, and the instant the body is
produced, taken while the response is being written. Both numbers go out in
a single frame with the length declared up front.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum, auto

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from lockinspiel.db.time import time_micros

logger = logging.getLogger(__name__)

RECEIVED_AT_KEY = "received_micros"

router = APIRouter(tags=["time"])


class ReceivedAtMiddleware:
    """Record the receive time of every HTTP request as early as possible."""

    def __init__(self, app: ASGIApp, clock: Callable[[], int] = time_micros) -> None:
        self.app = app
        self.clock = clock

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            received = self.clock()
            scope.setdefault("state", {})[RECEIVED_AT_KEY] = received
        await self.app(scope, receive, send)


class StreamState(Enum):
    PENDING = auto()
    SENT = auto()


class TimeDataStream:
    """Single-frame response body carrying the receive and send times."""

    def __init__(self, received_micros: int, clock: Callable[[], int] = time_micros) -> None:
        if received_micros < 0:
            raise ValueError("received_micros must not be negative")
        self.received_micros = received_micros
        self._clock = clock
        self._state = StreamState.PENDING

    @property
    def is_end_stream(self) -> bool:
        return self._state is StreamState.SENT

    def size_hint(self) -> int:
        """Exact body length in bytes.

        The send time is assumed to have as many digits as the receive time.
        """
        return 2 * len(str(self.received_micros)) + 1

    def __iter__(self) -> TimeDataStream:
        return self

    def __next__(self) -> bytes:
        if self._state is StreamState.SENT:
            raise StopIteration
        self._state = StreamState.SENT
        return f"{self.received_micros}\n{self._clock()}".encode("ascii")


@router.get("/time_sync")
async def time_sync(request: Request) -> StreamingResponse:
    """Report when this request was received and when the response was sent."""
    received = getattr(request.state, RECEIVED_AT_KEY, None)
    if received is None:
        logger.debug("Receive time missing from request state; using handler time")
        received = time_micros()
    stream = TimeDataStream(received)
    return StreamingResponse(
        stream,
        media_type="text/plain",
        headers={"Content-Length": str(stream.size_hint())},
    )
