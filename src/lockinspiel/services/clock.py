"""Clock synchronization against the time reference endpoint.

This module provides the LockinspielClient class, which estimates the offset
between the local clock and the reference server from one timed round trip
and applies it to produce a corrected "now". It includes:

- The two-way time transfer round trip (``refresh_clock_offset``)
- A cached offset that is only refreshed on request
- An ``offline`` flag so that ``now()`` can run every frame without
  contacting the server after a failed attempt
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import TracebackType

import httpx

from lockinspiel.core.settings import Settings, settings
from lockinspiel.db.time import from_micros, utcnow

# Configure logger for this module
logger = logging.getLogger(__name__)

TIME_SYNC_PATH = "/time_sync"
ZERO_OFFSET = timedelta(0)

_MICROS_PATTERN = re.compile(r"[+-]?[0-9]+")


class ClientError(RuntimeError):
    """Base exception raised for clock synchronization failures."""


class TransportError(ClientError):
    """Raised when the request to the reference server fails."""


class LocalClockError(ClientError):
    """Raised when the local clock cannot be read as an instant since the epoch."""


class TimestampSplitError(ClientError):
    """Raised when the server response does not contain two newline-separated times."""


class TimestampParseError(ClientError):
    """Raised when a server time is not a decimal integer."""


class InstantRangeError(ClientError):
    """Raised when a server time cannot be represented as an instant."""


class NoOffsetCachedError(ClientError):
    """Raised when no offset is cached even after a successful refresh."""


@dataclass(frozen=True)
class ClientConfig:
    """Immutable configuration for the clock client."""

    base_url: str
    auth_url: str
    api_key: str
    jwt_secret: str
    timeout_seconds: float | None


def load_client_config(config: Settings | None = None) -> ClientConfig:
    """Build configuration object from settings."""
    config = config or settings
    return ClientConfig(
        base_url=config.base_url,
        auth_url=config.supabase_url,
        api_key=config.supabase_api_key,
        jwt_secret=config.supabase_jwt_secret,
        timeout_seconds=config.sync_timeout_seconds,
    )


def parse_server_times(body: str) -> tuple[datetime, datetime]:
    """Parse ``"<recv_micros>\\n<send_micros>"`` into the server's two instants."""
    received, separator, sent = body.partition("\n")
    if not separator:
        raise TimestampSplitError("Couldn't split timestamps returned by server")

    instants = []
    for text in (received, sent):
        if not _MICROS_PATTERN.fullmatch(text):
            raise TimestampParseError(f"Failed to parse an integer from {text!r}")
        try:
            instants.append(from_micros(int(text)))
        except OverflowError as exc:
            raise InstantRangeError(f"Server time {text} is out of range") from exc
    return instants[0], instants[1]


def estimate_offset(
    sent: datetime, server_received: datetime, server_sent: datetime, received: datetime
) -> timedelta:
    """Two-way time transfer estimate of the server clock minus the local clock.

    Symmetric network latency cancels out to first order.
    """
    return ((server_received - sent) + (server_sent - received)) / 2


class LockinspielClient:
    """HTTP client deriving a corrected clock from the time reference endpoint.

    Not safe for concurrent use: one owner (typically the UI loop) drives it.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config or load_client_config()
        self._client = http_client
        self._owns_client = http_client is None
        self._clock = clock
        self._offset: timedelta | None = None
        self._offline = False

    async def __aenter__(self) -> LockinspielClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=httpx.Timeout(self.config.timeout_seconds),
            )
        return self._client

    def _local_now(self) -> datetime:
        instant = self._clock()
        if instant.tzinfo is None:
            raise LocalClockError("Local clock returned a naive datetime")
        return instant

    @property
    def offline(self) -> bool:
        """True while a refresh is in flight or after the last one failed.

        ``now()`` skips the server entirely while offline. Only a successful
        ``refresh_clock_offset()`` (directly or via ``clock_offset()``) clears it.
        """
        return self._offline

    async def now(self) -> datetime:
        """Return the local time corrected by the server clock offset.

        Never raises for offset failures: they are logged and a zero offset is used.
        """
        offset = ZERO_OFFSET
        if not self._offline:
            try:
                offset = await self.clock_offset()
            except ClientError as exc:
                logger.warning("Failed to calculate clock offset: %s", exc)
        return self._clock() + offset

    async def refresh_clock_offset(self) -> timedelta:
        """Measure a fresh clock offset against the server and cache it."""
        self._offline = True
        client = self._ensure_client()

        try:
            sent = self._local_now()
            async with client.stream("GET", TIME_SYNC_PATH) as response:
                received = self._local_now()
                response.raise_for_status()
                await response.aread()
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to server failed: {exc}") from exc

        body = response.text
        self._offline = False

        server_received, server_sent = parse_server_times(body)
        offset = estimate_offset(sent, server_received, server_sent, received)
        self._offset = offset
        logger.info("New clock offset: %s", offset)
        return offset

    async def clock_offset(self) -> timedelta:
        """Return the cached clock offset, refreshing it if none is cached."""
        if self._offset is None:
            await self.refresh_clock_offset()
        if self._offset is None:
            raise NoOffsetCachedError("The offset was not present in the client")
        return self._offset

    def cached_clock_offset(self) -> timedelta | None:
        """Return the cached clock offset without contacting the server."""
        return self._offset
