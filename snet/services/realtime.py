"""
Keeps a realtime subscription alive, falling back to polling.

The realtime transport is not ours (Supabase channels in production), so the
channel is injected. What this module owns is the policy around it:

- exponential backoff on CHANNEL_ERROR / TIMED_OUT: base, 2x base, 4x base ...
  for at most max_attempts tries
- polling `fetch` every poll_interval seconds once retries are exhausted or
  the channel is CLOSED, until the channel reports SUBSCRIBED again
- a refetch on every pushed event and when the page becomes visible

It is a client-side building block: a worker or dashboard process that
follows Supabase channels wraps its channel in ResilientSubscription. The
HTTP service itself never subscribes; its clients do.
"""

import asyncio
import enum
from typing import Any, Awaitable, Callable, Optional, Protocol, Set

import structlog

from snet.core.config import settings

logger = structlog.get_logger()


class ChannelStatus(str, enum.Enum):
    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"


class ConnectionStatus(str, enum.Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"


class RealtimeChannel(Protocol):
    async def subscribe(self, on_status: Callable[[str], None]) -> None: ...

    async def unsubscribe(self) -> None: ...


ChannelFactory = Callable[[Callable[[Any], None]], RealtimeChannel]


def backoff_delay(attempt: int, base: float) -> float:
    """Delay before reconnect attempt number `attempt` (1-based)."""
    return base * (2 ** (attempt - 1))


class ResilientSubscription:

    def __init__(
        self,
        channel_factory: ChannelFactory,
        fetch: Callable[[], Awaitable[Any]],
        reconnect_delay: Optional[float] = None,
        max_attempts: Optional[int] = None,
        poll_interval: Optional[float] = None,
        name: str = "notifications",
    ):
        self._channel_factory = channel_factory
        self._fetch = fetch
        self.reconnect_delay = settings.REALTIME_RECONNECT_DELAY if reconnect_delay is None else reconnect_delay
        self.max_attempts = settings.REALTIME_MAX_RECONNECT_ATTEMPTS if max_attempts is None else max_attempts
        self.poll_interval = settings.REALTIME_POLL_INTERVAL if poll_interval is None else poll_interval
        self.name = name

        self.status = ConnectionStatus.DISCONNECTED
        self.attempts = 0
        self._channel: Optional[RealtimeChannel] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._fetch_tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start(self) -> None:
        await self._safe_fetch()
        await self._subscribe()

    async def _subscribe(self) -> None:
        await self._drop_channel()
        channel = self._channel_factory(self._on_event)
        self._channel = channel

        # Statuses from a channel we already dropped (CLOSED after unsubscribe) are ignored
        def on_status(status: str, error: Optional[Exception] = None) -> None:
            if self._channel is channel:
                self._on_status(status, error)

        try:
            await channel.subscribe(on_status)
        except Exception as e:
            logger.error("realtime_subscribe_failed", channel=self.name, error=str(e))
            on_status(ChannelStatus.CHANNEL_ERROR)

    async def _drop_channel(self) -> None:
        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            await channel.unsubscribe()
        except Exception as e:
            logger.warning("realtime_unsubscribe_failed", channel=self.name, error=str(e))

    def _on_status(self, status: str, error: Optional[Exception] = None) -> None:
        if self._closed:
            return
        status = getattr(status, "value", status)
        logger.debug("realtime_status", channel=self.name, status=status, error=str(error) if error else None)

        if status == ChannelStatus.SUBSCRIBED.value:
            self.status = ConnectionStatus.CONNECTED
            self.attempts = 0
            self._cancel_reconnect()
            self._stop_polling()
            logger.info("realtime_connected", channel=self.name)
        elif status == ChannelStatus.CHANNEL_ERROR.value:
            self.status = ConnectionStatus.DISCONNECTED
            self._schedule_reconnect()
        elif status == ChannelStatus.TIMED_OUT.value:
            self.status = ConnectionStatus.RECONNECTING
            self._schedule_reconnect()
        elif status == ChannelStatus.CLOSED.value:
            self.status = ConnectionStatus.DISCONNECTED
            self._start_polling()

    def _on_event(self, payload: Any = None) -> None:
        if self._closed:
            return
        task = asyncio.get_running_loop().create_task(self._safe_fetch())
        self._fetch_tasks.add(task)
        task.add_done_callback(self._fetch_tasks.discard)

    # Reconnect

    def _schedule_reconnect(self) -> None:
        if self._closed:
            return
        task = self._reconnect_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            return

        if self.attempts >= self.max_attempts:
            logger.warning("realtime_reconnect_exhausted", channel=self.name, attempts=self.attempts)
            self._start_polling()
            return

        self.attempts += 1
        delay = backoff_delay(self.attempts, self.reconnect_delay)
        logger.info("realtime_reconnect_scheduled", channel=self.name, attempt=self.attempts, delay=delay)
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._closed or self.status == ConnectionStatus.CONNECTED:
            return
        self.status = ConnectionStatus.RECONNECTING
        await self._subscribe()

    def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    # Polling

    def _start_polling(self) -> None:
        if self._closed or self.polling:
            return
        logger.info("realtime_polling_started", channel=self.name, interval=self.poll_interval)
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        while not self._closed and self.status != ConnectionStatus.CONNECTED:
            await asyncio.sleep(self.poll_interval)
            if self._closed or self.status == ConnectionStatus.CONNECTED:
                break
            await self._safe_fetch()

    def _stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            logger.info("realtime_polling_stopped", channel=self.name)

    async def _safe_fetch(self) -> None:
        try:
            await self._fetch()
        except Exception as e:
            logger.error("realtime_fetch_failed", channel=self.name, error=str(e))

    # Public controls

    async def on_visible(self) -> None:
        """Page came back to the foreground: resync and retry if we were cut off."""
        if self._closed or self.status == ConnectionStatus.CONNECTED:
            return
        await self._safe_fetch()
        if self.status == ConnectionStatus.DISCONNECTED:
            self.attempts = 0
            self._cancel_reconnect()
            await self._subscribe()

    async def force_reconnect(self) -> None:
        if self._closed:
            return
        self.attempts = 0
        self._cancel_reconnect()
        self.status = ConnectionStatus.RECONNECTING
        await self._subscribe()

    async def close(self) -> None:
        self._closed = True
        self._cancel_reconnect()
        self._stop_polling()
        for task in list(self._fetch_tasks):
            task.cancel()
        await self._drop_channel()
        self.status = ConnectionStatus.DISCONNECTED
