"""
Broadcast Channel
=================

Replay-latest publish/subscribe primitive for telemetry streams.

A channel keeps a single slot holding the most recently published value
and a fan-out list of subscriptions. Each subscription has its own
one-slot buffer with a drop-oldest policy, so a slow subscriber only ever
sees the newest value it has not consumed yet.

Design Rules:
    - publish() never blocks and never waits on subscribers
    - New subscribers receive the latest value (if any) first
    - No history beyond the single latest value
    - Event-loop only; no locks
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Generic, List, Optional, TypeVar


logger = logging.getLogger(__name__)


T = TypeVar("T")

_EMPTY: Any = object()
_CLOSED: Any = object()


class Subscription(Generic[T]):
    """
    One subscriber's view of a BroadcastChannel.

    Iterate with ``async for`` or poll with ``get()`` / ``get_nowait()``.
    Iteration ends when the subscription or its channel is closed.

    Example:
        with channel.subscribe() as sub:
            async for value in sub:
                render(value)
    """

    def __init__(self, channel: "BroadcastChannel[T]") -> None:
        self._channel = channel
        self._slot: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._closed = False
        self._skipped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def skipped_count(self) -> int:
        """Values overwritten before this subscriber consumed them."""
        return self._skipped

    def _offer(self, value: Any) -> None:
        if self._slot.full():
            self._slot.get_nowait()
            if value is not _CLOSED:
                self._skipped += 1
        self._slot.put_nowait(value)

    def _end(self) -> None:
        if not self._closed:
            self._closed = True
            self._offer(_CLOSED)

    def close(self) -> None:
        """Stop receiving values and detach from the channel."""
        self._channel._remove(self)
        self._end()

    async def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """
        Wait for the next value.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            Next value, or None on timeout or once closed.
        """
        try:
            if timeout is not None:
                value = await asyncio.wait_for(self._slot.get(), timeout=timeout)
            else:
                value = await self._slot.get()
        except asyncio.TimeoutError:
            return None
        if value is _CLOSED:
            self._slot.put_nowait(_CLOSED)
            return None
        return value

    def get_nowait(self) -> Optional[T]:
        """Next pending value, or None if nothing is pending."""
        try:
            value = self._slot.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if value is _CLOSED:
            self._slot.put_nowait(_CLOSED)
            return None
        return value

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        value = await self._slot.get()
        if value is _CLOSED:
            self._slot.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return value

    def __enter__(self) -> "Subscription[T]":
        return self

    def __exit__(self, *args) -> None:
        self.close()


class BroadcastChannel(Generic[T]):
    """
    Single-slot latest-value fan-out channel.

    Attributes:
        name: Stream name, used in logs and metrics
        latest: Most recently published value, or None

    Example:
        images = BroadcastChannel[RobotImageData]("images")
        images.publish(frame)

        sub = images.subscribe()  # yields ``frame`` first
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._latest: Any = _EMPTY
        self._subscribers: List[Subscription[T]] = []
        self._published = 0
        self._closed = False

    @property
    def latest(self) -> Optional[T]:
        return None if self._latest is _EMPTY else self._latest

    @property
    def has_value(self) -> bool:
        return self._latest is not _EMPTY

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def published_count(self) -> int:
        return self._published

    def publish(self, value: T) -> None:
        """Store ``value`` as the latest and hand it to every subscriber."""
        if self._closed:
            logger.debug(f"Channel '{self.name}' closed, dropping publish")
            return
        self._latest = value
        self._published += 1
        for subscription in list(self._subscribers):
            subscription._offer(value)

    def subscribe(self) -> Subscription[T]:
        """Attach a subscriber, primed with the latest value if one exists."""
        subscription: Subscription[T] = Subscription(self)
        if self._closed:
            subscription._end()
            return subscription
        if self._latest is not _EMPTY:
            subscription._offer(self._latest)
        self._subscribers.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def close(self) -> None:
        """End every subscription; later publishes are ignored."""
        self._closed = True
        for subscription in self._subscribers:
            subscription._end()
        self._subscribers.clear()

    def metrics(self) -> dict:
        return {
            "name": self.name,
            "published": self._published,
            "subscribers": len(self._subscribers),
            "has_value": self.has_value,
        }
