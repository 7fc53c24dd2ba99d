from __future__ import annotations

from collections import deque
from typing import Generic, TypeVar
import asyncio

T = TypeVar("T")

DEFAULT_CAPACITY = 64


class Subscription(Generic[T]):
    """
    One observer's view of a BroadcastChannel.

    Holds at most `capacity` pending items; when full the oldest item is dropped
    so the publisher never waits on a slow observer.
    """

    def __init__(self, channel: "BroadcastChannel[T]", capacity: int) -> None:
        self._channel = channel
        self._buffer: deque[T] = deque(maxlen=capacity)
        self._ready = asyncio.Event()
        self._closed = False
        self.dropped = 0

    def _push(self, item: T) -> None:
        if len(self._buffer) == self._buffer.maxlen:
            self.dropped += 1
        self._buffer.append(item)
        self._ready.set()

    def _finish(self) -> None:
        self._closed = True
        self._ready.set()

    def drain(self) -> list[T]:
        items = list(self._buffer)
        self._buffer.clear()
        return items

    async def get(self) -> T:
        while not self._buffer:
            if self._closed:
                raise StopAsyncIteration
            self._ready.clear()
            await self._ready.wait()
        return self._buffer.popleft()

    def close(self) -> None:
        self._channel._remove(self)
        self._finish()

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        return await self.get()


class BroadcastChannel(Generic[T]):
    """Fan-out of published items to every current subscriber. Loop-thread only."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("BroadcastChannel capacity must be positive.")
        self._capacity = capacity
        self._subscribers: list[Subscription[T]] = []

    def subscribe(self) -> Subscription[T]:
        sub: Subscription[T] = Subscription(self, self._capacity)
        self._subscribers.append(sub)
        return sub

    def publish(self, item: T) -> None:
        for sub in list(self._subscribers):
            sub._push(item)

    def close(self) -> None:
        for sub in list(self._subscribers):
            sub._finish()
        self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _remove(self, sub: Subscription[T]) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)
