"""Tests for the drop-oldest broadcast channel and the latest-task slot."""

from __future__ import annotations

import asyncio

import pytest

from helpers.broadcast import BroadcastChannel
from helpers.latest_task import LatestTask


def test_publish_without_subscribers_is_a_no_op():
    channel = BroadcastChannel()
    channel.publish("lost")
    assert channel.subscriber_count == 0


def test_every_subscriber_sees_every_item():
    channel = BroadcastChannel()
    a = channel.subscribe()
    b = channel.subscribe()

    channel.publish(1)
    channel.publish(2)

    assert a.drain() == [1, 2]
    assert b.drain() == [1, 2]


def test_slow_subscriber_drops_oldest():
    channel = BroadcastChannel(capacity=3)
    sub = channel.subscribe()

    for i in range(5):
        channel.publish(i)

    assert sub.drain() == [2, 3, 4]
    assert sub.dropped == 2


def test_invalid_capacity():
    with pytest.raises(ValueError):
        BroadcastChannel(capacity=0)


@pytest.mark.asyncio
async def test_async_iteration_ends_on_close():
    channel = BroadcastChannel()
    sub = channel.subscribe()
    received = []

    async def consume():
        async for item in sub:
            received.append(item)

    task = asyncio.create_task(consume())
    channel.publish("a")
    channel.publish("b")
    await asyncio.sleep(0)
    channel.close()
    await asyncio.wait_for(task, 1)

    assert received == ["a", "b"]
    assert channel.subscriber_count == 0


@pytest.mark.asyncio
async def test_closed_subscription_stops_receiving():
    channel = BroadcastChannel()
    sub = channel.subscribe()
    sub.close()
    channel.publish("late")

    assert channel.subscriber_count == 0
    assert sub.drain() == []
    with pytest.raises(StopAsyncIteration):
        await sub.get()


@pytest.mark.asyncio
async def test_latest_task_cancels_previous():
    slot = LatestTask("work")
    gate = asyncio.Event()

    async def wait_forever():
        await gate.wait()
        return "first"

    async def quick():
        return "second"

    first = slot.launch(wait_forever())
    await asyncio.sleep(0)
    second = slot.launch(quick())
    await slot.wait()
    await asyncio.wait([first])

    assert first.cancelled()
    assert second.result() == "second"
    assert not slot.running


@pytest.mark.asyncio
async def test_latest_task_cancel_and_wait_without_task():
    slot = LatestTask("idle")
    slot.cancel()
    await slot.wait()
    assert not slot.running
