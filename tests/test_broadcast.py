"""
Broadcast Channel Tests
=======================
"""

import asyncio

from teleop_channel.stream.broadcast import BroadcastChannel


class TestReplayLatest:
    """Tests for late subscribers and the single latest slot."""

    def test_late_subscriber_gets_latest_only(self):
        channel = BroadcastChannel("test")
        channel.publish("v1")
        channel.publish("v2")

        sub = channel.subscribe()

        assert sub.get_nowait() == "v2"
        assert sub.get_nowait() is None

        channel.publish("v3")
        assert sub.get_nowait() == "v3"

    def test_subscriber_before_any_publish_gets_nothing(self):
        channel = BroadcastChannel("test")

        sub = channel.subscribe()

        assert sub.get_nowait() is None
        assert channel.latest is None
        assert not channel.has_value

    def test_slow_subscriber_skips_intermediate_values(self):
        channel = BroadcastChannel("test")
        sub = channel.subscribe()

        for value in range(5):
            channel.publish(value)

        assert sub.get_nowait() == 4
        assert sub.skipped_count == 4

    def test_publish_without_subscribers(self):
        channel = BroadcastChannel("test")

        channel.publish({"a": 1})

        assert channel.latest == {"a": 1}
        assert channel.published_count == 1

    def test_every_subscriber_receives(self):
        channel = BroadcastChannel("test")
        first = channel.subscribe()
        second = channel.subscribe()

        channel.publish("x")

        assert first.get_nowait() == "x"
        assert second.get_nowait() == "x"


class TestSubscriptionLifecycle:
    """Tests for closing subscriptions and channels."""

    def test_context_manager_detaches(self):
        channel = BroadcastChannel("test")

        with channel.subscribe() as sub:
            assert channel.subscriber_count == 1

        assert channel.subscriber_count == 0
        assert sub.closed
        channel.publish("after")
        assert sub.get_nowait() is None

    def test_async_iteration_ends_on_channel_close(self):
        async def scenario():
            channel = BroadcastChannel("test")
            channel.publish(1)
            sub = channel.subscribe()
            received = []

            async def consume():
                async for value in sub:
                    received.append(value)

            task = asyncio.create_task(consume())
            await asyncio.sleep(0)
            channel.publish(2)
            await asyncio.sleep(0)
            channel.close()
            await asyncio.wait_for(task, timeout=1.0)
            return received

        assert asyncio.run(scenario()) == [1, 2]

    def test_get_timeout_returns_none(self):
        async def scenario():
            sub = BroadcastChannel("test").subscribe()
            return await sub.get(timeout=0.01)

        assert asyncio.run(scenario()) is None

    def test_subscribe_after_close(self):
        channel = BroadcastChannel("test")
        channel.publish(1)
        channel.close()

        sub = channel.subscribe()

        assert sub.closed
        assert sub.get_nowait() is None
        channel.publish(2)
        assert channel.latest == 1
