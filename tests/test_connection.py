"""
Exchange Connection Tests
=========================

Lifecycle of a single exchange connection against an in-memory transport.
"""

import asyncio
import json

import pytest

from fakes import FakeConnector, wait_until
from teleop_channel.models.handshake import Role
from teleop_channel.transport.connection import (
    ConnectionState,
    ExchangeConnection,
    ExchangeHandler,
)


class RecordingHandler(ExchangeHandler):
    def __init__(self):
        self.events = []

    def on_open(self, connection):
        self.events.append(("open",))

    def on_binary(self, connection, data):
        self.events.append(("binary", data))

    def on_close(self, connection, code, reason):
        self.events.append(("close", code))

    def on_error(self, connection, error):
        self.events.append(("error", type(error).__name__))


def _connection(connector, handler, credentials, **kwargs):
    return ExchangeConnection(
        url="ws://relay.test:8765",
        exchange="camera0",
        role=Role.PULL,
        handler=handler,
        connector=connector,
        **credentials,
        **kwargs,
    )


class TestOpen:
    """Tests for the open + handshake path."""

    def test_handshake_is_first_and_only_once(self, credentials):
        async def scenario():
            connector = FakeConnector()
            handler = RecordingHandler()
            connection = _connection(connector, handler, credentials)

            connection.start()
            await wait_until(lambda: connection.is_open)
            socket = connector.latest
            await connection.shutdown()
            return connector, handler, socket

        connector, handler, socket = asyncio.run(scenario())

        assert socket.sent == [
            '{"command":"pull","exchange":"camera0","robot_name":"r2d2","accessToken":"abc"}'
        ]
        assert handler.events[0] == ("open",)
        assert connector.urls == ["ws://relay.test:8765"]

    def test_connect_options_forwarded(self, credentials):
        async def scenario():
            connector = FakeConnector()
            connection = _connection(
                connector, RecordingHandler(), credentials, ping_interval=5.0, max_size=None
            )
            connection.start()
            await wait_until(lambda: connection.is_open)
            await connection.shutdown()
            return connector

        connector = asyncio.run(scenario())

        assert connector.options[0] == {"ping_interval": 5.0, "max_size": None}

    def test_push_role_in_handshake(self, credentials):
        async def scenario():
            connector = FakeConnector()
            connection = ExchangeConnection(
                url="ws://relay.test",
                exchange="commands",
                role=Role.PUSH,
                handler=RecordingHandler(),
                connector=connector,
                **credentials,
            )
            connection.start()
            await wait_until(lambda: connection.is_open)
            await connection.shutdown()
            return connector.latest.handshake

        assert asyncio.run(scenario())["command"] == "push"


class TestInbound:
    """Tests for inbound message routing."""

    def test_binary_messages_delivered_in_order(self, credentials):
        async def scenario():
            connector = FakeConnector()
            handler = RecordingHandler()
            connection = _connection(connector, handler, credentials)
            connection.start()
            await wait_until(lambda: connection.is_open)

            for payload in (b"one", b"two", b"three"):
                connector.latest.feed(payload)
            await wait_until(lambda: connection.metrics.messages_received == 3)
            await connection.shutdown()
            return handler

        handler = asyncio.run(scenario())

        binaries = [e[1] for e in handler.events if e[0] == "binary"]
        assert binaries == [b"one", b"two", b"three"]

    def test_text_messages_dropped(self, credentials):
        async def scenario():
            connector = FakeConnector()
            handler = RecordingHandler()
            connection = _connection(connector, handler, credentials)
            connection.start()
            await wait_until(lambda: connection.is_open)

            connector.latest.feed("Robot not found")
            connector.latest.feed(b"after")
            await wait_until(lambda: connection.metrics.messages_received == 2)
            await connection.shutdown()
            return connection, handler

        connection, handler = asyncio.run(scenario())

        assert connection.metrics.text_dropped == 1
        assert [e for e in handler.events if e[0] == "binary"] == [("binary", b"after")]
        assert connection.metrics.transport_errors == 0


class TestReconnect:
    """Tests for the unconditional reconnect loop."""

    def test_one_new_attempt_per_close(self, credentials):
        async def scenario():
            connector = FakeConnector()
            handler = RecordingHandler()
            connection = _connection(connector, handler, credentials)
            connection.start()

            for expected in range(1, 4):
                await wait_until(lambda: len(connector.sockets) == expected and connection.is_open)
                connector.latest.drop()
            await wait_until(lambda: len(connector.sockets) == 4 and connection.is_open)
            await connection.shutdown()
            return connector, connection, handler

        connector, connection, handler = asyncio.run(scenario())

        assert connector.calls == 4
        assert connection.metrics.reconnect_count == 3
        assert connection.metrics.opened_count == 4
        # every replaced transport is closed; only the last was live
        assert all(s.closed for s in connector.sockets)
        assert all(len(s.sent) == 1 for s in connector.sockets)
        assert [e[0] for e in handler.events].count("close") == 3

    def test_reconnect_after_connect_errors(self, credentials):
        async def scenario():
            connector = FakeConnector(failures=3)
            handler = RecordingHandler()
            hook_errors = []
            connection = _connection(
                connector, handler, credentials, error_hook=hook_errors.append
            )
            connection.start()
            await wait_until(lambda: connection.is_open)
            await connection.shutdown()
            return connector, connection, handler, hook_errors

        connector, connection, handler, hook_errors = asyncio.run(scenario())

        assert connector.calls == 4
        assert connection.metrics.transport_errors == 3
        assert [type(e) for e in hook_errors] == [OSError] * 3
        assert ("error", "OSError") in handler.events

    def test_failing_callbacks_do_not_stop_reconnects(self, credentials):
        class BrokenHandler(RecordingHandler):
            def on_close(self, connection, code, reason):
                super().on_close(connection, code, reason)
                raise RuntimeError("handler failed")

        def broken_hook(error):
            hook_calls.append(error)
            raise RuntimeError("operator notification failed")

        hook_calls = []

        async def scenario():
            connector = FakeConnector(failures=3)
            handler = BrokenHandler()
            connection = _connection(connector, handler, credentials, error_hook=broken_hook)
            task = connection.start()
            await wait_until(lambda: connection.is_open)
            alive = not task.done()
            await connection.shutdown()
            return connector, connection, handler, alive

        connector, connection, handler, alive = asyncio.run(scenario())

        assert alive
        assert connector.calls == 4
        assert len(hook_calls) == 3
        assert connection.metrics.transport_errors == 3
        assert [e[0] for e in handler.events].count("close") == 3

    def test_state_while_reconnecting(self, credentials):
        async def scenario():
            connector = FakeConnector()
            connection = _connection(connector, RecordingHandler(), credentials)
            connection.start()
            await wait_until(lambda: connection.is_open)

            connector.gate.clear()
            connector.latest.drop()
            await wait_until(lambda: connection.state is ConnectionState.CONNECTING)
            reconnecting_open = connection.is_open

            connector.gate.set()
            await wait_until(lambda: connection.is_open)
            await connection.shutdown()
            return reconnecting_open

        assert asyncio.run(scenario()) is False


class TestShutdown:
    """Tests for explicit shutdown."""

    def test_no_reconnect_after_shutdown(self, credentials):
        async def scenario():
            connector = FakeConnector()
            handler = RecordingHandler()
            connection = _connection(connector, handler, credentials)
            connection.start()
            await wait_until(lambda: connection.is_open)

            await connection.shutdown()
            await asyncio.sleep(0.01)
            return connector, connection, handler

        connector, connection, handler = asyncio.run(scenario())

        assert connection.state is ConnectionState.SHUTDOWN
        assert connector.calls == 1
        assert connector.latest.closed
        assert ("close", 1000) not in handler.events

    def test_shutdown_while_connecting(self, credentials):
        async def scenario():
            connector = FakeConnector()
            connector.gate.clear()
            connection = _connection(connector, RecordingHandler(), credentials)
            connection.start()
            await asyncio.sleep(0.01)

            await connection.shutdown()
            connector.gate.set()
            await asyncio.sleep(0.01)
            return connector, connection

        connector, connection = asyncio.run(scenario())

        assert connection.state is ConnectionState.SHUTDOWN
        assert connector.sockets == []

    def test_start_after_shutdown_rejected(self, credentials):
        async def scenario():
            connection = _connection(FakeConnector(), RecordingHandler(), credentials)
            await connection.shutdown()
            connection.start()

        with pytest.raises(RuntimeError):
            asyncio.run(scenario())

    def test_send_when_not_open(self, credentials):
        async def scenario():
            connection = _connection(FakeConnector(), RecordingHandler(), credentials)
            await connection.send(json.dumps({"x": 1}))

        with pytest.raises(ConnectionError):
            asyncio.run(scenario())
