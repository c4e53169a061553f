import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.contracts.extension_v1 import PushFamily
from src.core.errors import (
    ChannelUnavailable,
    RequestRejected,
    TransportError,
    TransportTimeout,
    TransportUnavailable,
)
from src.transport.broadcast import BroadcastBus
from src.transport.correlation import CorrelationTransport

MARKER = "truckarooskie-extension"


def _direct(response=None, available=True, side_effect=None):
    channel = MagicMock()
    channel.available.return_value = available
    channel.send_message = AsyncMock(return_value=response, side_effect=side_effect)
    return channel


class TestBroadcastStrategy:
    @pytest.mark.asyncio
    async def test_resolves_with_matching_response(self, transport, extension):
        extension.handlers["CONNECTION_CHECK"] = {"success": True, "datTabConnected": True}

        response = await transport.send({"type": "CONNECTION_CHECK"})

        assert response["success"] is True
        assert response["datTabConnected"] is True
        sent = extension.requests_of("CONNECTION_CHECK")[0]
        assert sent["target"] == MARKER
        assert sent["requestId"].startswith("req_")

    @pytest.mark.asyncio
    async def test_ignores_responses_for_other_requests_and_sources(self, bus, transport, extension):
        def reply(event):
            bus.post({"source": MARKER, "requestId": "req_0_other", "wrong": True})
            bus.post({"source": "someone-else", "requestId": event["requestId"], "wrong": True})
            return {"success": True, "right": True}

        extension.handlers["PING_DAT_TAB"] = reply

        response = await transport.send({"type": "PING_DAT_TAB"})

        assert response.get("right") is True
        assert "wrong" not in response

    @pytest.mark.asyncio
    async def test_timeout_removes_listener(self, bus, transport, extension):
        extension.handlers["DAT_SEARCH"] = None
        before = bus.listener_count

        with pytest.raises(TransportTimeout) as exc:
            await transport.send({"type": "DAT_SEARCH", "params": {}})

        assert str(exc.value) == "Extension communication timed out"
        assert isinstance(exc.value, TimeoutError)
        assert exc.value.retryable is True
        assert bus.listener_count == before

    @pytest.mark.asyncio
    async def test_late_response_is_not_delivered_anywhere(self, bus, transport, extension):
        extension.handlers["DAT_SEARCH"] = None
        with pytest.raises(TransportTimeout):
            await transport.send({"type": "DAT_SEARCH"})
        request_id = extension.requests_of("DAT_SEARCH")[0]["requestId"]

        callback = MagicMock()
        transport.register(PushFamily.DAT_LOADS, callback)
        bus.post({"source": MARKER, "requestId": request_id, "success": True})
        await asyncio.sleep(0)

        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_sends_are_correlated_independently(self, transport, extension):
        extension.handlers["PING_DAT_TAB"] = lambda e: {"message": e["requestId"]}

        a, b = await asyncio.gather(
            transport.send({"type": "PING_DAT_TAB"}),
            transport.send({"type": "PING_DAT_TAB"}),
        )

        ids = [r["requestId"] for r in extension.requests_of("PING_DAT_TAB")]
        assert a["message"] in ids and b["message"] in ids
        assert a["message"] != b["message"]

    @pytest.mark.asyncio
    async def test_message_without_type_is_rejected(self, transport):
        with pytest.raises(ValueError):
            await transport.send({"params": {}})


class TestDirectStrategy:
    @pytest.mark.asyncio
    async def test_direct_channel_preferred_when_available(self, bus, extension):
        channel = _direct(response={"success": True, "via": "direct"})
        transport = CorrelationTransport(
            extension_id="ext", marker=MARKER, direct=channel, bus=bus, timeout_s=0.2
        )

        response = await transport.send({"type": "CONNECTION_CHECK"})

        assert response == {"success": True, "via": "direct"}
        channel.send_message.assert_awaited_once_with("ext", {"type": "CONNECTION_CHECK"})
        assert extension.requests == []

    @pytest.mark.asyncio
    async def test_unavailable_direct_falls_through_to_broadcast(self, bus, extension):
        extension.handlers["CONNECTION_CHECK"] = {"success": True}
        channel = _direct(available=False)
        transport = CorrelationTransport(
            extension_id="ext", marker=MARKER, direct=channel, bus=bus, timeout_s=0.2
        )

        assert (await transport.send({"type": "CONNECTION_CHECK"}))["success"] is True
        channel.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_delivery_error_becomes_request_rejected(self):
        channel = _direct(side_effect=RuntimeError("Could not establish connection"))
        transport = CorrelationTransport(extension_id="ext", marker=MARKER, direct=channel)

        with pytest.raises(RequestRejected, match="Could not establish connection"):
            await transport.send({"type": "DAT_SEARCH"})

    @pytest.mark.asyncio
    async def test_direct_call_is_bounded_by_timeout(self):
        async def hang(*_):
            await asyncio.sleep(10)

        channel = _direct(side_effect=hang)
        transport = CorrelationTransport(
            extension_id="ext", marker=MARKER, direct=channel, timeout_s=0.05
        )

        with pytest.raises(TransportTimeout):
            await transport.send({"type": "DAT_SEARCH"})


@pytest.mark.asyncio
async def test_no_channel_is_terminal():
    transport = CorrelationTransport(extension_id="ext", marker=MARKER)

    with pytest.raises(TransportUnavailable) as exc:
        await transport.send({"type": "CONNECTION_CHECK"})

    assert isinstance(exc.value, TransportError)
    assert exc.value.retryable is False
    assert ChannelUnavailable is TransportUnavailable


class TestPushDispatch:
    @pytest.mark.asyncio
    async def test_push_routed_to_family_callback(self, transport, extension):
        tab = MagicMock()
        transport.register(PushFamily.TAB, tab)

        extension.push({"type": "DAT_TAB_CONNECTED", "tabId": 7})
        await asyncio.sleep(0)

        tab.assert_called_once()
        assert tab.call_args.args[0]["tabId"] == 7

    @pytest.mark.asyncio
    async def test_register_replaces_and_none_unregisters(self, transport, extension):
        first, second = MagicMock(), MagicMock()
        transport.register(PushFamily.EXTENSION, first)
        transport.register(PushFamily.EXTENSION, second)

        extension.push({"type": "EXTENSION_DETECTED"})
        await asyncio.sleep(0)
        transport.register(PushFamily.EXTENSION, None)
        extension.push({"type": "EXTENSION_DETECTED"})
        await asyncio.sleep(0)

        first.assert_not_called()
        second.assert_called_once()
        assert not transport.has_callback(PushFamily.EXTENSION)

    def test_failing_callback_does_not_break_dispatch(self, transport):
        transport.register(PushFamily.DAT_LOADS, MagicMock(side_effect=RuntimeError("boom")))
        good = MagicMock()
        transport.register(PushFamily.TAB, good)

        assert transport.dispatch_push({"type": "DAT_LOADS_RECEIVED"}) is True
        assert transport.dispatch_push({"type": "DAT_TAB_DISCONNECTED"}) is True
        good.assert_called_once()

    def test_unknown_type_is_unhandled(self, transport):
        assert transport.dispatch_push({"type": "SOMETHING_ELSE"}) is False

    @pytest.mark.asyncio
    async def test_messages_from_other_sources_are_ignored(self, bus: BroadcastBus, transport):
        callback = MagicMock()
        transport.register(PushFamily.TAB, callback)

        bus.post({"type": "DAT_TAB_CONNECTED", "source": "page-script"})
        await asyncio.sleep(0)

        callback.assert_not_called()
