"""Tests for output clients and their shared status state machine."""

import asyncio

import pytest

from conftest import FakeMidiTransport, FakeOscTransport, FakeRelayTransport, run


def _native(transport, **kwargs):
    from granupose.output.native import NativeOscOutputClient

    return NativeOscOutputClient(transport=transport, **kwargs)


def _record(client):
    seen = []
    client.subscribe_status(seen.append)
    return seen


# ── Status state machine ─────────────────────────────────────────────────


class TestStatusMachine:

    def test_initial_status(self, osc_transport):
        assert _native(osc_transport).status == "disconnected"
        assert _native(None).status == "disabled"

    def test_subscribe_replays_current_status(self, osc_transport):
        client = _native(osc_transport)
        assert _record(client) == ["disconnected"]

    def test_unsubscribe_stops_notifications(self, osc_transport):
        client = _native(osc_transport)
        seen = []
        unsubscribe = client.subscribe_status(seen.append)
        unsubscribe()
        unsubscribe()
        run(client.connect())
        assert seen == ["disconnected"]

    def test_connect_success(self, osc_transport):
        client = _native(osc_transport, target_host="10.0.0.2", target_port=9000)
        seen = _record(client)
        run(client.connect())
        assert seen == ["disconnected", "connecting", "connected"]
        assert osc_transport.configured == ("10.0.0.2", 9000)

    def test_connect_rejected(self):
        client = _native(FakeOscTransport(configure_ok=False))
        seen = _record(client)
        run(client.connect())
        assert seen == ["disconnected", "connecting", "disconnected"]

    def test_connect_exception_becomes_status(self):
        client = _native(FakeOscTransport(error=OSError("no route")))
        run(client.connect())
        assert client.status == "disconnected"

    def test_connect_without_transport_stays_disabled(self):
        client = _native(None)
        seen = _record(client)
        run(client.connect())
        assert seen == ["disabled"]

    def test_connect_after_close_is_noop(self, osc_transport):
        client = _native(osc_transport)
        client.close()
        run(client.connect())
        assert client.status == "disconnected"
        assert osc_transport.configured is None

    def test_repeated_status_is_not_renotified(self, osc_transport):
        client = _native(osc_transport)
        seen = _record(client)

        async def scenario():
            await client.connect()
            client.send_channel(1, 0.1)
            client.send_channel(2, 0.2)
            await client.drain()

        run(scenario())
        assert seen == ["disconnected", "connecting", "connected"]

    def test_failed_send_disconnects(self):
        transport = FakeOscTransport()
        client = _native(transport)
        seen = _record(client)

        async def scenario():
            await client.connect()
            transport.ok = False
            client.send_channel(1, 0.5)
            await client.drain()
            transport.ok = True
            client.send_channel(1, 0.5)
            await client.drain()

        run(scenario())
        assert seen == ["disconnected", "connecting", "connected", "disconnected", "connected"]

    def test_raising_send_disconnects(self):
        transport = FakeOscTransport()
        client = _native(transport)

        async def scenario():
            await client.connect()
            transport.error = RuntimeError("socket closed")
            task = client.send_channel(1, 0.5)
            await client.drain()
            return task

        task = run(scenario())
        assert client.status == "disconnected"
        assert task.result() is False

    def test_close_is_terminal_and_idempotent(self, osc_transport):
        client = _native(osc_transport)
        seen = _record(client)

        async def scenario():
            await client.connect()
            client.close()
            client.close()
            assert client.send_channel(1, 0.5) is None
            assert client.send_osc_message("/GrainRate", [1.0]) is None
            await client.drain()

        run(scenario())
        assert seen == ["disconnected", "connecting", "connected", "disconnected"]
        assert osc_transport.sent == []
        assert osc_transport.closed
        assert client.closed

    def test_in_flight_send_cannot_resurrect_status_after_close(self, osc_transport):
        client = _native(osc_transport)
        seen = _record(client)

        async def scenario():
            await client.connect()
            osc_transport.ok = False
            client.send_channel(1, 0.5)
            client.close()
            await client.drain()

        run(scenario())
        assert client.status == "disconnected"
        assert seen == ["disconnected", "connecting", "connected", "disconnected"]

    def test_late_success_after_close_is_ignored(self):
        release = None

        class SlowTransport(FakeOscTransport):
            async def send_message(self, address, args):
                await release.wait()
                return True

        client = _native(SlowTransport())
        seen = _record(client)

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            await client.connect()
            client.send_channel(1, 0.5)
            await asyncio.sleep(0)
            client.close()
            release.set()
            await client.drain()

        run(scenario())
        assert client.status == "disconnected"
        assert seen == ["disconnected", "connecting", "connected", "disconnected"]

    def test_send_without_event_loop_disconnects(self, osc_transport):
        client = _native(osc_transport)
        run(client.connect())
        assert client.send_channel(1, 0.5) is None
        assert client.status == "disconnected"

    def test_send_without_transport_reports_disabled(self):
        client = _native(None)

        async def scenario():
            assert client.send_channel(1, 0.5) is None

        run(scenario())
        assert client.status == "disabled"


# ── Native OSC ───────────────────────────────────────────────────────────


class TestNativeOscClient:

    def test_send_channel_clamps_and_addresses(self, osc_transport):
        client = _native(osc_transport)

        async def scenario():
            await client.connect()
            client.send_channel(3, 1.7)
            client.send_channel(12, -0.4)
            await client.drain()

        run(scenario())
        assert osc_transport.sent == [
            ("/pose/out/03", [{"type": "f", "value": 1.0}]),
            ("/pose/out/12", [{"type": "f", "value": 0.0}]),
        ]

    @pytest.mark.parametrize("channel", [0, 17, -1, 2.0, "1", None, True])
    def test_invalid_channels_are_dropped(self, osc_transport, channel):
        client = _native(osc_transport)

        async def scenario():
            await client.connect()
            assert client.send_channel(channel, 0.5) is None
            await client.drain()

        run(scenario())
        assert osc_transport.sent == []
        assert client.status == "connected"

    def test_channel_count_limits_channels(self, osc_transport):
        client = _native(osc_transport, channel_count=4, channel_prefix="/body")

        async def scenario():
            await client.connect()
            client.send_channel(4, 0.5)
            client.send_channel(5, 0.5)
            await client.drain()

        run(scenario())
        assert [address for address, _ in osc_transport.sent] == ["/body/04"]
        assert [c.address for c in client.get_output_channels()] == [
            "/body/01", "/body/02", "/body/03", "/body/04",
        ]

    def test_non_finite_values_are_dropped(self, osc_transport):
        client = _native(osc_transport)

        async def scenario():
            await client.connect()
            assert client.send_channel(1, float("nan")) is None
            assert client.send_channel(1, "loud") is None

        run(scenario())
        assert osc_transport.sent == []

    def test_send_osc_message(self, osc_transport):
        client = _native(osc_transport)

        async def scenario():
            await client.connect()
            client.send_osc_message("  /GrainRate ", [
                {"type": "f", "value": "12.5"},
                {"type": "i", "value": 3.9},
                {"type": "s", "value": 7},
                {"type": "d", "value": 0.25},
                {"type": "x", "value": 1},
                {"type": "f", "value": "abc"},
                4,
                0.5,
                "on",
                True,
                None,
            ])
            await client.drain()

        run(scenario())
        assert osc_transport.sent == [("/GrainRate", [
            {"type": "f", "value": 12.5},
            {"type": "i", "value": 3},
            {"type": "s", "value": "7"},
            {"type": "d", "value": 0.25},
            {"type": "i", "value": 4},
            {"type": "f", "value": 0.5},
            {"type": "s", "value": "on"},
        ])]

    @pytest.mark.parametrize("address", ["GrainRate", "", "   ", None, 5])
    def test_send_osc_message_requires_slash_address(self, osc_transport, address):
        client = _native(osc_transport)

        async def scenario():
            await client.connect()
            assert client.send_osc_message(address, [1.0]) is None

        run(scenario())
        assert osc_transport.sent == []

    def test_telemetry_listener_started_on_connect(self, osc_transport):
        client = _native(osc_transport, telemetry_enabled=True, listen_port=17000)
        run(client.connect())
        host, port, address, _ = osc_transport.listening
        assert (host, port, address) == ("127.0.0.1", 17000, "/ec2/telemetry/scan")

    def test_telemetry_disabled_by_default(self, osc_transport):
        run(_native(osc_transport).connect())
        assert osc_transport.listening is None

    def test_scan_messages_reach_subscribers(self, osc_transport):
        client = _native(osc_transport, telemetry_enabled=True)
        received = []
        unsubscribe = client.subscribe_scan_telemetry(received.append)
        run(client.connect())
        handler = osc_transport.listening[3]

        handler("/ec2/telemetry/scan", 0.5, 0.2, 0.1, 200, 50, 100)
        handler("/ec2/telemetry/scan", 0.5)
        assert len(received) == 1
        scan = received[0]
        assert scan.source == "native"
        assert scan.active_grain_indices == [50, 100]
        assert scan.active_grain_norm_positions == pytest.approx([0.25, 0.5])

        unsubscribe()
        handler("/ec2/telemetry/scan", 0.1, 0.1, 0.1)
        assert len(received) == 1

    def test_malformed_telemetry_is_dropped(self, osc_transport):
        client = _native(osc_transport)
        received = []
        client.subscribe_scan_telemetry(received.append)
        assert client.handle_scan_telemetry({"playheadNorm": 0.5}) is None
        assert client.handle_scan_telemetry("junk") is None
        assert received == []

    def test_telemetry_stops_after_close(self, osc_transport):
        client = _native(osc_transport)
        received = []
        client.subscribe_scan_telemetry(received.append)
        client.close()
        payload = {"playheadNorm": 0.5, "scanHeadNorm": 0.2, "scanRangeNorm": 0.1}
        assert client.handle_scan_telemetry(payload) is None
        assert received == []

    def test_telemetry_without_transport(self):
        client = _native(None)
        unsubscribe = client.subscribe_scan_telemetry(lambda scan: None)
        unsubscribe()

    def test_telemetry_bind_failure_keeps_output(self):
        class BusyPortTransport(FakeOscTransport):
            async def listen(self, host, port, address, handler):
                raise OSError("address already in use")

        client = _native(BusyPortTransport(), telemetry_enabled=True)
        run(client.connect())
        assert client.status == "connected"


# ── Relay ────────────────────────────────────────────────────────────────


class TestRelayClient:

    def _client(self, transport, **kwargs):
        from granupose.output.relay import RelayOutputClient

        return RelayOutputClient(transport=transport, **kwargs)

    def test_envelopes(self, relay_transport):
        client = self._client(relay_transport)

        async def scenario():
            await client.connect()
            client.send_channel(2, 0.75)
            client.send_osc_message("/ScanSpeed", [-1.5])
            await client.drain()
            client.close()
            await client.drain()

        run(scenario())
        assert relay_transport.sent == [
            {"type": "channel:set", "payload": {"channel": 2, "value": 0.75}},
            {"type": "osc:send", "payload": {
                "address": "/ScanSpeed", "args": [{"type": "f", "value": -1.5}],
            }},
        ]
        assert relay_transport.closed

    def test_session_drop_disconnects(self, relay_transport):
        client = self._client(relay_transport)
        seen = _record(client)

        async def scenario():
            await client.connect()
            relay_transport.hang_up()
            await asyncio.sleep(0.01)

        run(scenario())
        assert seen == ["disconnected", "connecting", "connected", "disconnected"]

    def test_open_failure(self):
        client = self._client(FakeRelayTransport(error=ConnectionRefusedError("refused")))
        run(client.connect())
        assert client.status == "disconnected"

    def test_disabled_without_url(self):
        from granupose.config import DEFAULT_CONFIG, config_from_env
        from granupose.output.relay import RelayOutputClient

        cfg = config_from_env(DEFAULT_CONFIG, environ={})
        cfg["relay"]["ws_url"] = "  "
        client = RelayOutputClient.from_config(cfg)
        assert client.transport is None
        assert client.status == "disabled"


# ── MIDI ─────────────────────────────────────────────────────────────────


class TestMidiClient:

    def _client(self, transport, **kwargs):
        from granupose.output.midi import MidiOutputClient

        return MidiOutputClient(transport=transport, **kwargs)

    def test_control_change_mapping(self, midi_transport):
        client = self._client(midi_transport, midi_channel=2, cc_start=10)

        async def scenario():
            await client.connect()
            client.send_channel(1, 0.0)
            client.send_channel(3, 0.25)
            client.send_channel(16, 1.4)
            await client.drain()

        run(scenario())
        assert midi_transport.sent == [(2, 10, 0), (2, 12, 32), (2, 25, 127)]
        assert client.status == "connected"

    def test_controller_number_is_clamped(self, midi_transport):
        client = self._client(midi_transport, cc_start=120)

        async def scenario():
            await client.connect()
            client.send_channel(16, 0.5)
            await client.drain()

        run(scenario())
        assert midi_transport.sent == [(1, 127, 64)]

    def test_settings_are_clamped(self, midi_transport):
        client = self._client(midi_transport, midi_channel=40, cc_start=-5)
        assert (client.midi_channel, client.cc_start) == (16, 0)

    def test_preferred_device(self, midi_transport):
        client = self._client(midi_transport, device_id="IAC Bus 1")
        run(client.connect())
        assert midi_transport.opened == "IAC Bus 1"

    def test_missing_device_falls_back_to_first(self, midi_transport):
        client = self._client(midi_transport, device_id="Gone")
        run(client.connect())
        assert midi_transport.opened == "Fake Synth"

    def test_no_ports(self):
        client = self._client(FakeMidiTransport(outputs=()))
        run(client.connect())
        assert client.status == "disconnected"

    def test_send_before_connect_disconnects(self, midi_transport):
        client = self._client(midi_transport)

        async def scenario():
            client.send_channel(1, 0.5)
            await client.drain()

        run(scenario())
        assert client.status == "disconnected"

    def test_device_subscription(self, midi_transport):
        from granupose.output.midi import MidiOutputDevice

        client = self._client(midi_transport)
        seen = []
        client.subscribe_devices(seen.append)
        run(client.connect())
        client.close()
        expected = [MidiOutputDevice("Fake Synth", "Fake Synth"),
                    MidiOutputDevice("IAC Bus 1", "IAC Bus 1")]
        assert seen == [expected, expected, []]
        assert midi_transport.closed

    def test_osc_passthrough_is_unavailable(self, midi_transport):
        client = self._client(midi_transport)
        assert client.supports_osc is False

        async def scenario():
            await client.connect()
            assert client.send_osc_message("/GrainRate", [1.0]) is None

        run(scenario())
        assert midi_transport.sent == []

    def test_disabled_without_backend(self, monkeypatch):
        from granupose.config import DEFAULT_CONFIG
        from granupose.output.midi import MidiOutputClient, MidoTransport

        monkeypatch.setattr(MidoTransport, "probe", staticmethod(lambda: False))
        client = MidiOutputClient.from_config(DEFAULT_CONFIG)
        assert client.status == "disabled"
        assert client.list_outputs() == []

    def test_cc_helpers(self):
        from granupose.output.midi import cc_for_channel, cc_value

        assert cc_for_channel(1, 1) == 1
        assert cc_for_channel(5, 126) == 127
        assert cc_for_channel(1, 0) == 0
        assert cc_value(0.5) == 64
        assert cc_value(-1) == 0


# ── Registry / factory ───────────────────────────────────────────────────


class TestOutputRegistry:

    def test_list_backends(self):
        from granupose.output import list_backends

        assert list_backends() == ["midi", "osc", "relay"]

    def test_unknown_backend(self):
        from granupose.output import get_output_client

        with pytest.raises(ValueError, match="Unknown output backend 'dmx'"):
            get_output_client("dmx")

    def test_get_output_client_passes_kwargs(self, osc_transport):
        from granupose.output import get_output_client
        from granupose.output.native import NativeOscOutputClient

        client = get_output_client("osc", transport=osc_transport, channel_count=8)
        assert isinstance(client, NativeOscOutputClient)
        assert client.channel_count == 8

    def test_create_from_default_config(self):
        from granupose.config import DEFAULT_CONFIG
        from granupose.output import create_output_client
        from granupose.output.native import NativeOscOutputClient, OscUdpTransport

        client = create_output_client(DEFAULT_CONFIG)
        assert isinstance(client, NativeOscOutputClient)
        assert isinstance(client.transport, OscUdpTransport)
        assert client.status == "disconnected"
        assert client.telemetry_enabled is True
        assert client.target_port == 16447

    def test_create_relay(self):
        import copy
        from granupose.config import DEFAULT_CONFIG
        from granupose.output import create_output_client
        from granupose.output.relay import RelayOutputClient, WebSocketRelayTransport

        cfg = copy.deepcopy(DEFAULT_CONFIG)
        cfg["output"]["protocol"] = "relay"
        client = create_output_client(cfg)
        assert isinstance(client, RelayOutputClient)
        assert isinstance(client.transport, WebSocketRelayTransport)
        assert client.transport.ws_url == "ws://127.0.0.1:8787/ws"

    def test_create_midi(self, monkeypatch):
        import copy
        from granupose.config import DEFAULT_CONFIG
        from granupose.output import create_output_client
        from granupose.output.midi import MidiOutputClient, MidoTransport

        monkeypatch.setattr(MidoTransport, "probe", staticmethod(lambda: True))
        cfg = copy.deepcopy(DEFAULT_CONFIG)
        cfg["output"]["protocol"] = "midi"
        cfg["midi"]["cc_start"] = 20
        client = create_output_client(cfg)
        assert isinstance(client, MidiOutputClient)
        assert client.cc_start == 20
        assert client.status == "disconnected"
