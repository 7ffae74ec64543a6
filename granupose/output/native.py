"""Native OSC output over UDP.

Channel values go out as one float on ``prefix/NN``; raw messages keep
their typed arguments. When telemetry is enabled, :meth:`connect` also
starts an OSC listener on the engine's scan address and forwards parsed
:class:`~granupose.telemetry.ScanTelemetry` records to subscribers.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_message_builder import OscMessageBuilder
from pythonosc.osc_server import AsyncIOOSCUDPServer
from pythonosc.udp_client import SimpleUDPClient

from ..constants import DEFAULT_OUTPUT_CHANNEL_COUNT, OSC_OUTPUT_PREFIX, TELEMETRY_SCAN_ADDRESS
from ..schema import format_output_channel_address
from ..telemetry import ScanTelemetry, parse_telemetry, scan_args_to_payload
from .base import BaseOutputClient

logger = logging.getLogger(__name__)

TelemetryListener = Callable[[ScanTelemetry], None]


class OscUdpTransport:
    """OSC send/receive primitives over UDP (python-osc)."""

    def __init__(self):
        self._client = None
        self._server_transport = None

    @property
    def ready(self) -> bool:
        return self._client is not None

    async def configure(self, target_host: str, target_port: int) -> bool:
        self._client = SimpleUDPClient(target_host, target_port)
        return True

    async def send_message(self, address: str, args: List[dict]) -> bool:
        if self._client is None:
            return False
        builder = OscMessageBuilder(address=address)
        for arg in args:
            builder.add_arg(arg["value"], arg["type"])
        self._client.send(builder.build())
        return True

    async def listen(self, host: str, port: int, address: str,
                     handler: Callable[..., None]) -> None:
        self.stop_listening()
        dispatcher = Dispatcher()
        dispatcher.map(address, handler)
        server = AsyncIOOSCUDPServer((host, port), dispatcher, asyncio.get_running_loop())
        self._server_transport, _ = await server.create_serve_endpoint()
        logger.info(f"Telemetry listener on {host}:{port} {address}")

    def stop_listening(self) -> None:
        if self._server_transport is not None:
            self._server_transport.close()
            self._server_transport = None
            logger.info("Telemetry listener stopped")

    def close(self) -> None:
        self.stop_listening()
        self._client = None


class NativeOscOutputClient(BaseOutputClient):
    """Output client sending OSC directly to the engine.

    Parameters
    ----------
    transport : OscUdpTransport or None
        ``None`` leaves the client ``disabled``.
    target_host, target_port : str, int
        Engine OSC endpoint.
    channel_count, channel_prefix : int, str
        Output channel table.
    telemetry_enabled : bool
        Start the scan telemetry listener on connect.
    listen_host, listen_port, scan_address : str, int, str
        Telemetry listener endpoint.
    """

    name = "osc"
    supports_osc = True

    def __init__(self, transport=None, target_host: str = "127.0.0.1", target_port: int = 16447,
                 channel_count: int = DEFAULT_OUTPUT_CHANNEL_COUNT,
                 channel_prefix: str = OSC_OUTPUT_PREFIX, telemetry_enabled: bool = False,
                 listen_host: str = "127.0.0.1", listen_port: int = 16448,
                 scan_address: str = TELEMETRY_SCAN_ADDRESS):
        super().__init__(transport, channel_count, channel_prefix)
        self.target_host = target_host
        self.target_port = target_port
        self.telemetry_enabled = telemetry_enabled
        self.listen_host = listen_host
        self.listen_port = listen_port
        self.scan_address = scan_address
        self._telemetry_listeners: List[TelemetryListener] = []

    @classmethod
    def from_config(cls, config: dict) -> "NativeOscOutputClient":
        telemetry = config["telemetry"]
        return cls(
            transport=OscUdpTransport(),
            target_host=config["osc"]["target_host"],
            target_port=config["osc"]["target_port"],
            channel_count=config["output"]["channel_count"],
            channel_prefix=config["output"]["channel_prefix"],
            telemetry_enabled=telemetry["enabled"],
            listen_host=telemetry["listen_host"],
            listen_port=telemetry["listen_port"],
            scan_address=telemetry["scan_address"],
        )

    async def _open_transport(self) -> bool:
        ok = await self.transport.configure(self.target_host, self.target_port)
        if ok and self.telemetry_enabled:
            try:
                await self.transport.listen(self.listen_host, self.listen_port,
                                            self.scan_address, self._on_scan_message)
            except OSError as e:
                # Output still works without telemetry.
                logger.warning(f"Telemetry listener failed on port {self.listen_port}: {e}")
        return ok

    async def _send_channel(self, channel: int, value: float) -> bool:
        address = format_output_channel_address(channel, self.channel_prefix)
        return await self.transport.send_message(address, [{"type": "f", "value": value}])

    async def _send_osc_message(self, address: str, args: List[dict]) -> bool:
        return await self.transport.send_message(address, args)

    def send_osc_message(self, address: str, args: Optional[Sequence] = None):
        return self._dispatch_osc(address, args)

    # ── Telemetry ────────────────────────────────────────────────────────

    def subscribe_scan_telemetry(self, listener: TelemetryListener) -> Callable[[], None]:
        """Register *listener* for parsed scan telemetry.

        Returns a function that removes the listener. Without a transport
        nothing is ever delivered.
        """
        if self.transport is None:
            return lambda: None
        self._telemetry_listeners.append(listener)

        def unsubscribe():
            if listener in self._telemetry_listeners:
                self._telemetry_listeners.remove(listener)

        return unsubscribe

    def handle_scan_telemetry(self, payload, source: str = "native") -> Optional[ScanTelemetry]:
        """Parse *payload* and deliver it to subscribers; malformed -> ``None``."""
        if self._closed:
            return None
        parsed = parse_telemetry(payload, source=source)
        if parsed is None:
            return None
        for listener in list(self._telemetry_listeners):
            listener(parsed)
        return parsed

    def _on_scan_message(self, address: str, *args) -> None:
        payload = scan_args_to_payload(list(args))
        if payload is None:
            logger.debug(f"Ignoring short telemetry message on {address}")
            return
        self.handle_scan_telemetry(payload)

    def _release_transport(self) -> None:
        self._telemetry_listeners.clear()
        if self.transport is not None:
            self.transport.close()
