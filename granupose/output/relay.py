"""Relay output over a WebSocket session.

The relay bridge forwards JSON envelopes to the engine as OSC::

    {"type": "channel:set", "payload": {"channel": 3, "value": 0.5}}
    {"type": "osc:send", "payload": {"address": "/GrainRate",
                                     "args": [{"type": "f", "value": 12.0}]}}

Inbound envelopes are read only to notice the session closing and to log
``bridge:error`` replies. There is no automatic reconnect; call
:meth:`RelayOutputClient.connect` again after a drop.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, List, Optional, Sequence

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed

from ..constants import DEFAULT_OUTPUT_CHANNEL_COUNT, OSC_OUTPUT_PREFIX
from .base import DISCONNECTED, BaseOutputClient

logger = logging.getLogger(__name__)


class WebSocketRelayTransport:
    """Persistent WebSocket session to the relay bridge (websockets)."""

    def __init__(self, ws_url: str):
        self.ws_url = ws_url
        self._ws = None

    async def open(self) -> bool:
        await self.close()
        self._ws = await ws_connect(self.ws_url)
        return True

    async def send_json(self, envelope: dict) -> bool:
        if self._ws is None:
            return False
        await self._ws.send(json.dumps(envelope))
        return True

    async def receive(self) -> AsyncIterator[dict]:
        """Yield decoded inbound envelopes until the session closes."""
        if self._ws is None:
            return
        try:
            async for raw in self._ws:
                try:
                    envelope = json.loads(raw)
                except (TypeError, ValueError):
                    continue
                if isinstance(envelope, dict):
                    yield envelope
        except ConnectionClosed as e:
            logger.debug(f"Relay session closed: {e}")

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()


class RelayOutputClient(BaseOutputClient):
    """Output client talking to the relay bridge.

    Parameters
    ----------
    transport : WebSocketRelayTransport or None
        ``None`` (no relay URL) leaves the client ``disabled``.
    channel_count, channel_prefix : int, str
        Output channel table.
    """

    name = "relay"
    supports_osc = True

    def __init__(self, transport=None, channel_count: int = DEFAULT_OUTPUT_CHANNEL_COUNT,
                 channel_prefix: str = OSC_OUTPUT_PREFIX):
        super().__init__(transport, channel_count, channel_prefix)
        self._reader = None

    @classmethod
    def from_config(cls, config: dict) -> "RelayOutputClient":
        ws_url = (config["relay"].get("ws_url") or "").strip()
        return cls(
            transport=WebSocketRelayTransport(ws_url) if ws_url else None,
            channel_count=config["output"]["channel_count"],
            channel_prefix=config["output"]["channel_prefix"],
        )

    async def _open_transport(self) -> bool:
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
        ok = await self.transport.open()
        if ok:
            # Not tracked in the pending set: it lives as long as the session.
            self._reader = asyncio.get_running_loop().create_task(self._read_session())
        return ok

    async def _read_session(self) -> None:
        async for envelope in self.transport.receive():
            if envelope.get("type") == "bridge:error":
                logger.warning(f"Relay rejected a message: {envelope.get('payload')}")
        if not self._closed:
            self._set_status(DISCONNECTED)

    async def _send_channel(self, channel: int, value: float) -> bool:
        return await self.transport.send_json({
            "type": "channel:set",
            "payload": {"channel": channel, "value": value},
        })

    async def _send_osc_message(self, address: str, args: List[dict]) -> bool:
        return await self.transport.send_json({
            "type": "osc:send",
            "payload": {"address": address, "args": args},
        })

    def send_osc_message(self, address: str, args: Optional[Sequence] = None):
        return self._dispatch_osc(address, args)

    def _release_transport(self) -> None:
        if self.transport is not None:
            self._spawn(self.transport.close())
