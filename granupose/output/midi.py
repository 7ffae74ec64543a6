"""MIDI control-change output.

Output channel ``n`` drives controller ``cc_start + n - 1`` (clamped to
0..127) on one MIDI channel; the value is ``round(v * 127)``. OSC
passthrough is not available in MIDI mode.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import mido

from ..constants import DEFAULT_OUTPUT_CHANNEL_COUNT, OSC_OUTPUT_PREFIX
from ..signals import clamp
from .base import BaseOutputClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MidiOutputDevice:
    id: str
    name: str


DeviceListener = Callable[[List[MidiOutputDevice]], None]


class MidoTransport:
    """MIDI output port access through mido."""

    def __init__(self):
        self._port = None

    @staticmethod
    def probe() -> bool:
        """True if a mido backend can enumerate output ports."""
        try:
            mido.get_output_names()
        except (ImportError, OSError, RuntimeError) as e:
            logger.warning(f"MIDI backend unavailable: {e}")
            return False
        return True

    @property
    def port_name(self) -> Optional[str]:
        return None if self._port is None else self._port.name

    def list_outputs(self) -> List[str]:
        return list(mido.get_output_names())

    async def open(self, device_id: str = "") -> bool:
        """Open *device_id*, or the first output if it is empty or missing."""
        names = self.list_outputs()
        if not names:
            logger.warning("No MIDI output ports found")
            return False
        name = device_id if device_id in names else names[0]
        if device_id and name != device_id:
            logger.warning(f"MIDI device '{device_id}' not found, using '{name}'")
        self.close()
        self._port = mido.open_output(name)
        return True

    async def send_control_change(self, midi_channel: int, control: int, value: int) -> bool:
        if self._port is None:
            return False
        self._port.send(mido.Message("control_change", channel=midi_channel - 1,
                                     control=control, value=value))
        return True

    def close(self) -> None:
        if self._port is not None:
            self._port.close()
            self._port = None


def cc_for_channel(channel: int, cc_start: int) -> int:
    return int(clamp(cc_start + channel - 1, 0, 127))


def cc_value(value: float) -> int:
    return int(round(clamp(value, 0.0, 1.0) * 127))


class MidiOutputClient(BaseOutputClient):
    """Output client sending channel values as MIDI control changes.

    Parameters
    ----------
    transport : MidoTransport or None
        ``None`` (no MIDI backend) leaves the client ``disabled``.
    device_id : str
        Preferred output port name; the first port is used if it is absent.
    midi_channel : int
        MIDI channel, 1..16.
    cc_start : int
        Controller number for output channel 1, 0..127.
    """

    name = "midi"
    supports_osc = False

    def __init__(self, transport=None, device_id: str = "", midi_channel: int = 1,
                 cc_start: int = 1, channel_count: int = DEFAULT_OUTPUT_CHANNEL_COUNT,
                 channel_prefix: str = OSC_OUTPUT_PREFIX):
        super().__init__(transport, channel_count, channel_prefix)
        self.device_id = device_id or ""
        self.midi_channel = int(clamp(int(midi_channel), 1, 16))
        self.cc_start = int(clamp(int(cc_start), 0, 127))
        self._device_listeners: List[DeviceListener] = []

    @classmethod
    def from_config(cls, config: dict) -> "MidiOutputClient":
        midi = config["midi"]
        return cls(
            transport=MidoTransport() if MidoTransport.probe() else None,
            device_id=midi["device_id"],
            midi_channel=midi["midi_channel"],
            cc_start=midi["cc_start"],
            channel_count=config["output"]["channel_count"],
            channel_prefix=config["output"]["channel_prefix"],
        )

    def list_outputs(self) -> List[MidiOutputDevice]:
        if self.transport is None or self._closed:
            return []
        return [MidiOutputDevice(id=name, name=name) for name in self.transport.list_outputs()]

    def subscribe_devices(self, listener: DeviceListener) -> Callable[[], None]:
        """Register *listener*; it is called right away with the current devices."""
        self._device_listeners.append(listener)
        listener(self.list_outputs())

        def unsubscribe():
            if listener in self._device_listeners:
                self._device_listeners.remove(listener)

        return unsubscribe

    def _emit_devices(self) -> None:
        devices = self.list_outputs()
        for listener in list(self._device_listeners):
            listener(devices)

    async def _open_transport(self) -> bool:
        ok = await self.transport.open(self.device_id)
        self._emit_devices()
        return ok

    async def _send_channel(self, channel: int, value: float) -> bool:
        return await self.transport.send_control_change(
            self.midi_channel, cc_for_channel(channel, self.cc_start), cc_value(value))

    def _release_transport(self) -> None:
        if self.transport is not None:
            self.transport.close()
        self._emit_devices()
