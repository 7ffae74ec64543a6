"""Base class for output clients.

Every backend shares one connection-status state machine::

    disabled      transport unavailable (client built without one)
    disconnected  initial state with a transport; after a failed
                  connect/send; after close()
    connecting    connect() awaiting the transport
    connected     last completed connect/send was acknowledged

Sends are fire-and-forget: ``send_channel`` / ``send_osc_message``
schedule the transport call on the running event loop and return at once.
The completion only updates the status, in completion order. ``close()``
is terminal; completions that land after it leave the status alone.
"""

import asyncio
import logging
import numbers
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

from ..constants import DEFAULT_OUTPUT_CHANNEL_COUNT, OSC_OUTPUT_PREFIX
from ..schema import (
    OutputChannel,
    create_output_channels,
    is_output_channel_number,
    normalize_channel_count,
)
from ..signals import clamp01
from ..telemetry import parse_finite_number

logger = logging.getLogger(__name__)

DISABLED = "disabled"
CONNECTING = "connecting"
CONNECTED = "connected"
DISCONNECTED = "disconnected"

STATUSES = (DISABLED, CONNECTING, CONNECTED, DISCONNECTED)

OSC_ARG_TYPES = ("f", "i", "d", "s")

StatusListener = Callable[[str], None]


def normalize_osc_address(address) -> Optional[str]:
    """Strip *address*; ``None`` unless it starts with ``/``."""
    if not isinstance(address, str):
        return None
    address = address.strip()
    return address if address.startswith("/") else None


def _normalize_osc_arg(arg) -> Optional[dict]:
    if isinstance(arg, dict):
        arg_type, value = arg.get("type"), arg.get("value")
    elif isinstance(arg, str):
        arg_type, value = "s", arg
    elif isinstance(arg, bool):
        return None
    elif isinstance(arg, numbers.Integral):
        arg_type, value = "i", arg
    elif isinstance(arg, numbers.Real):
        arg_type, value = "f", arg
    else:
        return None

    if arg_type not in OSC_ARG_TYPES:
        return None
    if arg_type == "s":
        if value is None:
            return None
        return {"type": "s", "value": str(value)}
    numeric = parse_finite_number(value)
    if numeric is None:
        return None
    if arg_type == "i":
        return {"type": "i", "value": int(numeric)}
    return {"type": arg_type, "value": float(numeric)}


def normalize_osc_args(args: Optional[Sequence]) -> List[dict]:
    """Normalize OSC arguments to ``{"type", "value"}`` dicts.

    Each argument is either a ``{"type": "f"|"i"|"d"|"s", "value": ...}``
    dict or a bare value (``str`` -> ``s``, integer -> ``i``, other
    numbers -> ``f``). ``i`` values are truncated; invalid arguments are
    dropped.
    """
    if not args:
        return []
    normalized = []
    for arg in args:
        parsed = _normalize_osc_arg(arg)
        if parsed is not None:
            normalized.append(parsed)
    return normalized


class BaseOutputClient(ABC):
    """Abstract base class for output clients.

    Subclasses must implement:
        - ``_open_transport()``: async, returns True when the transport is ready
        - ``_send_channel(channel, value)``: async, returns True on success

    Parameters
    ----------
    transport : object or None
        Backend transport. ``None`` means the capability is unavailable
        and the client stays ``disabled``.
    channel_count : int
        Active output channel count (clamped to 1..32).
    channel_prefix : str
        OSC prefix used by :meth:`get_output_channels`.
    """

    name: str = "base"
    supports_osc: bool = False

    def __init__(self, transport=None, channel_count: int = DEFAULT_OUTPUT_CHANNEL_COUNT,
                 channel_prefix: str = OSC_OUTPUT_PREFIX):
        self.transport = transport
        self.channel_count = normalize_channel_count(channel_count)
        self.channel_prefix = channel_prefix
        self._closed = False
        self._status = DISABLED if transport is None else DISCONNECTED
        self._status_listeners: List[StatusListener] = []
        self._pending = set()

    def __repr__(self):
        return f"{type(self).__name__}(status={self._status!r}, channels={self.channel_count})"

    # ── Status ───────────────────────────────────────────────────────────

    @property
    def status(self) -> str:
        return self._status

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe_status(self, listener: StatusListener) -> Callable[[], None]:
        """Register *listener*; it is called right away with the current status.

        Returns a function that removes the listener.
        """
        self._status_listeners.append(listener)
        listener(self._status)

        def unsubscribe():
            if listener in self._status_listeners:
                self._status_listeners.remove(listener)

        return unsubscribe

    def _set_status(self, status: str) -> None:
        if status == self._status:
            return
        logger.debug(f"{self.name}: status {self._status} -> {status}")
        self._status = status
        for listener in list(self._status_listeners):
            listener(status)

    # ── Task bookkeeping ─────────────────────────────────────────────────

    def _spawn(self, coro) -> Optional[asyncio.Task]:
        """Schedule *coro* on the running loop, keeping a strong reference."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            return None
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _complete(self, coro) -> bool:
        try:
            ok = bool(await coro)
        except Exception as e:
            logger.debug(f"{self.name}: send failed: {e}")
            ok = False
        if not self._closed:
            self._set_status(CONNECTED if ok else DISCONNECTED)
        return ok

    def _dispatch(self, coro) -> Optional[asyncio.Task]:
        task = self._spawn(self._complete(coro))
        if task is None:
            coro.close()
            logger.debug(f"{self.name}: no running event loop, send dropped")
            self._set_status(DISCONNECTED)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight send to complete."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ── Contract ─────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Bring the transport up, reporting progress through the status."""
        if self._closed:
            return
        if self.transport is None:
            self._set_status(DISABLED)
            return

        self._set_status(CONNECTING)
        try:
            ok = bool(await self._open_transport())
        except Exception as e:
            logger.warning(f"{self.name}: connect failed: {e}")
            ok = False

        if self._closed:
            return
        if ok:
            logger.info(f"{self.name}: connected")
        self._set_status(CONNECTED if ok else DISCONNECTED)

    def send_channel(self, channel: int, value: float) -> Optional[asyncio.Task]:
        """Send *value* (clamped to [0, 1]) on output *channel*.

        Channels outside ``1..channel_count`` and non-finite values are
        dropped. Returns the pending task, or ``None`` if nothing was sent.
        """
        if self._closed:
            return None
        if not is_output_channel_number(channel, self.channel_count):
            logger.debug(f"{self.name}: channel {channel!r} out of range, dropped")
            return None
        numeric = parse_finite_number(value)
        if numeric is None:
            return None
        if self.transport is None:
            self._set_status(DISABLED)
            return None
        return self._dispatch(self._send_channel(int(channel), clamp01(numeric)))

    def send_osc_message(self, address: str, args: Optional[Sequence] = None) -> Optional[asyncio.Task]:
        """Send a raw OSC message. Backends without OSC ignore it."""
        return None

    def _dispatch_osc(self, address, args) -> Optional[asyncio.Task]:
        if self._closed:
            return None
        address = normalize_osc_address(address)
        if address is None:
            logger.debug(f"{self.name}: OSC address must start with '/', dropped")
            return None
        if self.transport is None:
            self._set_status(DISABLED)
            return None
        return self._dispatch(self._send_osc_message(address, normalize_osc_args(args)))

    async def _send_osc_message(self, address: str, args: List[dict]) -> bool:
        raise NotImplementedError(f"{self.name} does not send OSC messages")

    def get_output_channels(self) -> List[OutputChannel]:
        return create_output_channels(self.channel_count, self.channel_prefix)

    def close(self) -> None:
        """Shut the client down. Idempotent; later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self._release_transport()
        self._set_status(DISCONNECTED)

    @abstractmethod
    async def _open_transport(self) -> bool:
        ...

    @abstractmethod
    async def _send_channel(self, channel: int, value: float) -> bool:
        ...

    def _release_transport(self) -> None:
        """Release transport resources on close. Must not raise."""
