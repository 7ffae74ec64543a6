"""Shared test fixtures for the granupose test suite.

Provides landmark frame builders and fake transports so output clients
can be exercised without sockets, WebSocket servers or MIDI ports.
"""

import asyncio

import pytest


# Landmarks of a person standing centred in frame, arms down.
STANDING_LANDMARKS = {
    "NOSE":           {"x": 0.50, "y": 0.20},
    "LEFT_SHOULDER":  {"x": 0.60, "y": 0.35},
    "RIGHT_SHOULDER": {"x": 0.40, "y": 0.35},
    "LEFT_ELBOW":     {"x": 0.63, "y": 0.50},
    "RIGHT_ELBOW":    {"x": 0.37, "y": 0.50},
    "LEFT_WRIST":     {"x": 0.64, "y": 0.65},
    "RIGHT_WRIST":    {"x": 0.36, "y": 0.65},
    "LEFT_HIP":       {"x": 0.57, "y": 0.70},
    "RIGHT_HIP":      {"x": 0.43, "y": 0.70},
}


def make_landmarks(**overrides):
    """Build a 33-entry MediaPipe-ordered landmark list.

    Landmarks default to the standing pose, others to the frame centre.
    Keyword overrides use landmark names: ``RIGHT_WRIST=(0.3, 0.1)``;
    ``None`` removes a landmark.
    """
    from granupose.constants import MP_LANDMARK_NAMES

    landmarks = []
    for name in MP_LANDMARK_NAMES:
        point = dict(STANDING_LANDMARKS.get(name, {"x": 0.5, "y": 0.5}))
        point["visibility"] = 1.0
        landmarks.append(point)
    for name, value in overrides.items():
        idx = MP_LANDMARK_NAMES.index(name)
        if value is None:
            landmarks[idx] = None
        else:
            landmarks[idx] = {"x": value[0], "y": value[1], "visibility": 1.0}
    return landmarks


def make_named_frame(frame_idx=0, **overrides):
    """Build a recorded frame dict: ``{"frame_idx", "landmarks": {NAME: {...}}}``."""
    from granupose.constants import MP_LANDMARK_NAMES

    named = {}
    for name, point in zip(MP_LANDMARK_NAMES, make_landmarks(**overrides)):
        if point is not None:
            named[name] = point
    return {"frame_idx": frame_idx, "landmarks": named}


def run(coro):
    return asyncio.run(coro)


class FakeOscTransport:
    """Records OSC traffic; ``ok`` controls acknowledgements."""

    def __init__(self, ok=True, configure_ok=True, error=None):
        self.ok = ok
        self.configure_ok = configure_ok
        self.error = error
        self.configured = None
        self.sent = []
        self.listening = None
        self.closed = False

    async def configure(self, target_host, target_port):
        if self.error is not None:
            raise self.error
        self.configured = (target_host, target_port)
        return self.configure_ok

    async def send_message(self, address, args):
        if self.error is not None:
            raise self.error
        self.sent.append((address, args))
        return self.ok

    async def listen(self, host, port, address, handler):
        self.listening = (host, port, address, handler)

    def stop_listening(self):
        self.listening = None

    def close(self):
        self.closed = True
        self.listening = None


class FakeRelayTransport:
    """Records relay envelopes; the session stays open until closed."""

    def __init__(self, ok=True, open_ok=True, error=None):
        self.ok = ok
        self.open_ok = open_ok
        self.error = error
        self.sent = []
        self.closed = False
        self._hangup = None

    async def open(self):
        if self.error is not None:
            raise self.error
        self._hangup = asyncio.Event()
        return self.open_ok

    async def send_json(self, envelope):
        if self.error is not None:
            raise self.error
        self.sent.append(envelope)
        return self.ok

    async def receive(self):
        if self._hangup is None:
            return
        await self._hangup.wait()
        return
        yield

    def hang_up(self):
        self._hangup.set()

    async def close(self):
        self.closed = True
        if self._hangup is not None:
            self._hangup.set()


class FakeMidiTransport:
    """Records control changes sent to a fake port list."""

    def __init__(self, outputs=("Fake Synth", "IAC Bus 1"), ok=True):
        self.outputs = list(outputs)
        self.ok = ok
        self.opened = None
        self.sent = []
        self.closed = False

    def list_outputs(self):
        return list(self.outputs)

    async def open(self, device_id=""):
        if not self.outputs:
            return False
        self.opened = device_id if device_id in self.outputs else self.outputs[0]
        return True

    async def send_control_change(self, midi_channel, control, value):
        if self.opened is None:
            return False
        self.sent.append((midi_channel, control, value))
        return self.ok

    def close(self):
        self.closed = True
        self.opened = None


@pytest.fixture
def landmarks():
    return make_landmarks()


@pytest.fixture
def osc_transport():
    return FakeOscTransport()


@pytest.fixture
def relay_transport():
    return FakeRelayTransport()


@pytest.fixture
def midi_transport():
    return FakeMidiTransport()
