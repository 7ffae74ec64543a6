"""Defensive parsing of inbound EC2 scan telemetry.

The engine periodically reports its playback / scan position and the
grains currently sounding. Payloads arrive untyped from outside the
process, so parsing never raises: a payload missing a required field
yields ``None``, and malformed optional arrays degrade to empty lists.

Two inbound shapes are handled:

    - a keyed payload (``playheadNorm``, ``scanHeadNorm``, ``scanRangeNorm``,
      optional ``soundFileFrames``, ``activeGrainIndices``,
      ``activeGrainNormPositions``) -> :func:`parse_telemetry`
    - the engine's positional OSC message on ``/ec2/telemetry/scan``
      (``playhead, scanHead, scanRange[, soundFileFrames, grainIndex...]``)
      -> :func:`scan_args_to_payload`, then :func:`parse_telemetry`
"""

import math
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .constants import MAX_TELEMETRY_GRAINS
from .signals import clamp01


@dataclass(frozen=True)
class ScanTelemetry:
    source: str
    received_at_ms: int
    playhead_norm: float
    scan_head_norm: float
    scan_range_norm: float
    sound_file_frames: Optional[int] = None
    active_grain_count: int = 0
    active_grain_indices: List[int] = field(default_factory=list)
    active_grain_norm_positions: List[float] = field(default_factory=list)


def parse_finite_number(value) -> Optional[float]:
    """Coerce *value* to a finite float, or ``None``."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return parsed if math.isfinite(parsed) else None


def _parse_normalized(value) -> Optional[float]:
    parsed = parse_finite_number(value)
    return None if parsed is None else clamp01(parsed)


def _parse_positive_int(value) -> Optional[int]:
    parsed = parse_finite_number(value)
    if parsed is None:
        return None
    rounded = int(parsed)
    return rounded if rounded > 0 else None


def _parse_numeric_list(value, max_length: int) -> List[float]:
    if not isinstance(value, (list, tuple)):
        return []
    parsed = []
    for item in value:
        numeric = parse_finite_number(item)
        if numeric is None:
            continue
        parsed.append(numeric)
        if len(parsed) >= max_length:
            break
    return parsed


def parse_telemetry(payload, source: str = "native",
                    received_at_ms: Optional[int] = None) -> Optional[ScanTelemetry]:
    """Parse an inbound scan telemetry payload.

    Parameters
    ----------
    payload : object
        Untyped payload; anything that is not a mapping yields ``None``.
    source : str
        Label recorded on the result (``"native"``, ``"relay"``...).
    received_at_ms : int, optional
        Receive timestamp; defaults to the current wall clock.

    Returns
    -------
    ScanTelemetry or None
        ``None`` if any of ``playheadNorm``, ``scanHeadNorm`` or
        ``scanRangeNorm`` is missing or not a finite number.
    """
    if not isinstance(payload, dict):
        return None

    playhead = _parse_normalized(payload.get("playheadNorm"))
    scan_head = _parse_normalized(payload.get("scanHeadNorm"))
    scan_range = _parse_normalized(payload.get("scanRangeNorm"))
    if playhead is None or scan_head is None or scan_range is None:
        return None

    frames = _parse_positive_int(payload.get("soundFileFrames"))
    indices = [
        max(0, int(v))
        for v in _parse_numeric_list(payload.get("activeGrainIndices"), MAX_TELEMETRY_GRAINS)
    ]
    provided = [
        clamp01(v)
        for v in _parse_numeric_list(payload.get("activeGrainNormPositions"), MAX_TELEMETRY_GRAINS)
    ]
    if provided:
        positions = provided
    elif frames is not None and frames > 1:
        positions = [clamp01(i / frames) for i in indices]
    else:
        positions = [clamp01(float(i)) for i in indices]

    if received_at_ms is None:
        received_at_ms = int(time.time() * 1000)

    return ScanTelemetry(
        source=source,
        received_at_ms=received_at_ms,
        playhead_norm=playhead,
        scan_head_norm=scan_head,
        scan_range_norm=scan_range,
        sound_file_frames=frames,
        active_grain_count=len(indices),
        active_grain_indices=indices,
        active_grain_norm_positions=positions,
    )


def scan_args_to_payload(args: Sequence) -> Optional[dict]:
    """Convert positional OSC scan arguments into a keyed payload.

    The fourth argument (sound file length in frames) is kept only when
    it is greater than 1; remaining arguments are grain indices.
    """
    if not isinstance(args, (list, tuple)) or len(args) < 3:
        return None

    payload = {
        "playheadNorm": args[0],
        "scanHeadNorm": args[1],
        "scanRangeNorm": args[2],
    }
    if len(args) >= 4:
        frames = parse_finite_number(args[3])
        if frames is not None and frames > 1:
            payload["soundFileFrames"] = int(frames)
    payload["activeGrainIndices"] = list(args[4:])
    return payload
