"""Pose signal extraction and calibration.

A *signal* is a single unit-interval observation read from one detected
body per frame. Extraction returns ``None`` when a required landmark is
missing; the caller then skips that signal for the frame.

Vertical axes are read as ``1 - y`` (image y grows downward) so that
raising a limb increases the signal.
"""

import math
from typing import Optional, Sequence

from .constants import (
    MP_NAME_TO_INDEX,
    POINT_SIGNAL_SOURCES,
    POSE_SIGNAL_IDS,
    SHOULDER_SPAN_GAIN,
    SIGNAL_CALIBRATION,
)

_MIN_SPAN = 1e-6


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def _coord(point, axis: str) -> Optional[float]:
    """Read one coordinate from a landmark-like object.

    Accepts objects with ``x``/``y`` attributes (MediaPipe
    ``NormalizedLandmark``), mappings with ``"x"``/``"y"`` keys, and
    sequences / numpy rows laid out as ``[x, y, ...]``.
    """
    if point is None:
        return None
    if isinstance(point, dict):
        raw = point.get(axis)
    elif hasattr(point, axis):
        raw = getattr(point, axis)
    else:
        try:
            raw = point[0 if axis == "x" else 1]
        except (IndexError, KeyError, TypeError):
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def get_point(landmarks: Sequence, index: int):
    """Return the landmark at *index*, or ``None`` if absent."""
    if landmarks is None or index < 0:
        return None
    try:
        return landmarks[index]
    except (IndexError, KeyError, TypeError):
        return None


def _point_signal(landmarks: Sequence, index: int, axis: str) -> Optional[float]:
    value = _coord(get_point(landmarks, index), axis)
    if value is None:
        return None
    if axis == "x":
        return clamp01(value)
    return clamp01(1.0 - value)


def _shoulder_span_signal(landmarks: Sequence) -> Optional[float]:
    left = get_point(landmarks, MP_NAME_TO_INDEX["LEFT_SHOULDER"])
    right = get_point(landmarks, MP_NAME_TO_INDEX["RIGHT_SHOULDER"])
    lx, ly = _coord(left, "x"), _coord(left, "y")
    rx, ry = _coord(right, "x"), _coord(right, "y")
    if None in (lx, ly, rx, ry):
        return None
    distance = math.hypot(lx - rx, ly - ry)
    return clamp01(distance * SHOULDER_SPAN_GAIN)


def extract_signal(landmarks: Sequence, signal_id: str) -> Optional[float]:
    """Read a raw unit-interval signal from one body's landmarks.

    Parameters
    ----------
    landmarks : sequence
        Landmarks of a single body in MediaPipe Pose index order.
    signal_id : str
        One of ``POSE_SIGNAL_IDS``.

    Returns
    -------
    float or None
        Observation in [0, 1], or ``None`` if a required landmark is
        missing or the signal id is unknown.
    """
    if signal_id == "shoulderSpan":
        return _shoulder_span_signal(landmarks)
    source = POINT_SIGNAL_SOURCES.get(signal_id)
    if source is None:
        return None
    name, axis = source
    return _point_signal(landmarks, MP_NAME_TO_INDEX[name], axis)


def calibrate_signal(signal_id: str, raw: float) -> float:
    """Rescale a raw observation through its calibration window.

    ``normalized = clamp01((raw - min) / span)`` then the response
    exponent is applied: below 1 favours the low end of the window,
    above 1 the high end.
    """
    observation_min, observation_max, exponent = SIGNAL_CALIBRATION[signal_id]
    span = max(_MIN_SPAN, observation_max - observation_min)
    normalized = clamp01((raw - observation_min) / span)
    return clamp01(normalized ** exponent)


def is_pose_signal_id(value) -> bool:
    return isinstance(value, str) and value in POSE_SIGNAL_IDS
