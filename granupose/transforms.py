"""Per-mapping signal shaping and range scaling.

The transform chain runs in a fixed order on a unit value:

    1. invert        x -> 1 - x
    2. deadzone      collapse bands near 0 and 1, re-expand the rest
    3. curve         linear | easeIn | easeOut | sCurve
    4. smoothing     one-pole exponential filter, keyed by mapping id

Smoothing is the only stateful step. Its state is a plain dict owned by
the caller (one per mapping session) and passed in on every call; it is
not synchronized, so only one thread may evaluate against a given dict.

:func:`map_unit_to_range` then places the shaped unit value into an
absolute parameter range, linearly or logarithmically, honouring
descending ranges.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional

from .signals import clamp, clamp01

CURVES = ("linear", "easeIn", "easeOut", "sCurve")
MAX_DEADZONE = 0.45
MAX_SMOOTHING = 0.98

_MIN_SPAN = 1e-6


@dataclass
class TransformChain:
    curve: str = "linear"
    deadzone: float = 0.0
    smoothing: float = 0.2
    invert: bool = False


DEFAULT_TRANSFORMS = TransformChain()


def _field(value, name: str):
    if value is None:
        return None
    if isinstance(value, dict):
        return value.get(name)
    return getattr(value, name, None)


def _bounded_number(raw, default: float, upper: float) -> float:
    if raw is None or isinstance(raw, bool):
        return default
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return clamp(number, 0.0, upper)


def normalize_transform_chain(value) -> TransformChain:
    """Return a sanitized copy of *value*.

    *value* may be a :class:`TransformChain`, a plain dict (e.g. loaded
    from a mapping file) or ``None``. Unknown curves and non-bool invert
    flags fall back to defaults; deadzone and smoothing are clamped to
    their allowed ranges.
    """
    curve = _field(value, "curve")
    invert = _field(value, "invert")
    return TransformChain(
        curve=curve if curve in CURVES else DEFAULT_TRANSFORMS.curve,
        deadzone=_bounded_number(_field(value, "deadzone"), DEFAULT_TRANSFORMS.deadzone, MAX_DEADZONE),
        smoothing=_bounded_number(_field(value, "smoothing"), DEFAULT_TRANSFORMS.smoothing, MAX_SMOOTHING),
        invert=invert if isinstance(invert, bool) else DEFAULT_TRANSFORMS.invert,
    )


def apply_deadzone(value: float, deadzone: float) -> float:
    """Collapse values within *deadzone* of 0 or 1 and stretch the rest.

    The deadzone is capped at 0.45 so the remaining span never
    degenerates.
    """
    bounded = clamp(deadzone, 0.0, MAX_DEADZONE)
    if bounded <= 0:
        return clamp01(value)
    if value <= bounded:
        return 0.0
    if value >= 1.0 - bounded:
        return 1.0
    span = 1.0 - bounded * 2.0
    if span <= _MIN_SPAN:
        return 1.0 if value > 0.5 else 0.0
    return clamp01((value - bounded) / span)


def apply_curve(value: float, curve: str) -> float:
    x = clamp01(value)
    if curve == "easeIn":
        return x * x
    if curve == "easeOut":
        return 1.0 - (1.0 - x) ** 2
    if curve == "sCurve":
        return x * x * (3.0 - 2.0 * x)
    return x


def apply_smoothing(key: str, value: float, smoothing: float,
                    state: Dict[str, float]) -> float:
    """One-pole exponential smoothing with per-key memory.

    The first value seen for *key* seeds the state unchanged.
    ``smoothing=0`` disables filtering.
    """
    alpha = 1.0 - clamp(smoothing, 0.0, MAX_SMOOTHING)
    previous = state.get(key)
    if previous is None:
        smoothed = value
    else:
        smoothed = previous + (value - previous) * alpha
    state[key] = smoothed
    return clamp01(smoothed)


def apply_transform_chain(mapping, signal_value: float,
                          smoothing_state: Optional[Dict[str, float]] = None) -> float:
    """Run *signal_value* through the mapping's transform chain.

    Parameters
    ----------
    mapping : PoseToParamMapping
        Provides ``id`` (smoothing key) and ``transforms``.
    signal_value : float
        Calibrated, offset unit value.
    smoothing_state : dict, optional
        Mapping-id keyed filter memory. Smoothing is skipped when omitted.

    Returns
    -------
    float
        Shaped value in [0, 1].
    """
    transforms = normalize_transform_chain(mapping.transforms)
    x = clamp01(signal_value)

    if transforms.invert:
        x = 1.0 - x

    x = apply_deadzone(x, transforms.deadzone)
    x = apply_curve(x, transforms.curve)

    if smoothing_state is None:
        return x
    return apply_smoothing(mapping.id, x, transforms.smoothing, smoothing_state)


def map_unit_to_range(unit_value: float, minimum: float, maximum: float,
                      scaling: str = "linear") -> float:
    """Map a unit value into ``[minimum, maximum]``.

    ``unit_value=0`` always returns the literal *minimum* and ``1`` the
    literal *maximum*, even when ``minimum > maximum``. Log scaling is
    used only when both bounds are strictly positive; otherwise the
    mapping silently falls back to linear.
    """
    lower = min(minimum, maximum)
    upper = max(minimum, maximum)
    n = clamp01(unit_value)

    if scaling == "log" and lower > 0 and upper > 0:
        mapped = lower * (upper / lower) ** n
    else:
        mapped = lower + n * (upper - lower)

    if minimum <= maximum:
        return mapped
    return upper - (mapped - lower)
