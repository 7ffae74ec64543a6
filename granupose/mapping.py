"""Pose-to-EC2 mapping evaluation.

A mapping routes one pose signal to one EC2 parameter::

    landmarks -> extract_signal -> calibrate_signal -> + offset
              -> transform chain -> map_unit_to_range -> OSC address

Evaluation is synchronous and does no I/O: it runs once per pose frame
and returns fresh :class:`MappingOutput` records. Mappings are read,
never mutated. The only state touched is the caller-owned smoothing dict.

Several mappings may target the same address. Each mapping carries a
``combiner`` (override, sum, average, min, max, multiply) describing how
a downstream consumer should reconcile them; evaluation itself emits
every output independently, in input order.

Functions
---------
evaluate_mappings
    Evaluate a mapping list against one pose frame.
create_default_mappings
    Build the stock eight-mapping layout.
resolve_address
    OSC address for a parameter, with optional prefix.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .constants import EC2_OSC_ADDRESS_BY_PARAM_ID
from .params import ParamRegistry, EC2_PARAM_REGISTRY, get_param, is_param_id
from .pose import landmarks_from_frame
from .signals import calibrate_signal, clamp, clamp01, extract_signal, is_pose_signal_id
from .transforms import (
    DEFAULT_TRANSFORMS,
    TransformChain,
    apply_transform_chain,
    map_unit_to_range,
    normalize_transform_chain,
)

logger = logging.getLogger(__name__)

COMBINERS = ("override", "sum", "average", "min", "max", "multiply")


@dataclass
class PoseToParamMapping:
    """User-editable route from a pose signal to an EC2 parameter."""
    id: str
    enabled: bool = True
    pose_signal_id: Optional[str] = None
    param_id: Optional[str] = None
    output_min: float = 0.0
    output_max: float = 1.0
    offset: float = 0.0
    transforms: TransformChain = field(default_factory=TransformChain)
    combiner: str = "override"


@dataclass(frozen=True)
class MappingOutput:
    mapping_id: str
    pose_signal_id: str
    param_id: str
    combiner: str
    address: str
    signal_value: float
    value: float


def normalize_combiner(value) -> str:
    return value if value in COMBINERS else "override"


def normalize_address_prefix(prefix: Optional[str]) -> str:
    """Ensure exactly one leading slash and no trailing slash.

    An empty or whitespace-only prefix normalizes to ``""``.
    """
    trimmed = (prefix or "").strip()
    if not trimmed:
        return ""
    if not trimmed.startswith("/"):
        trimmed = "/" + trimmed
    return trimmed.rstrip("/")


def apply_address_prefix(address: str, prefix: Optional[str] = "") -> str:
    if not address.startswith("/"):
        address = "/" + address
    return normalize_address_prefix(prefix) + address


def resolve_address(param_id: str, prefix: Optional[str] = "") -> str:
    """Return the OSC address for *param_id*.

    Examples
    --------
    >>> resolve_address("grainRate", "/prefix")
    '/prefix/GrainRate'
    >>> resolve_address("grainRate", "")
    '/GrainRate'
    """
    return apply_address_prefix(EC2_OSC_ADDRESS_BY_PARAM_ID[param_id], prefix)


def make_default_mapping(mapping_id: str, pose_signal_id: str, param_id: str) -> PoseToParamMapping:
    param = get_param(param_id)
    return PoseToParamMapping(
        id=mapping_id,
        enabled=True,
        pose_signal_id=pose_signal_id,
        param_id=param.id,
        output_min=param.default_range[0],
        output_max=param.default_range[1],
        offset=0.0,
        transforms=TransformChain(
            curve=DEFAULT_TRANSFORMS.curve,
            deadzone=DEFAULT_TRANSFORMS.deadzone,
            smoothing=DEFAULT_TRANSFORMS.smoothing,
            invert=DEFAULT_TRANSFORMS.invert,
        ),
        combiner="override",
    )


DEFAULT_MAPPING_LAYOUT = (
    ("map-1", "rightWristY", "grainRate"),
    ("map-2", "leftWristY", "grainDuration"),
    ("map-3", "rightWristX", "scanSpeed"),
    ("map-4", "leftWristX", "asynchronicity"),
    ("map-5", "noseY", "intermittency"),
    ("map-6", "rightElbowY", "playbackRate"),
    ("map-7", "leftElbowY", "scanBegin"),
    ("map-8", "shoulderSpan", "scanRange"),
)


def create_default_mappings() -> List[PoseToParamMapping]:
    """Eight enabled mappings, one per pose signal, over default ranges."""
    return [make_default_mapping(*entry) for entry in DEFAULT_MAPPING_LAYOUT]


def evaluate_mappings(
    frame,
    mappings: Sequence[PoseToParamMapping],
    smoothing_state: Optional[Dict[str, float]] = None,
    address_prefix: Optional[str] = "",
    registry: ParamRegistry = EC2_PARAM_REGISTRY,
) -> List[MappingOutput]:
    """Evaluate *mappings* against one pose frame.

    Parameters
    ----------
    frame : object or None
        Pose detection result; see :func:`granupose.pose.landmarks_from_frame`.
        ``None`` (no body) yields an empty list.
    mappings : sequence of PoseToParamMapping
        Evaluated in order. Disabled mappings and mappings without a
        signal or parameter are skipped, as are mappings whose signal is
        missing from this frame.
    smoothing_state : dict, optional
        Mapping-id keyed smoothing memory, updated in place.
    address_prefix : str, optional
        Prefix prepended to every output address.
    registry : ParamRegistry, optional
        Parameter catalogue (defaults to the bundled EC2 registry).

    Returns
    -------
    list of MappingOutput
    """
    landmarks = landmarks_from_frame(frame)
    if landmarks is None:
        return []

    outputs = []
    for mapping in mappings:
        if not mapping.enabled:
            continue

        signal_id = mapping.pose_signal_id
        param_id = mapping.param_id
        if not signal_id or not param_id:
            continue

        raw = extract_signal(landmarks, signal_id)
        if raw is None:
            continue

        calibrated = calibrate_signal(signal_id, raw)
        offset_signal = clamp01(calibrated + mapping.offset)
        adjusted = apply_transform_chain(mapping, offset_signal, smoothing_state)

        param = registry.get(param_id)
        abs_lo, abs_hi = param.absolute_range
        bounded_min = clamp(mapping.output_min, abs_lo, abs_hi)
        bounded_max = clamp(mapping.output_max, abs_lo, abs_hi)
        value = map_unit_to_range(adjusted, bounded_min, bounded_max, param.scaling_default)

        outputs.append(MappingOutput(
            mapping_id=mapping.id,
            pose_signal_id=signal_id,
            param_id=param_id,
            combiner=normalize_combiner(mapping.combiner),
            address=resolve_address(param_id, address_prefix),
            signal_value=adjusted,
            value=value,
        ))

    return outputs


# ── Serialization ────────────────────────────────────────────────────────


def mapping_to_dict(mapping: PoseToParamMapping) -> dict:
    transforms = normalize_transform_chain(mapping.transforms)
    return {
        "id": mapping.id,
        "enabled": bool(mapping.enabled),
        "poseSignalId": mapping.pose_signal_id,
        "paramId": mapping.param_id,
        "outputMin": float(mapping.output_min),
        "outputMax": float(mapping.output_max),
        "offset": float(mapping.offset),
        "transforms": {
            "curve": transforms.curve,
            "deadzone": transforms.deadzone,
            "smoothing": transforms.smoothing,
            "invert": transforms.invert,
        },
        "combiner": normalize_combiner(mapping.combiner),
    }


def _finite_or(raw, default: float) -> float:
    if isinstance(raw, bool):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def mapping_from_dict(raw: dict) -> PoseToParamMapping:
    """Build a mapping from an untrusted dict.

    Unknown signal or parameter ids become ``None`` (the mapping is then
    skipped at evaluation), missing ranges default to the parameter's
    default range, and transforms/combiner are normalized.

    Raises
    ------
    ValueError
        If *raw* is not a dict or has no usable ``id``.
    """
    if not isinstance(raw, dict):
        raise ValueError("Mapping entry must be a dict")
    mapping_id = raw.get("id")
    if not isinstance(mapping_id, str) or not mapping_id:
        raise ValueError(f"Mapping entry has no string 'id': {raw!r}")

    signal_id = raw.get("poseSignalId")
    if not is_pose_signal_id(signal_id):
        if signal_id is not None:
            logger.warning(f"Mapping {mapping_id}: unknown pose signal {signal_id!r}, unset")
        signal_id = None

    param_id = raw.get("paramId")
    if not is_param_id(param_id):
        if param_id is not None:
            logger.warning(f"Mapping {mapping_id}: unknown parameter {param_id!r}, unset")
        param_id = None

    default_min, default_max = (0.0, 1.0)
    if param_id is not None:
        default_min, default_max = get_param(param_id).default_range

    enabled = raw.get("enabled", True)
    return PoseToParamMapping(
        id=mapping_id,
        enabled=enabled if isinstance(enabled, bool) else True,
        pose_signal_id=signal_id,
        param_id=param_id,
        output_min=_finite_or(raw.get("outputMin"), default_min),
        output_max=_finite_or(raw.get("outputMax"), default_max),
        offset=_finite_or(raw.get("offset"), 0.0),
        transforms=normalize_transform_chain(raw.get("transforms")),
        combiner=normalize_combiner(raw.get("combiner")),
    )
