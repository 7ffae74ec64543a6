"""Output channel schema and mapping documents.

Output channels are numbered ``1..N`` (default 16, max 32) and exposed
at ``prefix/NN``; values are always in [0, 1].

A mapping document stores a mapping set on disk::

    {
        "granupose_version": "0.3.0",
        "addressPrefix": "",
        "mappings": [ {mapping dict}, ... ]
    }

Functions
---------
create_output_channels
    Build the channel table for a channel count.
save_mappings
    Save a mapping set as JSON.
load_mappings
    Load and validate a mapping document.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Tuple, Union

import numpy as np

from .constants import (
    DEFAULT_OUTPUT_CHANNEL_COUNT,
    MAX_OUTPUT_CHANNEL_COUNT,
    OSC_GESTURE_TRIGGER_PREFIX,
    OSC_OUTPUT_PREFIX,
    OUTPUT_VALUE_MAX,
    OUTPUT_VALUE_MIN,
)
from .mapping import PoseToParamMapping, mapping_from_dict, mapping_to_dict, normalize_address_prefix


@dataclass(frozen=True)
class OutputChannel:
    id: str
    channel: int
    label: str
    address: str
    value_min: float = OUTPUT_VALUE_MIN
    value_max: float = OUTPUT_VALUE_MAX


def normalize_channel_count(channel_count) -> int:
    """Truncate and clamp a channel count to ``1..MAX_OUTPUT_CHANNEL_COUNT``."""
    return max(1, min(MAX_OUTPUT_CHANNEL_COUNT, int(channel_count)))


def is_output_channel_number(channel, channel_count: int = DEFAULT_OUTPUT_CHANNEL_COUNT) -> bool:
    if isinstance(channel, bool) or not isinstance(channel, (int, np.integer)):
        return False
    return bool(1 <= channel <= normalize_channel_count(channel_count))


def format_output_channel_id(channel: int) -> str:
    return f"out-{channel:02d}"


def format_output_channel_address(channel: int, prefix: str = OSC_OUTPUT_PREFIX) -> str:
    return f"{prefix}/{channel:02d}"


def create_output_channels(channel_count: int = DEFAULT_OUTPUT_CHANNEL_COUNT,
                           prefix: str = OSC_OUTPUT_PREFIX) -> List[OutputChannel]:
    count = normalize_channel_count(channel_count)
    return [
        OutputChannel(
            id=format_output_channel_id(ch),
            channel=ch,
            label=f"Output {ch:02d}",
            address=format_output_channel_address(ch, prefix),
        )
        for ch in range(1, count + 1)
    ]


def _sanitize_gesture_name(name: str) -> str:
    normalized = name.strip().lower()
    normalized = re.sub(r"[^a-z0-9_-]+", "-", normalized)
    normalized = re.sub(r"-+", "-", normalized)
    return normalized.strip("-")


def format_gesture_trigger_address(gesture_name: str,
                                   prefix: str = OSC_GESTURE_TRIGGER_PREFIX) -> str:
    return f"{prefix}/{_sanitize_gesture_name(gesture_name) or 'unknown'}"


# ── Mapping documents ────────────────────────────────────────────────────


def _convert_numpy(obj: Any) -> Any:
    """Recursively convert numpy types to Python types for JSON serialization."""
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, dict):
        return {k: _convert_numpy(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_convert_numpy(v) for v in obj]
    if isinstance(obj, np.bool_):
        return bool(obj)
    return obj


def create_mapping_document(mappings: List[PoseToParamMapping], address_prefix: str = "") -> dict:
    from . import __version__
    return {
        "granupose_version": __version__,
        "addressPrefix": normalize_address_prefix(address_prefix),
        "mappings": [mapping_to_dict(m) for m in mappings],
    }


def save_mappings(mappings: List[PoseToParamMapping], path: Union[str, Path],
                  address_prefix: str = "", indent: int = 2) -> str:
    """Save a mapping set to a JSON document.

    Parent directories are created if needed. Returns the path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    document = _convert_numpy(create_mapping_document(mappings, address_prefix))
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=indent, ensure_ascii=False)
    return str(path)


def load_mappings(path: Union[str, Path]) -> Tuple[List[PoseToParamMapping], str]:
    """Load a mapping document.

    Returns
    -------
    mappings : list of PoseToParamMapping
    address_prefix : str

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the document is not a dict, has no ``mappings`` list, an entry
        is invalid, or two entries share an id.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError("JSON root must be a dict")
    if not isinstance(data.get("mappings"), list):
        raise ValueError("Missing 'mappings' list in JSON")

    mappings = [mapping_from_dict(raw) for raw in data["mappings"]]
    ids = [m.id for m in mappings]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValueError(f"Duplicate mapping ids: {', '.join(duplicates)}")

    prefix = data.get("addressPrefix", "")
    return mappings, normalize_address_prefix(prefix if isinstance(prefix, str) else "")
