"""EC2 parameter registry.

The registry document is the catalogue of the 15 output parameters the
granular engine exposes. It is treated as untrusted input: shape and
completeness are validated once at load, and a failure is fatal.

Document layout::

    {
        "schemaVersion": "1.0.0",
        "sampleRateHz": 48000,
        "params": [
            {"id": "grainRate", "label": "Grain Rate", "group": "timing",
             "unit": "Hz", "defaultValue": 1, "defaultRange": [0.1, 100],
             "absoluteRange": [0.1, 500], "scalingDefault": "log",
             "specialCases": {}},
            ...
        ]
    }

Functions
---------
load_registry
    Load and validate a registry document from disk.
registry_from_document
    Validate an already-parsed registry document.
get_param
    Look up a parameter definition in the bundled registry.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple, Union

from .constants import EC2_PARAM_GROUPS, EC2_PARAM_IDS, EC2_PARAM_UNITS, SCALING_MODES

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PATH = Path(__file__).parent / "data" / "ec2_params.json"


class RegistryError(ValueError):
    """Raised when a parameter registry document is malformed or incomplete."""


@dataclass(frozen=True)
class ParamDefinition:
    """One EC2 output parameter."""
    id: str
    label: str
    group: str
    unit: str
    default_value: float
    default_range: Tuple[float, float]
    absolute_range: Tuple[float, float]
    scaling_default: str = "linear"
    special_cases: dict = field(default_factory=dict)


def _parse_pair(raw, key: str, param_id: str) -> Tuple[float, float]:
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise RegistryError(f"Parameter '{param_id}': '{key}' must be a pair of numbers")
    values = []
    for item in raw:
        if isinstance(item, bool) or not isinstance(item, (int, float)) or not math.isfinite(item):
            raise RegistryError(f"Parameter '{param_id}': '{key}' must be a pair of numbers")
        values.append(float(item))
    return values[0], values[1]


def _parse_param(raw) -> ParamDefinition:
    if not isinstance(raw, dict):
        raise RegistryError("Each registry entry must be a dict")

    param_id = raw.get("id")
    if not isinstance(param_id, str):
        raise RegistryError(f"Registry entry has no string 'id': {raw!r}")

    group = raw.get("group")
    if group not in EC2_PARAM_GROUPS:
        raise RegistryError(f"Parameter '{param_id}': unknown group {group!r}")
    unit = raw.get("unit")
    if unit not in EC2_PARAM_UNITS:
        raise RegistryError(f"Parameter '{param_id}': unknown unit {unit!r}")
    scaling = raw.get("scalingDefault", "linear")
    if scaling not in SCALING_MODES:
        raise RegistryError(f"Parameter '{param_id}': unknown scaling {scaling!r}")

    default_value = raw.get("defaultValue")
    if isinstance(default_value, bool) or not isinstance(default_value, (int, float)):
        raise RegistryError(f"Parameter '{param_id}': 'defaultValue' must be a number")

    special_cases = raw.get("specialCases") or {}
    if not isinstance(special_cases, dict):
        raise RegistryError(f"Parameter '{param_id}': 'specialCases' must be a dict")

    return ParamDefinition(
        id=param_id,
        label=str(raw.get("label", param_id)),
        group=group,
        unit=unit,
        default_value=float(default_value),
        default_range=_parse_pair(raw.get("defaultRange"), "defaultRange", param_id),
        absolute_range=_parse_pair(raw.get("absoluteRange"), "absoluteRange", param_id),
        scaling_default=scaling,
        special_cases=dict(special_cases),
    )


class ParamRegistry:
    """Validated, read-only catalogue of EC2 parameters.

    Build one with :func:`registry_from_document` or :func:`load_registry`;
    the constructor assumes its inputs are already validated.
    """

    def __init__(self, params: List[ParamDefinition], schema_version: str = "",
                 sample_rate_hz: float = 0.0):
        self.schema_version = schema_version
        self.sample_rate_hz = sample_rate_hz
        self._params = tuple(params)
        self._by_id: Dict[str, ParamDefinition] = {p.id: p for p in self._params}
        self._index: Dict[str, int] = {p.id: i for i, p in enumerate(self._params)}

    @property
    def params(self) -> Tuple[ParamDefinition, ...]:
        return self._params

    def __len__(self) -> int:
        return len(self._params)

    def __iter__(self):
        return iter(self._params)

    def __contains__(self, param_id) -> bool:
        return param_id in self._by_id

    def get(self, param_id: str) -> ParamDefinition:
        """Return the definition for *param_id*.

        Raises
        ------
        KeyError
            If the id is not part of the registry.
        """
        try:
            return self._by_id[param_id]
        except KeyError:
            raise KeyError(f"EC2 parameter not found: {param_id}") from None

    def index_of(self, param_id: str) -> int:
        try:
            return self._index[param_id]
        except KeyError:
            raise KeyError(f"EC2 parameter index not found: {param_id}") from None

    def by_group(self, group: str) -> List[ParamDefinition]:
        return [p for p in self._params if p.group == group]


def registry_from_document(document: dict) -> ParamRegistry:
    """Validate a parsed registry document and build a :class:`ParamRegistry`.

    Parameters
    ----------
    document : dict
        Parsed registry JSON with ``schemaVersion``, ``sampleRateHz``
        and ``params`` keys.

    Returns
    -------
    ParamRegistry

    Raises
    ------
    RegistryError
        If the document is not a dict, entries are malformed, or the
        params are not exactly the 15 canonical ids (count mismatch,
        unknown id, duplicate id, or missing id).
    """
    if not isinstance(document, dict):
        raise RegistryError("Registry document must be a dict")

    raw_params = document.get("params")
    if not isinstance(raw_params, list):
        raise RegistryError("Registry document is missing a 'params' list")

    if len(raw_params) != len(EC2_PARAM_IDS):
        raise RegistryError(
            f"EC2 parameter registry mismatch: expected {len(EC2_PARAM_IDS)}, "
            f"got {len(raw_params)}."
        )

    params = [_parse_param(raw) for raw in raw_params]

    known = set(EC2_PARAM_IDS)
    seen = set()
    for param in params:
        if param.id not in known:
            raise RegistryError(f"EC2 parameter registry contains unknown id: {param.id}")
        if param.id in seen:
            raise RegistryError(f"EC2 parameter registry contains duplicate id: {param.id}")
        seen.add(param.id)

    for param_id in EC2_PARAM_IDS:
        if param_id not in seen:
            raise RegistryError(f"EC2 parameter registry missing id: {param_id}")

    sample_rate = document.get("sampleRateHz", 0)
    if isinstance(sample_rate, bool) or not isinstance(sample_rate, (int, float)):
        raise RegistryError("'sampleRateHz' must be a number")

    return ParamRegistry(
        params,
        schema_version=str(document.get("schemaVersion", "")),
        sample_rate_hz=float(sample_rate),
    )


def load_registry(path: Union[str, Path] = DEFAULT_REGISTRY_PATH) -> ParamRegistry:
    """Load and validate a registry JSON file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    RegistryError
        If the document fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Registry file not found: {path}")

    with open(path, encoding="utf-8") as f:
        document = json.load(f)

    registry = registry_from_document(document)
    logger.info(f"Loaded {len(registry)} EC2 parameters from {path}")
    return registry


# Bundled registry, validated at import so a broken document fails fast.
EC2_PARAM_REGISTRY = load_registry(DEFAULT_REGISTRY_PATH)
EC2_PARAMS = EC2_PARAM_REGISTRY.params


def list_param_ids() -> Tuple[str, ...]:
    """Return the canonical parameter ids in registry order."""
    return EC2_PARAM_IDS


def get_param(param_id: str) -> ParamDefinition:
    """Look up a parameter in the bundled registry (``KeyError`` if unknown)."""
    return EC2_PARAM_REGISTRY.get(param_id)


def get_param_index(param_id: str) -> int:
    return EC2_PARAM_REGISTRY.index_of(param_id)


def get_params_by_group(group: str) -> List[ParamDefinition]:
    return EC2_PARAM_REGISTRY.by_group(group)


def is_param_id(value) -> bool:
    return isinstance(value, str) and value in EC2_PARAM_IDS
