"""granupose -- Pose-driven control of the EC2 granular synthesizer.

Quick start::

    from granupose import create_default_mappings, evaluate_mappings
    mappings = create_default_mappings()
    state = {}
    outputs = evaluate_mappings(pose_result, mappings, state)
    for out in outputs:
        print(out.address, out.value)

Sending to the engine::

    import asyncio
    from granupose import DEFAULT_CONFIG, MappingSession, create_output_client

    async def run(frames):
        client = create_output_client(DEFAULT_CONFIG)
        await client.connect()
        session = MappingSession(client=client)
        for frame in frames:
            session.process_frame(frame)
        client.close()

Mapping documents::

    from granupose import save_mappings, load_mappings
    save_mappings(mappings, "mappings.json", address_prefix="/ec2")
    mappings, prefix = load_mappings("mappings.json")

Scan telemetry::

    from granupose import parse_telemetry
    scan = parse_telemetry({"playheadNorm": 0.5, "scanHeadNorm": 0.2, "scanRangeNorm": 0.1})
"""

__version__ = "0.3.0"

from .params import (
    RegistryError,
    ParamDefinition,
    ParamRegistry,
    EC2_PARAM_REGISTRY,
    EC2_PARAMS,
    load_registry,
    registry_from_document,
    list_param_ids,
    get_param,
    get_param_index,
    get_params_by_group,
    is_param_id,
)
from .signals import extract_signal, calibrate_signal, clamp01
from .transforms import (
    TransformChain,
    apply_curve,
    apply_deadzone,
    apply_smoothing,
    apply_transform_chain,
    map_unit_to_range,
    normalize_transform_chain,
)
from .pose import landmarks_from_frame, coco_to_mediapipe
from .mapping import (
    PoseToParamMapping,
    MappingOutput,
    create_default_mappings,
    evaluate_mappings,
    resolve_address,
    mapping_from_dict,
    mapping_to_dict,
)
from .schema import (
    OutputChannel,
    create_output_channels,
    format_gesture_trigger_address,
    save_mappings,
    load_mappings,
)
from .telemetry import ScanTelemetry, parse_telemetry
from .profiles import EC2_OSC_PROFILES, get_profile_by_id
from .config import DEFAULT_CONFIG, load_config, save_config, config_from_env
from .output import create_output_client, get_output_client, list_backends
from .session import MappingSession, replay_frames

__all__ = [
    # Registry
    "RegistryError",
    "ParamDefinition",
    "ParamRegistry",
    "EC2_PARAM_REGISTRY",
    "EC2_PARAMS",
    "load_registry",
    "registry_from_document",
    "list_param_ids",
    "get_param",
    "get_param_index",
    "get_params_by_group",
    "is_param_id",
    # Signals and transforms
    "extract_signal",
    "calibrate_signal",
    "clamp01",
    "TransformChain",
    "apply_curve",
    "apply_deadzone",
    "apply_smoothing",
    "apply_transform_chain",
    "map_unit_to_range",
    "normalize_transform_chain",
    "landmarks_from_frame",
    "coco_to_mediapipe",
    # Mapping
    "PoseToParamMapping",
    "MappingOutput",
    "create_default_mappings",
    "evaluate_mappings",
    "resolve_address",
    "mapping_from_dict",
    "mapping_to_dict",
    # Schema
    "OutputChannel",
    "create_output_channels",
    "format_gesture_trigger_address",
    "save_mappings",
    "load_mappings",
    # Telemetry and profiles
    "ScanTelemetry",
    "parse_telemetry",
    "EC2_OSC_PROFILES",
    "get_profile_by_id",
    # Config
    "DEFAULT_CONFIG",
    "load_config",
    "save_config",
    "config_from_env",
    # Output
    "create_output_client",
    "get_output_client",
    "list_backends",
    "MappingSession",
    "replay_frames",
]
