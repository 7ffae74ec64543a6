"""Runtime configuration management.

Supports JSON and YAML config files. Configuration is merged against
``DEFAULT_CONFIG`` so partial overrides work seamlessly, and
:func:`config_from_env` layers the usual environment variables on top.

Functions
---------
load_config
    Load config from a JSON or YAML file.
save_config
    Save config to a JSON or YAML file.
config_from_env
    Apply environment variable overrides to a config.

Attributes
----------
DEFAULT_CONFIG : dict
    Default values for every section.
"""

import copy
import json
import logging
import math
import os
from pathlib import Path
from typing import Mapping, Optional, Union

from .constants import (
    DEFAULT_OUTPUT_CHANNEL_COUNT,
    MAX_OUTPUT_CHANNEL_COUNT,
    OSC_OUTPUT_PREFIX,
    TELEMETRY_SCAN_ADDRESS,
)

logger = logging.getLogger(__name__)

PROTOCOLS = ("osc", "relay", "midi")

DEFAULT_CONFIG = {
    "output": {
        "protocol": "osc",
        "channel_count": DEFAULT_OUTPUT_CHANNEL_COUNT,
        "channel_prefix": OSC_OUTPUT_PREFIX,
    },
    "osc": {
        "target_host": "127.0.0.1",
        "target_port": 16447,
    },
    "relay": {
        "ws_url": "ws://127.0.0.1:8787/ws",
    },
    "midi": {
        "device_id": "",
        "midi_channel": 1,
        "cc_start": 1,
    },
    "telemetry": {
        "enabled": True,
        "listen_host": "127.0.0.1",
        "listen_port": 16448,
        "scan_address": TELEMETRY_SCAN_ADDRESS,
    },
    "mapping": {
        "address_prefix": "",
        "profile": "ec2-v1.3-default",
    },
    "replay": {
        "fps": 30.0,
    },
}


def load_config(path: Union[str, Path]) -> dict:
    """Load config from a JSON or YAML file.

    The loaded configuration is merged against ``DEFAULT_CONFIG``
    so partial overrides work correctly.

    Parameters
    ----------
    path : str or Path
        Path to config file (``.json`` or ``.yaml``/``.yml``).

    Returns
    -------
    dict
        Merged configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If the config file does not exist.
    ImportError
        If YAML is requested but ``pyyaml`` is not installed.
    ValueError
        If the file content is not a dict or names an unknown protocol.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            import yaml
        except ImportError:
            raise ImportError("PyYAML required for YAML configs: pip install pyyaml")
        with open(path) as f:
            cfg = yaml.safe_load(f)
    else:
        with open(path) as f:
            cfg = json.load(f)

    if not isinstance(cfg, dict):
        raise ValueError("Config must be a dict")

    merged = _deep_merge(copy.deepcopy(DEFAULT_CONFIG), cfg)
    validate_config(merged)
    logger.info(f"Loaded config from {path}")
    return merged


def save_config(config: dict, path: Union[str, Path]) -> str:
    """Save config to a JSON or YAML file.

    Returns
    -------
    str
        Path to the saved file.

    Raises
    ------
    ImportError
        If YAML is requested but ``pyyaml`` is not installed.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            import yaml
        except ImportError:
            raise ImportError("PyYAML required for YAML configs: pip install pyyaml")
        with open(path, "w") as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)
    else:
        with open(path, "w") as f:
            json.dump(config, f, indent=2, ensure_ascii=False)

    logger.info(f"Saved config to {path}")
    return str(path)


def validate_config(config: dict) -> None:
    protocol = config.get("output", {}).get("protocol")
    if protocol not in PROTOCOLS:
        raise ValueError(f"Unknown output protocol '{protocol}'. Available: {', '.join(PROTOCOLS)}")


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = base.copy()
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def parse_bounded_int(raw, fallback: int, lower: int, upper: int) -> int:
    """Truncate a numeric value into ``[lower, upper]``; non-numeric -> *fallback*."""
    if raw is None or isinstance(raw, bool):
        return fallback
    try:
        parsed = float(raw)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(parsed):
        return fallback
    return max(lower, min(upper, int(parsed)))


def parse_port(raw, fallback: int) -> int:
    return parse_bounded_int(raw, fallback, 1, 65535)


def config_from_env(config: Optional[dict] = None,
                    environ: Optional[Mapping[str, str]] = None) -> dict:
    """Return a copy of *config* with environment overrides applied.

    Recognized variables: ``OUTPUT_MODE``, ``OUTPUT_CHANNEL_COUNT``,
    ``OSC_CHANNEL_PREFIX``, ``OSC_TARGET_HOST``, ``OSC_TARGET_PORT``,
    ``BRIDGE_WS_URL``, ``MIDI_DEVICE_ID``, ``MIDI_CHANNEL``,
    ``MIDI_CC_START``, ``TELEMETRY_LISTEN_HOST``, ``TELEMETRY_LISTEN_PORT``,
    ``TELEMETRY_SCAN_ADDRESS``. Numeric values are truncated and clamped;
    unparseable numbers keep the current value.
    """
    env = os.environ if environ is None else environ
    cfg = copy.deepcopy(config if config is not None else DEFAULT_CONFIG)
    out, osc, relay = cfg["output"], cfg["osc"], cfg["relay"]
    midi, telemetry = cfg["midi"], cfg["telemetry"]

    mode = env.get("OUTPUT_MODE", "").strip().lower()
    if mode == "bridge":
        mode = "relay"
    if mode in PROTOCOLS:
        out["protocol"] = mode

    out["channel_count"] = parse_bounded_int(
        env.get("OUTPUT_CHANNEL_COUNT"), out["channel_count"], 1, MAX_OUTPUT_CHANNEL_COUNT)
    if env.get("OSC_CHANNEL_PREFIX"):
        out["channel_prefix"] = env["OSC_CHANNEL_PREFIX"].rstrip("/") or OSC_OUTPUT_PREFIX

    osc["target_host"] = env.get("OSC_TARGET_HOST") or osc["target_host"]
    osc["target_port"] = parse_port(env.get("OSC_TARGET_PORT"), osc["target_port"])

    relay["ws_url"] = env.get("BRIDGE_WS_URL") or relay["ws_url"]

    midi["device_id"] = env.get("MIDI_DEVICE_ID", midi["device_id"])
    midi["midi_channel"] = parse_bounded_int(env.get("MIDI_CHANNEL"), midi["midi_channel"], 1, 16)
    midi["cc_start"] = parse_bounded_int(env.get("MIDI_CC_START"), midi["cc_start"], 0, 127)

    telemetry["listen_host"] = env.get("TELEMETRY_LISTEN_HOST") or telemetry["listen_host"]
    telemetry["listen_port"] = parse_port(env.get("TELEMETRY_LISTEN_PORT"), telemetry["listen_port"])
    telemetry["scan_address"] = env.get("TELEMETRY_SCAN_ADDRESS") or telemetry["scan_address"]

    return cfg
