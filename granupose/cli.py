"""Command-line interface for granupose.

Provides subcommands for inspecting and driving the pose-to-EC2 mapping:

    granupose params
    granupose channels --count 8
    granupose mappings --output mappings.json
    granupose midi-devices
    granupose replay frames.json --protocol osc --mappings mappings.json
"""

import argparse
import asyncio
import logging
import sys
from importlib.metadata import version as pkg_version, PackageNotFoundError

logger = logging.getLogger(__name__)


def _get_version() -> str:
    """Return package version without importing the full granupose package."""
    try:
        return pkg_version("granupose")
    except PackageNotFoundError:
        # Fallback for editable/local runs where metadata may be unavailable.
        return "0.0.0+local"


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_runtime_config(args) -> dict:
    from .config import DEFAULT_CONFIG, config_from_env, load_config

    base = load_config(args.config) if getattr(args, "config", None) else DEFAULT_CONFIG
    return config_from_env(base)


def cmd_params(args):
    """List the EC2 parameter registry."""
    from .params import EC2_PARAMS

    for p in EC2_PARAMS:
        lo, hi = p.default_range
        print(f"{p.id:<16} {p.group:<20} {p.unit:<10} {p.scaling_default:<6} "
              f"default={p.default_value:g} range=[{lo:g}, {hi:g}]")


def cmd_channels(args):
    """List output channels."""
    from .schema import create_output_channels

    cfg = _load_runtime_config(args)
    count = args.count if args.count is not None else cfg["output"]["channel_count"]
    for ch in create_output_channels(count, cfg["output"]["channel_prefix"]):
        print(f"{ch.id}  {ch.address}  [{ch.value_min:g}, {ch.value_max:g}]")


def cmd_mappings(args):
    """Print or save the default mapping set."""
    from .mapping import create_default_mappings
    from .schema import save_mappings

    mappings = create_default_mappings()
    if args.output:
        path = save_mappings(mappings, args.output, address_prefix=args.prefix or "")
        print(f"Saved {len(mappings)} mappings to {path}")
        return

    for m in mappings:
        print(f"{m.id:<6} {m.pose_signal_id:<14} -> {m.param_id:<16} "
              f"[{m.output_min:g}, {m.output_max:g}]")


def cmd_midi_devices(args):
    """List MIDI output ports."""
    from .output.midi import MidoTransport

    if not MidoTransport.probe():
        raise ImportError("MIDI output requires a mido backend: pip install granupose[midi]")
    names = MidoTransport().list_outputs()
    if not names:
        print("No MIDI output ports found")
    for name in names:
        print(name)


async def _replay(args, cfg):
    from .output import create_output_client
    from .schema import load_mappings
    from .session import MappingSession, load_pose_frames, replay_frames

    frames = load_pose_frames(args.frames)
    mappings, prefix = (None, cfg["mapping"]["address_prefix"])
    if args.mappings:
        mappings, prefix = load_mappings(args.mappings)

    client = create_output_client(cfg)
    client.subscribe_status(lambda status: logger.info(f"Output status: {status}"))
    await client.connect()

    session = MappingSession(mappings=mappings, client=client, address_prefix=prefix)
    try:
        count = await replay_frames(frames, session, fps=args.fps or cfg["replay"]["fps"])
        await client.drain()
    finally:
        client.close()
    return count


def cmd_replay(args):
    """Replay recorded pose frames through the mapping to an output."""
    cfg = _load_runtime_config(args)
    if args.protocol:
        cfg["output"]["protocol"] = args.protocol
    count = asyncio.run(_replay(args, cfg))
    print(f"Replayed {count} frames")


def main():
    parser = argparse.ArgumentParser(
        prog="granupose",
        description="Pose-driven control of the EC2 granular synthesizer",
    )
    parser.add_argument("--version", action="version", version=f"granupose {_get_version()}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # params
    p_params = sub.add_parser("params", help="List EC2 parameters")
    p_params.set_defaults(func=cmd_params)

    # channels
    p_channels = sub.add_parser("channels", help="List output channels")
    p_channels.add_argument("-n", "--count", type=int, help="Channel count (default: from config)")
    p_channels.add_argument("--config", help="Config file (JSON/YAML)")
    p_channels.set_defaults(func=cmd_channels)

    # mappings
    p_mappings = sub.add_parser("mappings", help="Show or save the default mappings")
    p_mappings.add_argument("-o", "--output", help="Save mappings to this JSON path")
    p_mappings.add_argument("--prefix", help="OSC address prefix stored with the mappings")
    p_mappings.set_defaults(func=cmd_mappings)

    # midi-devices
    p_midi = sub.add_parser("midi-devices", help="List MIDI output ports")
    p_midi.set_defaults(func=cmd_midi_devices)

    # replay
    p_replay = sub.add_parser("replay", help="Replay recorded pose frames to an output")
    p_replay.add_argument("frames", help="JSON file with recorded pose frames")
    p_replay.add_argument("-p", "--protocol", choices=["osc", "relay", "midi"],
                          help="Output backend (default: from config)")
    p_replay.add_argument("-m", "--mappings", help="Mapping JSON (default: built-in mappings)")
    p_replay.add_argument("--fps", type=float, help="Replay rate (default: 30)")
    p_replay.add_argument("--config", help="Config file (JSON/YAML)")
    p_replay.set_defaults(func=cmd_replay)

    args = parser.parse_args()
    _setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ImportError as e:
        print(f"Missing dependency: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
