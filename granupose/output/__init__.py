"""Output client registry."""

from .base import (
    CONNECTED,
    CONNECTING,
    DISABLED,
    DISCONNECTED,
    STATUSES,
    BaseOutputClient,
    normalize_osc_address,
    normalize_osc_args,
)

OUTPUT_BACKENDS = {}


def _register_lazy():
    """Register backends with lazy imports so unused transports are never loaded."""
    global OUTPUT_BACKENDS
    if OUTPUT_BACKENDS:
        return OUTPUT_BACKENDS

    OUTPUT_BACKENDS["osc"] = "granupose.output.native.NativeOscOutputClient"
    OUTPUT_BACKENDS["relay"] = "granupose.output.relay.RelayOutputClient"
    OUTPUT_BACKENDS["midi"] = "granupose.output.midi.MidiOutputClient"
    return OUTPUT_BACKENDS


def _resolve(name: str):
    _register_lazy()

    if name not in OUTPUT_BACKENDS:
        available = ", ".join(sorted(OUTPUT_BACKENDS.keys()))
        raise ValueError(f"Unknown output backend '{name}'. Available: {available}")

    module_path, class_name = OUTPUT_BACKENDS[name].rsplit(".", 1)

    import importlib
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def get_output_client(name: str, **kwargs) -> BaseOutputClient:
    """Get an output client by backend name.

    Args:
        name: Backend name (osc, relay, midi)
        **kwargs: Passed to the client constructor

    Returns:
        Instantiated output client

    Raises:
        ValueError: If the backend name is not recognized
    """
    return _resolve(name)(**kwargs)


def create_output_client(config: dict) -> BaseOutputClient:
    """Build the client selected by ``config["output"]["protocol"]``.

    The real transport for the backend is created here; a backend whose
    transport cannot be used starts ``disabled``.
    """
    return _resolve(config["output"]["protocol"]).from_config(config)


def list_backends():
    """List available backend names."""
    _register_lazy()
    return sorted(OUTPUT_BACKENDS.keys())


__all__ = [
    "get_output_client",
    "create_output_client",
    "list_backends",
    "BaseOutputClient",
    "normalize_osc_address",
    "normalize_osc_args",
    "DISABLED",
    "CONNECTING",
    "CONNECTED",
    "DISCONNECTED",
    "STATUSES",
]
