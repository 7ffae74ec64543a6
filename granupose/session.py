"""Mapping sessions and frame replay.

A :class:`MappingSession` owns everything one mapping set needs between
frames: the mappings, their smoothing state, the address prefix and the
output client. Each session keeps its own smoothing dict; sessions must
not share one.

Typical use inside a running event loop::

    session = MappingSession(client=create_output_client(config))
    await session.client.connect()
    outputs = session.process_frame(result)
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .mapping import (
    MappingOutput,
    PoseToParamMapping,
    create_default_mappings,
    evaluate_mappings,
    normalize_address_prefix,
)
from .params import EC2_PARAM_REGISTRY, ParamRegistry

logger = logging.getLogger(__name__)


class MappingSession:
    """Evaluate pose frames and forward the results to an output client.

    Parameters
    ----------
    mappings : list of PoseToParamMapping, optional
        Defaults to :func:`create_default_mappings`.
    client : BaseOutputClient, optional
        Where outputs are sent. Without a client, frames are only evaluated.
    address_prefix : str
        OSC address prefix applied to every output.
    registry : ParamRegistry
        Parameter catalogue.
    """

    def __init__(self, mappings: Optional[List[PoseToParamMapping]] = None, client=None,
                 address_prefix: str = "", registry: ParamRegistry = EC2_PARAM_REGISTRY):
        self.mappings = list(mappings) if mappings is not None else create_default_mappings()
        self.client = client
        self.address_prefix = normalize_address_prefix(address_prefix)
        self.registry = registry
        self.smoothing_state: Dict[str, float] = {}
        self.frames_processed = 0

    def reset_smoothing(self) -> None:
        self.smoothing_state.clear()

    def process_frame(self, frame) -> List[MappingOutput]:
        """Evaluate *frame* and send every output.

        OSC-capable clients receive ``address [value]``. Channel-only
        clients (MIDI) receive the unit signal on the channel numbered by
        the mapping's position in :attr:`mappings`.
        """
        outputs = evaluate_mappings(frame, self.mappings, self.smoothing_state,
                                    self.address_prefix, self.registry)
        self.frames_processed += 1
        if self.client is not None:
            self._forward(outputs)
        return outputs

    def _forward(self, outputs: List[MappingOutput]) -> None:
        if self.client.supports_osc:
            for out in outputs:
                self.client.send_osc_message(out.address, [{"type": "f", "value": out.value}])
            return

        positions = {m.id: i for i, m in enumerate(self.mappings)}
        for out in outputs:
            self.client.send_channel(positions[out.mapping_id] + 1, out.signal_value)


def load_pose_frames(path: Union[str, Path]) -> list:
    """Load recorded pose frames from JSON.

    Accepts a list of frames or a document with a ``frames`` list.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If no frame list is found.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("frames")
    if not isinstance(data, list):
        raise ValueError("Expected a list of frames or a dict with a 'frames' list")
    return data


async def replay_frames(frames: Iterable, session: MappingSession, fps: float = 30.0) -> int:
    """Feed *frames* to *session* at a fixed rate.

    Frames are paced against the loop clock, so slow evaluation does not
    accumulate drift. Returns the number of frames processed.
    """
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")
    loop = asyncio.get_running_loop()
    interval = 1.0 / fps
    start = loop.time()
    count = 0
    for count, frame in enumerate(frames, start=1):
        session.process_frame(frame)
        delay = start + count * interval - loop.time()
        if delay > 0:
            await asyncio.sleep(delay)
        else:
            await asyncio.sleep(0)
        if count % 100 == 0:
            logger.info(f"Replayed {count} frames")
    logger.info(f"Replay finished: {count} frames")
    return count
