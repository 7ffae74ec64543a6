"""Pose frame adapters.

The mapping evaluator reads one body's landmarks as a sequence in
MediaPipe Pose index order. Detectors hand frames over in several
shapes; :func:`landmarks_from_frame` normalizes them:

    - ``None``                                   -> no body
    - MediaPipe Tasks ``PoseLandmarkerResult``   -> first of ``pose_landmarks``
    - legacy ``mp.solutions.pose`` results       -> ``pose_landmarks.landmark``
    - objects / dicts with a ``landmarks`` list  -> first body
    - name-keyed dict frames, as recorded::

          {"frame_idx": 0, "landmarks": {"LEFT_WRIST": {"x": .5, "y": .4}}}

    - numpy ``(N, 2+)`` array                    -> one body
    - numpy ``(B, N, 2+)`` array                 -> first body
    - a plain list of landmarks                  -> one body
"""

from typing import Optional, Sequence

import numpy as np

from .constants import COCO_LANDMARK_NAMES, MP_LANDMARK_NAMES, MP_NAME_TO_INDEX


def landmarks_from_named(named: dict) -> list:
    """Convert a ``{NAME: {"x", "y", ...}}`` dict to an index-ordered list.

    Missing landmarks become ``None``; unknown names are ignored.
    """
    out = [None] * len(MP_LANDMARK_NAMES)
    for name, point in named.items():
        idx = MP_NAME_TO_INDEX.get(str(name).upper())
        if idx is not None:
            out[idx] = point
    return out


def coco_to_mediapipe(keypoints) -> np.ndarray:
    """Re-index a COCO-17 keypoint array into MediaPipe order.

    Landmarks MediaPipe has but COCO lacks are filled with NaN, which the
    extractor treats as missing.
    """
    kp = np.asarray(keypoints, dtype=float)
    if kp.ndim != 2 or kp.shape[0] != len(COCO_LANDMARK_NAMES):
        raise ValueError(f"Expected COCO keypoints of shape (17, C), got {kp.shape}")
    out = np.full((len(MP_LANDMARK_NAMES), kp.shape[1]), np.nan)
    for coco_idx, name in enumerate(COCO_LANDMARK_NAMES):
        out[MP_NAME_TO_INDEX[name]] = kp[coco_idx]
    return out


def _is_point(obj) -> bool:
    """True for a single landmark rather than a list of them."""
    if obj is None:
        return True
    if isinstance(obj, dict):
        return "x" in obj
    if hasattr(obj, "x"):
        return True
    if isinstance(obj, (list, tuple, np.ndarray)):
        return len(obj) > 0 and isinstance(obj[0], (int, float, np.number))
    return False


def _first_body(bodies) -> Optional[Sequence]:
    """First body of a list of bodies; a single body is returned as is."""
    if bodies is None:
        return None
    if isinstance(bodies, np.ndarray):
        return _from_array(bodies)
    if len(bodies) == 0:
        return None
    if _is_point(bodies[0]):
        return bodies
    return bodies[0]


def _from_array(arr: np.ndarray) -> Optional[Sequence]:
    if arr.ndim == 3:
        return arr[0] if arr.shape[0] > 0 else None
    if arr.ndim == 2:
        return arr if arr.shape[0] > 0 else None
    return None


def landmarks_from_frame(frame) -> Optional[Sequence]:
    """Return the first detected body's landmarks, or ``None``."""
    if frame is None:
        return None

    if isinstance(frame, np.ndarray):
        return _from_array(frame)

    if isinstance(frame, dict):
        landmarks = frame.get("landmarks")
        if isinstance(landmarks, dict):
            return landmarks_from_named(landmarks) if landmarks else None
        if landmarks is None:
            return None
        return _first_body(landmarks)

    pose_landmarks = getattr(frame, "pose_landmarks", None)
    if pose_landmarks is not None:
        legacy = getattr(pose_landmarks, "landmark", None)
        if legacy is not None:
            return legacy
        return _first_body(pose_landmarks)

    landmarks = getattr(frame, "landmarks", None)
    if landmarks is not None:
        return _first_body(landmarks)

    if isinstance(frame, (list, tuple)):
        return frame if frame else None

    return None
