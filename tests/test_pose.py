"""Tests for pose frame adapters."""

import types

import numpy as np
import pytest

from conftest import make_landmarks, make_named_frame


def test_none_frame():
    from granupose.pose import landmarks_from_frame

    assert landmarks_from_frame(None) is None


def test_plain_landmark_list_is_one_body(landmarks):
    from granupose.pose import landmarks_from_frame

    assert landmarks_from_frame(landmarks) is landmarks


def test_tasks_style_result_uses_first_body():
    from granupose.pose import landmarks_from_frame

    first, second = make_landmarks(), make_landmarks(NOSE=(0.1, 0.1))
    result = types.SimpleNamespace(pose_landmarks=[first, second])
    assert landmarks_from_frame(result) is first


def test_tasks_style_result_without_bodies():
    from granupose.pose import landmarks_from_frame

    assert landmarks_from_frame(types.SimpleNamespace(pose_landmarks=[])) is None


def test_legacy_solutions_result():
    from granupose.pose import landmarks_from_frame

    points = [types.SimpleNamespace(x=0.5, y=0.5) for _ in range(33)]
    result = types.SimpleNamespace(pose_landmarks=types.SimpleNamespace(landmark=points))
    assert landmarks_from_frame(result) is points


def test_legacy_result_without_detection():
    from granupose.pose import landmarks_from_frame

    assert landmarks_from_frame(types.SimpleNamespace(pose_landmarks=None)) is None


def test_dict_with_list_of_bodies():
    from granupose.pose import landmarks_from_frame

    body = make_landmarks()
    assert landmarks_from_frame({"landmarks": [body]}) is body


def test_dict_with_single_body_list():
    from granupose.pose import landmarks_from_frame

    body = make_landmarks()
    assert landmarks_from_frame({"landmarks": body}) is body


def test_named_dict_frame_is_reordered():
    from granupose.constants import MP_NAME_TO_INDEX
    from granupose.pose import landmarks_from_frame

    frame = make_named_frame(RIGHT_WRIST=(0.3, 0.2))
    lm = landmarks_from_frame(frame)
    assert len(lm) == 33
    assert lm[MP_NAME_TO_INDEX["RIGHT_WRIST"]]["x"] == 0.3


def test_named_dict_ignores_unknown_and_fills_missing():
    from granupose.pose import landmarks_from_named

    lm = landmarks_from_named({"nose": {"x": 0.5, "y": 0.1}, "TAIL": {"x": 0, "y": 0}})
    assert lm[0] == {"x": 0.5, "y": 0.1}
    assert lm[1:] == [None] * 32


def test_empty_named_dict_is_no_body():
    from granupose.pose import landmarks_from_frame

    assert landmarks_from_frame({"frame_idx": 3, "landmarks": {}}) is None
    assert landmarks_from_frame({"frame_idx": 3}) is None


def test_numpy_arrays():
    from granupose.pose import landmarks_from_frame

    single = np.zeros((33, 3))
    batch = np.ones((2, 33, 3))
    assert landmarks_from_frame(single) is single
    assert np.array_equal(landmarks_from_frame(batch), batch[0])
    assert landmarks_from_frame(np.zeros((0, 33, 3))) is None
    assert landmarks_from_frame(np.zeros(5)) is None


def test_coco_to_mediapipe():
    from granupose.constants import MP_NAME_TO_INDEX
    from granupose.pose import coco_to_mediapipe

    coco = np.arange(17 * 3, dtype=float).reshape(17, 3)
    mp = coco_to_mediapipe(coco)
    assert mp.shape == (33, 3)
    # COCO index 10 is RIGHT_WRIST
    assert np.array_equal(mp[MP_NAME_TO_INDEX["RIGHT_WRIST"]], coco[10])
    assert np.isnan(mp[MP_NAME_TO_INDEX["LEFT_PINKY"]]).all()


def test_coco_to_mediapipe_rejects_bad_shape():
    from granupose.pose import coco_to_mediapipe

    with pytest.raises(ValueError, match="Expected COCO keypoints"):
        coco_to_mediapipe(np.zeros((33, 3)))


def test_coco_frame_drives_signals():
    from granupose.pose import coco_to_mediapipe
    from granupose.signals import extract_signal

    coco = np.full((17, 2), 0.5)
    coco[9] = [0.7, 0.25]  # LEFT_WRIST
    mp = coco_to_mediapipe(coco)
    assert extract_signal(mp, "leftWristY") == pytest.approx(0.75)
    assert extract_signal(mp, "leftWristX") == pytest.approx(0.7)
