from __future__ import annotations

import pytest

from rehab_pose.core.errors import ConfigurationError
from rehab_pose.vision.geometry import LandmarkFrame, Point
from rehab_pose.vision.joints import JOINT_TABLE, JointDefinition, Landmark, extract_angles, validate_joint_table
from rehab_pose.vision.sources import SyntheticFrameSource


def _frame_with(points: dict[int, Point], size: int = 33) -> LandmarkFrame:
    return LandmarkFrame(points=tuple(points.get(i) for i in range(size)), timestamp=1)


def test_default_table_covers_elbows_shoulders_hips_knees():
    names = [j.name for j in JOINT_TABLE]
    assert len(names) == 8
    for part in ("elbow", "shoulder", "hip", "knee"):
        assert f"left_{part}" in names and f"right_{part}" in names


def test_totality_on_all_missing_frame():
    angles = extract_angles(LandmarkFrame.empty(0))
    assert list(angles) == [j.name for j in JOINT_TABLE]
    assert all(v is None for v in angles.values())


def test_totality_on_short_frame():
    # Indices beyond the frame length resolve to missing, never an error
    frame = LandmarkFrame.from_landmarks([(0.5, 0.5)] * 5, timestamp=1)
    angles = extract_angles(frame)
    assert len(angles) == len(JOINT_TABLE)
    assert all(v is None for v in angles.values())


def test_single_joint_angle():
    frame = _frame_with({
        Landmark.LEFT_SHOULDER: Point(0.0, 0.0),
        Landmark.LEFT_ELBOW: Point(0.0, 1.0),
        Landmark.LEFT_WRIST: Point(1.0, 1.0),
    })
    angles = extract_angles(frame)
    assert angles["left_elbow"] == pytest.approx(90.0)
    assert angles["right_elbow"] is None


def test_low_visibility_points_count_as_missing():
    frame = _frame_with({
        Landmark.LEFT_SHOULDER: Point(0.0, 0.0, visibility=0.9),
        Landmark.LEFT_ELBOW: Point(0.0, 1.0, visibility=0.1),
        Landmark.LEFT_WRIST: Point(1.0, 1.0, visibility=0.9),
    })
    assert extract_angles(frame, min_visibility=0.3)["left_elbow"] is None
    assert extract_angles(frame, min_visibility=0.0)["left_elbow"] == pytest.approx(90.0)


def test_synthetic_figure_angles_are_recovered():
    src = SyntheticFrameSource(seed=3)
    target = src.sample_angles()
    frame = LandmarkFrame(points=tuple(src.build_points(target)), timestamp=1)
    angles = extract_angles(frame)
    for joint, expected in target.items():
        assert angles[joint] == pytest.approx(expected, abs=1e-6)


def test_joint_definition_rejects_repeated_index():
    with pytest.raises(ConfigurationError):
        JointDefinition("bad", 11, 11, 13)


def test_table_rejects_out_of_range_index():
    with pytest.raises(ConfigurationError):
        validate_joint_table([JointDefinition("bad", 11, 13, 40)])
    with pytest.raises(ConfigurationError):
        validate_joint_table([JointDefinition("bad", -1, 13, 15)])


def test_table_rejects_duplicate_names():
    with pytest.raises(ConfigurationError):
        validate_joint_table([JointDefinition("x", 11, 13, 15), JointDefinition("x", 12, 14, 16)])


def test_custom_table_totality():
    table = validate_joint_table([JointDefinition("neck", 0, 11, 12)], landmark_count=33)
    frame = LandmarkFrame.empty(1)
    assert extract_angles(frame, table) == {"neck": None}
