"""Joint definitions and per-frame angle extraction."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from rehab_pose.core.errors import ConfigurationError
from rehab_pose.vision.geometry import LANDMARK_COUNT, LandmarkFrame, Point, calculate_angle

AngleMap = Dict[str, Optional[float]]


class Landmark:
    """BlazePose / MediaPipe 33-point landmark numbering (subset used here)."""

    NOSE = 0
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28


@dataclass(frozen=True)
class JointDefinition:
    """Named landmark triple; ``b`` is the vertex whose included angle is measured."""

    name: str
    a: int
    b: int
    c: int

    def __post_init__(self) -> None:
        if len({self.a, self.b, self.c}) != 3:
            raise ConfigurationError(f"joint {self.name!r} repeats a landmark index: {self.indices}")

    @property
    def indices(self) -> Tuple[int, int, int]:
        return self.a, self.b, self.c


JointTable = Tuple[JointDefinition, ...]


def validate_joint_table(
    joints: Iterable[JointDefinition],
    landmark_count: int = LANDMARK_COUNT,
) -> JointTable:
    """Check every joint against the landmark numbering and return the table as a tuple."""
    table = tuple(joints)
    seen: set[str] = set()
    for joint in table:
        if joint.name in seen:
            raise ConfigurationError(f"duplicate joint name {joint.name!r}")
        seen.add(joint.name)
        for idx in joint.indices:
            if not 0 <= idx < landmark_count:
                raise ConfigurationError(
                    f"joint {joint.name!r} references landmark {idx} outside 0..{landmark_count - 1}"
                )
    return table


JOINT_TABLE: JointTable = validate_joint_table(
    (
        JointDefinition("left_elbow", Landmark.LEFT_SHOULDER, Landmark.LEFT_ELBOW, Landmark.LEFT_WRIST),
        JointDefinition("right_elbow", Landmark.RIGHT_SHOULDER, Landmark.RIGHT_ELBOW, Landmark.RIGHT_WRIST),
        JointDefinition("left_shoulder", Landmark.LEFT_ELBOW, Landmark.LEFT_SHOULDER, Landmark.LEFT_HIP),
        JointDefinition("right_shoulder", Landmark.RIGHT_ELBOW, Landmark.RIGHT_SHOULDER, Landmark.RIGHT_HIP),
        JointDefinition("left_hip", Landmark.LEFT_SHOULDER, Landmark.LEFT_HIP, Landmark.LEFT_KNEE),
        JointDefinition("right_hip", Landmark.RIGHT_SHOULDER, Landmark.RIGHT_HIP, Landmark.RIGHT_KNEE),
        JointDefinition("left_knee", Landmark.LEFT_HIP, Landmark.LEFT_KNEE, Landmark.LEFT_ANKLE),
        JointDefinition("right_knee", Landmark.RIGHT_HIP, Landmark.RIGHT_KNEE, Landmark.RIGHT_ANKLE),
    )
)


def _usable(point: Optional[Point], min_visibility: float) -> Optional[Point]:
    if point is None:
        return None
    if point.visibility is not None and point.visibility < min_visibility:
        return None
    return point


def extract_angles(
    frame: LandmarkFrame,
    joint_table: Iterable[JointDefinition] = JOINT_TABLE,
    *,
    min_visibility: float = 0.0,
    use_z: bool = False,
) -> AngleMap:
    """Compute one angle per configured joint.

    Every joint of the table appears exactly once in the result. Missing,
    out-of-range or low-confidence landmarks yield ``None`` for that joint.
    """
    angles: AngleMap = {}
    for joint in joint_table:
        a, b, c = (_usable(frame.point(i), min_visibility) for i in joint.indices)
        angles[joint.name] = calculate_angle(a, b, c, use_z=use_z)
    return angles
