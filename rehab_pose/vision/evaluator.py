"""Posture evaluation against a reference tolerance table.

Each frame's angle map is compared joint by joint with a tolerance band.
Joints without a measurable angle are left out of the score entirely, so a
partially occluded body is judged only on what the camera can see.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Dict, Mapping, Optional

from rehab_pose.core.errors import ConfigurationError

GOOD_THRESHOLD = 80.0
WARNING_THRESHOLD = 60.0

STATUS_WAITING = "waiting"
STATUS_GOOD = "good"
STATUS_WARNING = "warning"
STATUS_ERROR = "error"

DIRECTION_OK = "ok"
DIRECTION_TOO_FLEXED = "too_flexed"
DIRECTION_TOO_EXTENDED = "too_extended"

STATUS_MESSAGES = {
    STATUS_WAITING: "Detecting posture...",
    STATUS_GOOD: "Excellent posture!",
    STATUS_WARNING: "Adjust your posture",
    STATUS_ERROR: "Posture needs improvement",
}

JOINT_LABELS = {
    "left_elbow": "Left elbow",
    "right_elbow": "Right elbow",
    "left_shoulder": "Left shoulder",
    "right_shoulder": "Right shoulder",
    "left_hip": "Left hip",
    "right_hip": "Right hip",
    "left_knee": "Left knee",
    "right_knee": "Right knee",
}


@dataclass(frozen=True)
class ToleranceBand:
    min: float
    max: float
    ideal: float

    def __post_init__(self) -> None:
        if self.min > self.max:
            raise ConfigurationError(f"band min {self.min} is greater than max {self.max}")
        if not self.min <= self.ideal <= self.max:
            raise ConfigurationError(f"band ideal {self.ideal} outside [{self.min}, {self.max}]")
        if self.min < 0.0 or self.max > 180.0:
            raise ConfigurationError(f"band [{self.min}, {self.max}] outside 0..180 degrees")

    def contains(self, angle: float) -> bool:
        return self.min <= angle <= self.max


ToleranceTable = Dict[str, ToleranceBand]


@dataclass(frozen=True)
class JointVerdict:
    joint: str
    angle: float
    in_range: bool
    direction: str
    message: str


@dataclass(frozen=True)
class FrameEvaluation:
    verdicts: Dict[str, JointVerdict]
    accuracy: float
    status: str
    message: str
    evaluated_joints: int
    timestamp: Optional[int] = None
    created_at: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["verdicts"] = {name: asdict(v) for name, v in self.verdicts.items()}
        return data


def classify_accuracy(accuracy: float, evaluated_joints: int = 1) -> str:
    """Map a frame accuracy to its status; no evaluable joints means "waiting"."""
    if evaluated_joints <= 0:
        return STATUS_WAITING
    if accuracy >= GOOD_THRESHOLD:
        return STATUS_GOOD
    if accuracy >= WARNING_THRESHOLD:
        return STATUS_WARNING
    return STATUS_ERROR


def judge_joint(joint: str, angle: float, band: ToleranceBand) -> JointVerdict:
    label = JOINT_LABELS.get(joint, joint.replace("_", " ").capitalize())
    target = f"target {band.min:g}-{band.max:g}°"
    if band.contains(angle):
        return JointVerdict(joint, angle, True, DIRECTION_OK, f"{label} angle is good ({angle:.1f}°)")
    if angle < band.min:
        # Smaller included angle: the joint is bent past the band.
        return JointVerdict(
            joint,
            angle,
            False,
            DIRECTION_TOO_FLEXED,
            f"{label}: extend a little more (now {angle:.1f}°, {target})",
        )
    return JointVerdict(
        joint,
        angle,
        False,
        DIRECTION_TOO_EXTENDED,
        f"{label}: bend a little more (now {angle:.1f}°, {target})",
    )


def evaluate(
    angle_map: Mapping[str, Optional[float]],
    tolerance_table: Mapping[str, ToleranceBand],
    *,
    timestamp: Optional[int] = None,
) -> FrameEvaluation:
    """Score one angle map against the reference bands.

    Args:
        angle_map: Joint name to angle in degrees, ``None`` when undefined.
        tolerance_table: Joint name to acceptable band.
        timestamp: Capture time of the source frame, carried through.

    Returns:
        The per-joint verdicts, ``100 * in_range / defined`` accuracy and status.
    """
    verdicts: Dict[str, JointVerdict] = {}
    for joint, angle in angle_map.items():
        band = tolerance_table.get(joint)
        if band is None or angle is None:
            continue
        verdicts[joint] = judge_joint(joint, float(angle), band)

    evaluated = len(verdicts)
    if evaluated:
        in_range = sum(1 for v in verdicts.values() if v.in_range)
        accuracy = 100.0 * in_range / evaluated
    else:
        accuracy = 0.0
    status = classify_accuracy(accuracy, evaluated)
    return FrameEvaluation(
        verdicts=verdicts,
        accuracy=accuracy,
        status=status,
        message=STATUS_MESSAGES[status],
        evaluated_joints=evaluated,
        timestamp=timestamp,
    )
