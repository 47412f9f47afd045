"""Vision package exports."""

from .evaluator import FrameEvaluation, JointVerdict, ToleranceBand, evaluate
from .geometry import LandmarkFrame, Point, calculate_angle
from .joints import JOINT_TABLE, JointDefinition, extract_angles
from .sources import CameraFrameSource, FrameSource, SyntheticFrameSource, VideoFileFrameSource

__all__ = [
    "Point",
    "LandmarkFrame",
    "calculate_angle",
    "JointDefinition",
    "JOINT_TABLE",
    "extract_angles",
    "ToleranceBand",
    "JointVerdict",
    "FrameEvaluation",
    "evaluate",
    "FrameSource",
    "SyntheticFrameSource",
    "CameraFrameSource",
    "VideoFileFrameSource",
]
