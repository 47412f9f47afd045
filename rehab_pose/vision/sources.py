"""Frame sources feeding the posture pipeline.

Every source produces :class:`LandmarkFrame` objects one at a time through
``next_frame()``. The pipeline never needs to know whether a frame came from a
camera or video file + MediaPipe or from the synthetic demo generator.
"""
from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from loguru import logger

try:  # Optional dependencies when running with a real camera
    import cv2  # type: ignore
except Exception:  # pragma: no cover
    cv2 = None  # type: ignore

try:  # Optional when running in CI
    import mediapipe as mp  # type: ignore
except Exception:  # pragma: no cover
    mp = None  # type: ignore

from rehab_pose.core.config import Settings
from rehab_pose.vision.geometry import LANDMARK_COUNT, LandmarkFrame, Point
from rehab_pose.vision.joints import Landmark


def now_ms() -> int:
    return int(time.time() * 1000)


class FrameSource(ABC):
    """Produces landmark frames with strictly increasing timestamps."""

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock
        self._last_ts: Optional[int] = None

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def next_frame(self) -> LandmarkFrame: ...

    def close(self) -> None:
        return None

    def _next_timestamp(self) -> int:
        ts = int(self._clock())
        if self._last_ts is not None and ts <= self._last_ts:
            ts = self._last_ts + 1
        self._last_ts = ts
        return ts


# Demo jitter around the reference stance: (centre, +/- half-width) in degrees.
DEMO_ANGLES: Dict[str, Tuple[float, float]] = {
    "left_elbow": (125.0, 10.0),
    "right_elbow": (125.0, 10.0),
    "left_knee": (165.0, 7.5),
    "right_knee": (165.0, 7.5),
    "left_shoulder": (100.0, 12.5),
    "right_shoulder": (100.0, 12.5),
    "left_hip": (170.0, 5.0),
    "right_hip": (170.0, 5.0),
}

_UPPER_ARM = 0.13
_FOREARM = 0.12
_THIGH = 0.20
_SHIN = 0.20


def _place(vertex: np.ndarray, ref: np.ndarray, angle_deg: float, length: float, sign: float) -> np.ndarray:
    """Point at ``length`` from ``vertex`` so that angle(ref, vertex, result) == angle_deg."""
    d = ref - vertex
    d = d / np.linalg.norm(d)
    t = math.radians(angle_deg) * sign
    rot = np.array([d[0] * math.cos(t) - d[1] * math.sin(t), d[0] * math.sin(t) + d[1] * math.cos(t)])
    return vertex + rot * length


class SyntheticFrameSource(FrameSource):
    """Generates a 2-D stick figure whose joint angles jitter around a target stance."""

    def __init__(
        self,
        seed: Optional[int] = None,
        dropout: float = 0.0,
        target_angles: Optional[Dict[str, Tuple[float, float]]] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__(clock)
        self._rng = np.random.default_rng(seed)
        self.dropout = max(0.0, min(1.0, float(dropout)))
        self.target_angles = dict(DEMO_ANGLES)
        if target_angles:
            self.target_angles.update(target_angles)

    @property
    def name(self) -> str:
        return "synthetic"

    def sample_angles(self) -> Dict[str, float]:
        out: Dict[str, float] = {}
        for joint, (centre, spread) in self.target_angles.items():
            value = centre + (self._rng.random() - 0.5) * 2.0 * spread
            out[joint] = float(min(180.0, max(1.0, value)))
        return out

    def build_points(self, angles: Dict[str, float]) -> List[Optional[Point]]:
        pos: Dict[int, np.ndarray] = {
            Landmark.NOSE: np.array([0.50, 0.15]),
            Landmark.LEFT_SHOULDER: np.array([0.42, 0.30]),
            Landmark.RIGHT_SHOULDER: np.array([0.58, 0.30]),
            Landmark.LEFT_HIP: np.array([0.45, 0.55]),
            Landmark.RIGHT_HIP: np.array([0.55, 0.55]),
        }
        for side, sign in (("left", 1.0), ("right", -1.0)):
            sh = pos[getattr(Landmark, f"{side.upper()}_SHOULDER")]
            hip = pos[getattr(Landmark, f"{side.upper()}_HIP")]
            elbow = _place(sh, hip, angles[f"{side}_shoulder"], _UPPER_ARM, sign)
            wrist = _place(elbow, sh, angles[f"{side}_elbow"], _FOREARM, sign)
            knee = _place(hip, sh, angles[f"{side}_hip"], _THIGH, -sign)
            ankle = _place(knee, hip, angles[f"{side}_knee"], _SHIN, sign)
            pos[getattr(Landmark, f"{side.upper()}_ELBOW")] = elbow
            pos[getattr(Landmark, f"{side.upper()}_WRIST")] = wrist
            pos[getattr(Landmark, f"{side.upper()}_KNEE")] = knee
            pos[getattr(Landmark, f"{side.upper()}_ANKLE")] = ankle

        # Face, hands and feet only need plausible positions near their anchors.
        anchors = {i: Landmark.NOSE for i in range(1, 11)}
        anchors.update({17: Landmark.LEFT_WRIST, 19: Landmark.LEFT_WRIST, 21: Landmark.LEFT_WRIST})
        anchors.update({18: Landmark.RIGHT_WRIST, 20: Landmark.RIGHT_WRIST, 22: Landmark.RIGHT_WRIST})
        anchors.update({29: Landmark.LEFT_ANKLE, 31: Landmark.LEFT_ANKLE})
        anchors.update({30: Landmark.RIGHT_ANKLE, 32: Landmark.RIGHT_ANKLE})
        for idx, anchor in anchors.items():
            pos[idx] = pos[anchor] + self._rng.normal(0.0, 0.01, size=2)

        points: List[Optional[Point]] = []
        for idx in range(LANDMARK_COUNT):
            if self.dropout and self._rng.random() < self.dropout:
                points.append(None)
                continue
            x, y = pos[idx]
            points.append(Point(x=float(x), y=float(y), z=float(self._rng.random() * 0.1), visibility=0.9))
        return points

    def next_frame(self) -> LandmarkFrame:
        points = self.build_points(self.sample_angles())
        return LandmarkFrame(points=tuple(points), timestamp=self._next_timestamp(), source=self.name)


class CameraFrameSource(FrameSource):
    """OpenCV capture + MediaPipe pose, 33 normalized landmarks per frame."""

    def __init__(
        self,
        camera_index: int = 0,
        width: int = 640,
        height: int = 480,
        model_complexity: int = 0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__(clock)
        self._pose = self._open_pose(model_complexity)
        self._cap = self._open_capture(int(camera_index))
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(width))
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(height))

    @property
    def name(self) -> str:
        return "camera"

    def next_frame(self) -> LandmarkFrame:
        ok, frame = self._read()
        ts = self._next_timestamp()
        if not ok:
            logger.warning("{} read failed; emitting empty frame", self.name)
            return LandmarkFrame.empty(ts, source=self.name)
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        results = self._pose.process(rgb)
        if not results or not results.pose_landmarks:
            return LandmarkFrame.empty(ts, source=self.name)
        points = tuple(
            Point(
                x=float(lm.x),
                y=float(lm.y),
                z=float(lm.z),
                visibility=float(getattr(lm, "visibility", 1.0)),
            )
            for lm in results.pose_landmarks.landmark
        )
        return LandmarkFrame(points=points, timestamp=ts, source=self.name)

    def close(self) -> None:
        try:
            if self._cap:
                self._cap.release()
        finally:
            if self._pose and hasattr(self._pose, "close"):
                self._pose.close()

    def _read(self):
        return self._cap.read()

    @staticmethod
    def _open_pose(model_complexity: int):
        if cv2 is None or mp is None:
            raise RuntimeError("OpenCV and MediaPipe are required for the camera source")
        if getattr(mp, "solutions", None) is None:
            raise RuntimeError("installed MediaPipe build has no pose solution API")
        return mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=int(model_complexity),
            enable_segmentation=False,
            min_detection_confidence=0.5,
            min_tracking_confidence=0.5,
        )

    def _open_capture(self, target):
        cap = cv2.VideoCapture(target)
        if not cap or not cap.isOpened():
            self._pose.close()
            raise RuntimeError(f"Capture could not be opened: {target!r}")
        return cap


class VideoFileFrameSource(CameraFrameSource):
    """Plays a recorded video through MediaPipe pose, rewinding to the start at end of file."""

    def __init__(
        self,
        path: str,
        model_complexity: int = 0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        FrameSource.__init__(self, clock)
        self.path = str(path)
        self._pose = self._open_pose(model_complexity)
        self._cap = self._open_capture(self.path)

    @property
    def name(self) -> str:
        return "video"

    def _read(self):
        ok, frame = self._cap.read()
        if not ok:
            logger.debug("End of {}; rewinding", self.path)
            self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ok, frame = self._cap.read()
        return ok, frame


def create_frame_source(settings: Settings) -> FrameSource:
    """Build the configured source, falling back to synthetic frames if capture fails."""
    try:
        if settings.frame_source == "camera":
            return CameraFrameSource(
                camera_index=settings.camera_index,
                width=settings.camera_width,
                height=settings.camera_height,
                model_complexity=settings.model_complexity,
            )
        if settings.frame_source == "video":
            if not settings.video_path:
                raise RuntimeError("VIDEO_PATH is not set")
            return VideoFileFrameSource(settings.video_path, model_complexity=settings.model_complexity)
    except RuntimeError as exc:
        logger.warning("Falling back to synthetic frame source: {}", exc)
    logger.info("Using synthetic frame source (seed={}, dropout={})", settings.synthetic_seed, settings.synthetic_dropout)
    return SyntheticFrameSource(seed=settings.synthetic_seed, dropout=settings.synthetic_dropout)
