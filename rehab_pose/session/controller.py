"""PoseSessionController: drives frames through extraction, evaluation and aggregation.

- Pulls one LandmarkFrame at a time from the configured FrameSource
- Runs extract_angles -> evaluate -> SessionAggregator.ingest synchronously
- Keeps the last result plus latency/FPS windows for the debug endpoints
- Optional background loop paced to the configured frame rate
"""
from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, Optional, Tuple

import numpy as np
from loguru import logger

from rehab_pose.core.config import Settings
from rehab_pose.session.aggregator import SessionAggregator
from rehab_pose.vision.evaluator import FrameEvaluation, ToleranceTable, evaluate
from rehab_pose.vision.geometry import LandmarkFrame
from rehab_pose.vision.joints import JOINT_TABLE, AngleMap, JointDefinition, JointTable, extract_angles, validate_joint_table
from rehab_pose.vision.profiles import PostureProfile, builtin_profile, resolve_profile
from rehab_pose.vision.sources import FrameSource, create_frame_source


@dataclass(frozen=True)
class FrameResult:
    frame: LandmarkFrame
    angles: AngleMap
    evaluation: FrameEvaluation
    ingested: bool
    latency_ms: float

    def to_dict(self, include_landmarks: bool = False) -> dict:
        data = {
            "timestamp": self.frame.timestamp,
            "source": self.frame.source,
            "angles": dict(self.angles),
            "evaluation": self.evaluation.to_dict(),
            "ingested": self.ingested,
            "latency_ms": round(self.latency_ms, 3),
        }
        if include_landmarks:
            data["landmarks"] = self.frame.to_list()
        return data


class PoseSessionController:
    def __init__(
        self,
        source: FrameSource,
        profile: Optional[PostureProfile] = None,
        joint_table: Iterable[JointDefinition] = JOINT_TABLE,
        aggregator: Optional[SessionAggregator] = None,
        *,
        min_visibility: float = 0.0,
        use_z: bool = False,
        frame_rate: float = 10.0,
        latency_window: int = 90,
    ) -> None:
        self.source = source
        self.joint_table: JointTable = validate_joint_table(joint_table)
        self.profile = profile or builtin_profile()
        self.aggregator = aggregator or SessionAggregator()
        self.min_visibility = float(min_visibility)
        self.use_z = bool(use_z)
        self.frame_rate = max(0.5, float(frame_rate))
        self._step_lock = threading.Lock()
        self._last: Optional[FrameResult] = None
        self._latencies: Deque[float] = deque(maxlen=max(5, latency_window))
        self._fps_window: Deque[float] = deque(maxlen=60)
        self._last_frame_ts: Optional[float] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PoseSessionController":
        profile = resolve_profile(settings)
        return cls(
            source=create_frame_source(settings),
            profile=profile,
            aggregator=SessionAggregator(
                retain_history=settings.session_retain_history,
                history_limit=settings.session_history_limit,
            ),
            min_visibility=settings.min_visibility,
            use_z=settings.angle_use_z,
            frame_rate=settings.frame_rate,
            latency_window=settings.latency_window,
        )

    # --- Public API -----------------------------------------------------

    @property
    def tolerance_table(self) -> ToleranceTable:
        return self.profile.bands

    @property
    def last_result(self) -> Optional[FrameResult]:
        return self._last

    def set_profile(self, profile: PostureProfile) -> None:
        with self._step_lock:
            self.profile = profile
        logger.info("Tolerance profile set to {} ({} bands)", profile.name, len(profile.bands))

    def step(self) -> FrameResult:
        """Pull the next frame from the source and run it through the pipeline."""
        with self._step_lock:
            frame = self.source.next_frame()
            return self._process(frame)

    def process_frame(self, frame: LandmarkFrame) -> FrameResult:
        """Run an externally captured frame through the pipeline."""
        with self._step_lock:
            return self._process(frame)

    # Lifecycle passthroughs so callers only deal with the controller.
    def start(self) -> bool:
        return self.aggregator.start()

    def pause(self) -> bool:
        return self.aggregator.pause()

    def stop(self) -> bool:
        return self.aggregator.stop()

    def reset(self) -> bool:
        changed = self.aggregator.reset()
        with self._step_lock:
            self._last = None
        return changed

    # --- Frame loop -----------------------------------------------------

    def run(self, stop_event: threading.Event, max_frames: Optional[int] = None) -> int:
        """Process frames until ``stop_event`` is set; returns the number processed.

        A frame that raises is logged and skipped; it still counts towards ``max_frames``.
        """
        dt = 1.0 / self.frame_rate
        attempts = 0
        processed = 0
        while not stop_event.is_set():
            if max_frames is not None and attempts >= max_frames:
                break
            t0 = time.perf_counter()
            attempts += 1
            try:
                self.step()
                processed += 1
            except Exception as exc:
                logger.exception("Frame skipped: {}", exc)
            remain = dt - (time.perf_counter() - t0)
            if remain > 0:
                stop_event.wait(remain)
        return processed

    def start_loop(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="PoseFrameLoop", daemon=True)
        self._thread.start()
        logger.info("Frame loop started source={} rate={}fps", self.source.name, self.frame_rate)

    def stop_loop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None

    @property
    def loop_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def close(self) -> None:
        self.stop_loop()
        self.source.close()

    # --- Metrics --------------------------------------------------------

    def get_fps_avg(self) -> float:
        if not self._fps_window:
            return 0.0
        return sum(self._fps_window) / len(self._fps_window)

    def get_latency_samples_count(self) -> int:
        return len(self._latencies)

    def get_latency_p50_p95_ms(self) -> Tuple[float, float]:
        if not self._latencies:
            return 0.0, 0.0
        data = np.asarray(self._latencies, dtype=float)
        return float(np.percentile(data, 50)), float(np.percentile(data, 95))

    def metrics(self) -> Dict[str, object]:
        p50, p95 = self.get_latency_p50_p95_ms()
        return {
            "latency_ms": {"p50": round(p50, 3), "p95": round(p95, 3)},
            "fps": {"avg": round(self.get_fps_avg(), 2), "target": self.frame_rate},
            "samples": self.get_latency_samples_count(),
            "source": self.source.name,
            "loop_running": self.loop_running,
        }

    # --- Internal helpers -----------------------------------------------

    def _loop(self) -> None:
        processed = self.run(self._stop)
        logger.info("Frame loop stopped after {} frames", processed)

    def _process(self, frame: LandmarkFrame) -> FrameResult:
        start = time.perf_counter()
        angles = extract_angles(frame, self.joint_table, min_visibility=self.min_visibility, use_z=self.use_z)
        evaluation = evaluate(angles, self.profile.bands, timestamp=frame.timestamp)
        ingested = self.aggregator.ingest(evaluation)
        latency_ms = (time.perf_counter() - start) * 1000.0
        self._latencies.append(latency_ms)
        self._update_fps()
        if not ingested:
            logger.debug("Frame {} not ingested (session {})", frame.timestamp, self.aggregator.phase)
        result = FrameResult(frame=frame, angles=angles, evaluation=evaluation, ingested=ingested, latency_ms=latency_ms)
        self._last = result
        return result

    def _update_fps(self) -> None:
        now = time.perf_counter()
        if self._last_frame_ts is not None:
            delta = now - self._last_frame_ts
            if delta > 0:
                self._fps_window.append(1.0 / delta)
        self._last_frame_ts = now
