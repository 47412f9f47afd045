"""Session aggregator: lifecycle state machine plus running accuracy statistics.

States: idle -> active <-> paused -> stopped, and ``reset`` from anywhere back
to idle. Frames are only folded into the aggregate while the session is
active; events that are not valid from the current state are ignored and
reported through the boolean return value.
"""
from __future__ import annotations

import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, Deque, List, Optional

from loguru import logger

from rehab_pose.vision.evaluator import GOOD_THRESHOLD, FrameEvaluation

IDLE = "idle"
ACTIVE = "active"
PAUSED = "paused"
STOPPED = "stopped"

TARGET_SESSION_SEC = 20 * 60


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SessionSnapshot:
    phase: str
    active: bool
    frame_count: int
    running_mean_accuracy: float
    started_at: Optional[datetime]
    ended_at: Optional[datetime]
    duration_sec: int
    duration_active_sec: int
    target_progress: float
    accuracy_goal_met: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat() if self.started_at else None
        data["ended_at"] = self.ended_at.isoformat() if self.ended_at else None
        return data


class SessionAggregator:
    """Owns the session state; the only writer of frame count and mean accuracy."""

    def __init__(
        self,
        retain_history: bool = False,
        history_limit: Optional[int] = None,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self.retain_history = retain_history
        self._history: Deque[FrameEvaluation] = deque(maxlen=history_limit if history_limit else None)
        self._phase = IDLE
        self._frame_count = 0
        self._mean = 0.0
        self._started_at: Optional[datetime] = None
        self._ended_at: Optional[datetime] = None
        self._active_since: Optional[datetime] = None
        self._accum_active = 0.0

    # --- Read accessors -------------------------------------------------

    @property
    def phase(self) -> str:
        return self._phase

    @property
    def active(self) -> bool:
        return self._phase == ACTIVE

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def running_mean_accuracy(self) -> float:
        return self._mean

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def ended_at(self) -> Optional[datetime]:
        return self._ended_at

    def history(self) -> List[FrameEvaluation]:
        with self._lock:
            return list(self._history)

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            now = self._clock()
            end = self._ended_at or now
            duration = int((end - self._started_at).total_seconds()) if self._started_at else 0
            active_sec = int(self._active_seconds(now))
            return SessionSnapshot(
                phase=self._phase,
                active=self._phase == ACTIVE,
                frame_count=self._frame_count,
                running_mean_accuracy=self._mean,
                started_at=self._started_at,
                ended_at=self._ended_at,
                duration_sec=max(0, duration),
                duration_active_sec=max(0, active_sec),
                target_progress=min(1.0, active_sec / TARGET_SESSION_SEC),
                accuracy_goal_met=self._frame_count > 0 and self._mean >= GOOD_THRESHOLD,
            )

    # --- Lifecycle ------------------------------------------------------

    def start(self) -> bool:
        with self._lock:
            if self._phase not in (IDLE, PAUSED):
                logger.debug("start ignored in phase {}", self._phase)
                return False
            now = self._clock()
            resumed = self._phase == PAUSED
            if self._started_at is None:
                self._started_at = now
            self._ended_at = None
            self._active_since = now
            self._phase = ACTIVE
        logger.info("Session {}", "resumed" if resumed else "started")
        return True

    def pause(self) -> bool:
        with self._lock:
            if self._phase != ACTIVE:
                logger.debug("pause ignored in phase {}", self._phase)
                return False
            self._close_active_span(self._clock())
            self._phase = PAUSED
            frames = self._frame_count
        logger.info("Session paused frames={}", frames)
        return True

    def stop(self) -> bool:
        with self._lock:
            if self._phase not in (ACTIVE, PAUSED):
                logger.debug("stop ignored in phase {}", self._phase)
                return False
            now = self._clock()
            self._close_active_span(now)
            self._ended_at = now
            self._phase = STOPPED
            frames, mean = self._frame_count, self._mean
        logger.info("Session stopped frames={} mean_accuracy={:.1f}", frames, mean)
        return True

    def reset(self) -> bool:
        with self._lock:
            self._phase = IDLE
            self._frame_count = 0
            self._mean = 0.0
            self._started_at = None
            self._ended_at = None
            self._active_since = None
            self._accum_active = 0.0
            self._history.clear()
        logger.info("Session reset")
        return True

    # --- Ingestion ------------------------------------------------------

    def ingest(self, evaluation: FrameEvaluation) -> bool:
        """Fold one evaluation into the aggregate; dropped unless the session is active."""
        with self._lock:
            if self._phase != ACTIVE:
                return False
            self._frame_count += 1
            mean = self._mean + (float(evaluation.accuracy) - self._mean) / self._frame_count
            self._mean = min(100.0, max(0.0, mean))
            if self.retain_history:
                self._history.append(evaluation)
            return True

    # --- Internal helpers -----------------------------------------------

    def _close_active_span(self, now: datetime) -> None:
        if self._active_since is not None:
            self._accum_active += max(0.0, (now - self._active_since).total_seconds())
            self._active_since = None

    def _active_seconds(self, now: datetime) -> float:
        total = self._accum_active
        if self._phase == ACTIVE and self._active_since is not None:
            total += max(0.0, (now - self._active_since).total_seconds())
        return total
