from __future__ import annotations

import threading
import time

import pytest

from rehab_pose.session.aggregator import SessionAggregator
from rehab_pose.session.controller import PoseSessionController
from rehab_pose.vision.geometry import LandmarkFrame
from rehab_pose.vision.profiles import PostureProfile, build_tolerance_table, builtin_profile
from rehab_pose.vision.sources import SyntheticFrameSource


@pytest.fixture()
def controller():
    ctl = PoseSessionController(SyntheticFrameSource(seed=3), aggregator=SessionAggregator(retain_history=True))
    yield ctl
    ctl.close()


def _ideal_frame(ts: int = 1) -> LandmarkFrame:
    src = SyntheticFrameSource(seed=0)
    bands = builtin_profile().bands
    angles = {name: centre for name, (centre, _) in src.target_angles.items()}
    angles.update({name: band.ideal for name, band in bands.items()})
    return LandmarkFrame(points=tuple(src.build_points(angles)), timestamp=ts)


def test_step_while_idle_evaluates_but_does_not_ingest(controller):
    result = controller.step()
    assert not result.ingested
    assert result.evaluation.evaluated_joints == 6
    assert controller.aggregator.frame_count == 0
    assert controller.last_result is result


def test_active_session_ingests(controller):
    controller.start()
    for _ in range(4):
        assert controller.step().ingested
    assert controller.aggregator.frame_count == 4
    assert 0.0 <= controller.aggregator.running_mean_accuracy <= 100.0
    assert len(controller.aggregator.history()) == 4


def test_process_frame_at_ideal_angles(controller):
    controller.start()
    result = controller.process_frame(_ideal_frame(ts=123))
    assert result.evaluation.accuracy == 100.0
    assert result.evaluation.status == "good"
    assert result.evaluation.timestamp == 123
    assert controller.aggregator.running_mean_accuracy == 100.0


def test_empty_frame_waits(controller):
    controller.start()
    result = controller.process_frame(LandmarkFrame.empty(5))
    assert result.evaluation.status == "waiting"
    assert all(v is None for v in result.angles.values())
    # Still counted as an ingested frame with zero accuracy
    assert controller.aggregator.frame_count == 1


def test_reset_clears_last_result(controller):
    controller.start()
    controller.step()
    controller.reset()
    assert controller.last_result is None
    assert controller.aggregator.frame_count == 0


def test_run_honours_max_frames(controller):
    controller.frame_rate = 1000.0
    controller.start()
    processed = controller.run(threading.Event(), max_frames=5)
    assert processed == 5
    assert controller.aggregator.frame_count == 5


def test_run_stops_on_event(controller):
    stop = threading.Event()
    stop.set()
    assert controller.run(stop) == 0


def test_metrics_shape(controller):
    for _ in range(3):
        controller.step()
    m = controller.metrics()
    assert m["samples"] == 3
    assert m["source"] == "synthetic"
    assert m["loop_running"] is False
    assert m["latency_ms"]["p50"] <= m["latency_ms"]["p95"]
    assert m["fps"]["target"] == controller.frame_rate


def test_set_profile_changes_scoring(controller):
    narrow = PostureProfile(name="narrow", bands=build_tolerance_table({"left_elbow": {"min": 0, "max": 1}}))
    controller.set_profile(narrow)
    controller.start()
    result = controller.process_frame(_ideal_frame())
    assert set(result.evaluation.verdicts) == {"left_elbow"}
    assert result.evaluation.accuracy == 0.0
    assert controller.tolerance_table is narrow.bands


def test_frame_result_serializes(controller):
    data = controller.step().to_dict(include_landmarks=True)
    assert len(data["landmarks"]) == 33
    assert set(data["angles"]) >= {"left_elbow", "right_knee"}


class GlitchySource(SyntheticFrameSource):
    """Raises on one chosen call of next_frame()."""

    def __init__(self, fail_on: int) -> None:
        super().__init__(seed=5)
        self.calls = 0
        self.fail_on = fail_on

    def next_frame(self) -> LandmarkFrame:
        self.calls += 1
        if self.calls == self.fail_on:
            raise RuntimeError("transient camera glitch")
        return super().next_frame()


def test_run_skips_a_failing_frame():
    ctl = PoseSessionController(GlitchySource(fail_on=3), frame_rate=1000.0)
    ctl.start()
    processed = ctl.run(threading.Event(), max_frames=5)
    assert processed == 4
    assert ctl.aggregator.frame_count == 4


def test_background_loop_survives_a_failing_frame():
    ctl = PoseSessionController(GlitchySource(fail_on=3), frame_rate=200.0)
    ctl.start()
    ctl.start_loop()
    try:
        deadline = time.monotonic() + 5.0
        while ctl.aggregator.frame_count < 6 and time.monotonic() < deadline:
            time.sleep(0.02)
        assert ctl.loop_running
        assert ctl.aggregator.frame_count >= 6
    finally:
        ctl.close()
    assert not ctl.loop_running
