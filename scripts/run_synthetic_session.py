#!/usr/bin/env python3
"""Run a headless practice session over synthetic frames and print its summary."""
from __future__ import annotations

import argparse
import json
import threading

from loguru import logger

from rehab_pose.core.config import get_settings
from rehab_pose.core.logging_config import setup_logging
from rehab_pose.session.aggregator import SessionAggregator
from rehab_pose.session.controller import PoseSessionController
from rehab_pose.vision.profiles import resolve_profile
from rehab_pose.vision.sources import SyntheticFrameSource


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synthetic posture session")
    parser.add_argument("--frames", type=int, default=100, help="Frames to process (default: %(default)s)")
    parser.add_argument("--rate", type=float, default=10.0, help="Frames per second (default: %(default)s)")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--dropout", type=float, default=0.0, help="Per-landmark dropout probability")
    parser.add_argument("--profile", default=None, help="JSON tolerance profile path")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()
    setup_logging(settings.log_level)
    controller = PoseSessionController(
        source=SyntheticFrameSource(seed=args.seed, dropout=args.dropout),
        profile=resolve_profile(settings, args.profile),
        aggregator=SessionAggregator(),
        min_visibility=settings.min_visibility,
        frame_rate=args.rate,
    )
    controller.start()
    processed = controller.run(threading.Event(), max_frames=args.frames)
    controller.stop()
    logger.info("Processed {} frames", processed)
    summary = controller.aggregator.snapshot().to_dict()
    summary["profile"] = controller.profile.name
    summary["metrics"] = controller.metrics()
    print(json.dumps(summary, indent=2))
    controller.close()


if __name__ == "__main__":
    main()
