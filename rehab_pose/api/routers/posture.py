"""Posture evaluation endpoint router.

Uses the session controller to pull or push landmark frames through the pipeline.
"""
from __future__ import annotations

from fastapi import APIRouter
from loguru import logger

from rehab_pose.api.schemas import Envelope, FrameInput, PostureOutput
from rehab_pose.core.config import get_settings
from rehab_pose.session.controller import FrameResult, PoseSessionController
from rehab_pose.vision.geometry import LandmarkFrame
from rehab_pose.vision.sources import now_ms

router = APIRouter()

session_controller = PoseSessionController.from_settings(get_settings())


def _payload(result: FrameResult) -> dict:
    data = result.to_dict()
    data["session"] = session_controller.aggregator.snapshot().to_dict()
    return PostureOutput.model_validate(data).model_dump()


@router.post("/posture", response_model=Envelope)
async def posture_endpoint() -> Envelope:
    """Pull the next frame from the configured source and evaluate it."""
    result = session_controller.step()
    logger.debug(
        "posture ts={} accuracy={:.1f} status={} ingested={}",
        result.frame.timestamp,
        result.evaluation.accuracy,
        result.evaluation.status,
        result.ingested,
    )
    return Envelope(success=True, data=_payload(result))


@router.post("/posture/frame", response_model=Envelope)
async def posture_frame(payload: FrameInput) -> Envelope:
    """Evaluate a frame detected elsewhere (e.g. in the browser)."""
    landmarks = [lm.model_dump() if lm is not None else None for lm in payload.landmarks]
    ts = payload.timestamp if payload.timestamp is not None else now_ms()
    frame = LandmarkFrame.from_landmarks(landmarks, timestamp=ts, source="external")
    result = session_controller.process_frame(frame)
    return Envelope(success=True, data=_payload(result))


@router.get("/posture/last", response_model=Envelope)
async def posture_last() -> Envelope:
    result = session_controller.last_result
    if result is None:
        return Envelope(success=True, data=None)
    return Envelope(success=True, data=_payload(result))
