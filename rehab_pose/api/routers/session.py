"""Session control endpoints.

Provides start/pause/stop/reset controls, persistence, and history endpoints.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from loguru import logger
from sqlalchemy.orm import Session

from rehab_pose.core.db import get_db
from rehab_pose.core.dal import (
    add_session_metrics,
    get_last_session_metrics,
    get_session_history,
)
from rehab_pose.api.schemas import Envelope, SessionMetricsOutput, SessionOutput, SessionStartInput
from rehab_pose.api.routers.posture import session_controller

router = APIRouter()


def _status_data(changed: bool | None = None) -> dict:
    snap = session_controller.aggregator.snapshot()
    data = SessionOutput.model_validate(snap.to_dict()).model_dump()
    data["profile"] = session_controller.profile.name
    data["source"] = session_controller.source.name
    if changed is not None:
        data["changed"] = changed
    return data


@router.post("/session/start", response_model=Envelope)
def session_start(payload: SessionStartInput | None = None) -> Envelope:
    data = payload or SessionStartInput()
    if data.reset:
        session_controller.reset()
    changed = session_controller.start()
    return Envelope(success=True, data=_status_data(changed))


@router.post("/session/pause", response_model=Envelope)
def session_pause() -> Envelope:
    changed = session_controller.pause()
    return Envelope(success=True, data=_status_data(changed))


@router.post("/session/stop", response_model=Envelope)
def session_stop(db: Session = Depends(get_db)) -> Envelope:
    changed = session_controller.stop()
    data = _status_data(changed)
    if not changed:
        return Envelope(success=True, data=data)

    snap = session_controller.aggregator.snapshot()
    try:
        row = add_session_metrics(
            db,
            started_at_utc=snap.started_at.replace(tzinfo=None) if snap.started_at else None,
            ended_at_utc=snap.ended_at.replace(tzinfo=None) if snap.ended_at else None,
            duration_sec=snap.duration_sec,
            duration_active_sec=snap.duration_active_sec,
            frame_count=snap.frame_count,
            avg_accuracy=snap.running_mean_accuracy,
            profile=session_controller.profile.name,
            source=session_controller.source.name,
        )
        data["session_id"] = row.id
    except Exception as exc:  # pragma: no cover - persistence fallback
        logger.warning("Failed to persist session metrics: {}", exc)
        data["session_id"] = None
    return Envelope(success=True, data=data)


@router.post("/session/reset", response_model=Envelope)
def session_reset() -> Envelope:
    changed = session_controller.reset()
    return Envelope(success=True, data=_status_data(changed))


@router.get("/session/status", response_model=Envelope)
def session_status() -> Envelope:
    data = _status_data()
    last = session_controller.last_result
    data["last_evaluation"] = last.evaluation.to_dict() if last else None
    return Envelope(success=True, data=data)


@router.get("/session/last", response_model=Envelope)
def session_last(db: Session = Depends(get_db)) -> Envelope:
    row = get_last_session_metrics(db)
    if not row:
        return Envelope(success=True, data=None)
    payload = SessionMetricsOutput.model_validate(row)
    return Envelope(success=True, data=payload.model_dump(by_alias=True, mode="json"))


@router.get("/session/history", response_model=Envelope)
def session_history(
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=100),
) -> Envelope:
    rows = get_session_history(db, limit=limit)
    items = [
        SessionMetricsOutput.model_validate(row).model_dump(by_alias=True, mode="json")
        for row in rows
    ]
    return Envelope(success=True, data={"sessions": items, "count": len(items)})
