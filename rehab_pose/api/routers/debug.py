from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from rehab_pose.api.routers.posture import session_controller
from rehab_pose.core.config import get_settings

router = APIRouter()


@router.get("/debug/metrics")
async def metrics() -> JSONResponse:
    return JSONResponse(content=session_controller.metrics())


@router.get("/debug/diag")
async def diag() -> dict:
    s = get_settings()
    last = session_controller.last_result
    return {
        "source": {
            "configured": s.frame_source,
            "active": session_controller.source.name,
            "loop_running": session_controller.loop_running,
            "frame_rate": session_controller.frame_rate,
        },
        "evaluation": {
            "profile": session_controller.profile.name,
            "joints": len(session_controller.joint_table),
            "bands": len(session_controller.tolerance_table),
            "min_visibility": session_controller.min_visibility,
            "use_z": session_controller.use_z,
        },
        "session": session_controller.aggregator.snapshot().to_dict(),
        "last_frame_ts": last.frame.timestamp if last else None,
        "environment": s.environment,
    }
