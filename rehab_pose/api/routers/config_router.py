"""Config endpoint router for reading/replacing the reference posture profile."""
from __future__ import annotations

from fastapi import APIRouter, Header, HTTPException

from rehab_pose.api.schemas import Envelope, ProfileInput
from rehab_pose.api.routers.posture import session_controller
from rehab_pose.core.config import get_settings
from rehab_pose.core.errors import ConfigurationError
from rehab_pose.vision.profiles import BUILTIN_PROFILES, PostureProfile, build_tolerance_table, builtin_profile

router = APIRouter()


def _profile_data() -> dict:
    data = session_controller.profile.to_dict()
    data["joints"] = [
        {"name": j.name, "landmarks": list(j.indices)} for j in session_controller.joint_table
    ]
    data["available"] = sorted(BUILTIN_PROFILES)
    return data


@router.get("/config/profile", response_model=Envelope)
async def get_profile() -> Envelope:
    return Envelope(success=True, data=_profile_data())


@router.post("/config/profile", response_model=Envelope)
async def set_profile(
    payload: ProfileInput,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> Envelope:
    s = get_settings()
    if getattr(s, "api_key", None) and x_api_key != s.api_key:
        raise HTTPException(status_code=401, detail="invalid_api_key")
    try:
        if payload.bands:
            raw = {joint: band.model_dump() for joint, band in payload.bands.items()}
            profile = PostureProfile(
                name=payload.name or "custom",
                bands=build_tolerance_table(raw, session_controller.joint_table),
            )
        elif payload.name:
            profile = builtin_profile(payload.name)
        else:
            return Envelope(success=False, error="missing_profile")
    except ConfigurationError as exc:
        return Envelope(success=False, error=f"invalid_profile: {exc}")
    session_controller.set_profile(profile)
    return Envelope(success=True, data=_profile_data())
