"""Pydantic schemas for request/response payloads.

All endpoints use a standardized JSON envelope: {"success": bool, "data": any, "error": str|None}
"""
from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List


class Envelope(BaseModel):
    success: bool = True
    data: Optional[dict] = None
    error: Optional[str] = None


class LandmarkInput(BaseModel):
    x: float
    y: float
    z: float | None = None
    visibility: float | None = Field(default=None, ge=0.0, le=1.0)


class FrameInput(BaseModel):
    # Missing landmarks are sent as null to keep the fixed numbering
    landmarks: List[Optional[LandmarkInput]]
    timestamp: int | None = None


class SessionStartInput(BaseModel):
    reset: bool = False


class BandInput(BaseModel):
    min: float
    max: float
    ideal: float | None = None


class ProfileInput(BaseModel):
    name: str | None = None
    bands: dict[str, BandInput] | None = None


class JointVerdictOutput(BaseModel):
    joint: str
    angle: float
    in_range: bool
    direction: str
    message: str


class EvaluationOutput(BaseModel):
    verdicts: dict[str, JointVerdictOutput]
    accuracy: float = Field(ge=0.0, le=100.0)
    status: str
    message: str
    evaluated_joints: int
    timestamp: int | None = None


class SessionOutput(BaseModel):
    phase: str
    active: bool
    frame_count: int
    running_mean_accuracy: float
    started_at: str | None = None
    ended_at: str | None = None
    duration_sec: int
    duration_active_sec: int
    target_progress: float
    accuracy_goal_met: bool


class PostureOutput(BaseModel):
    timestamp: int
    source: str
    angles: dict[str, float | None]
    evaluation: EvaluationOutput
    ingested: bool
    latency_ms: float
    session: SessionOutput


class SessionMetricsOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: int = Field(alias="id")
    started_at_utc: datetime
    ended_at_utc: datetime | None = None
    duration_sec: int
    duration_active_sec: int
    frame_count: int
    avg_accuracy: float
    profile: str | None = None
    source: str | None = None
