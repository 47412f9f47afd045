"""ORM models for persistence."""
from __future__ import annotations

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float

from .db import Base


class SessionMetrics(Base):
    __tablename__ = "session_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    started_at_utc = Column(DateTime, default=datetime.utcnow)
    ended_at_utc = Column(DateTime, nullable=True)
    duration_sec = Column(Integer, default=0)
    duration_active_sec = Column(Integer, default=0)
    frame_count = Column(Integer, default=0)
    avg_accuracy = Column(Float, default=0.0)
    profile = Column(String, nullable=True)
    source = Column(String, nullable=True)
