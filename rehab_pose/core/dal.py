"""Data access layer utilities."""
from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from .models import SessionMetrics


def add_session_metrics(db: Session, **kwargs) -> SessionMetrics:
    row = SessionMetrics(**kwargs)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_last_session_metrics(db: Session) -> Optional[SessionMetrics]:
    return (
        db.query(SessionMetrics)
        .order_by(SessionMetrics.id.desc())
        .first()
    )


def get_session_history(db: Session, limit: int = 20) -> list[SessionMetrics]:
    q = (
        db.query(SessionMetrics)
        .order_by(SessionMetrics.id.desc())
        .limit(limit)
    )
    return list(q)
