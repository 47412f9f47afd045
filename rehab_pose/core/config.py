"""Core configuration and constants.

Uses environment variables for configuration. Follows PEP8 and Google style docstrings.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal
import os

from pydantic import BaseModel


_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _default_data_dir() -> Path:
    raw = (os.getenv("DATA_DIR") or "").strip()
    if raw:
        return Path(raw)
    return Path(__file__).resolve().parent.parent / "data"


class Settings(BaseModel):
    """Application settings loaded from environment variables.

    Attributes:
        app_name: App display name.
        environment: Runtime environment.
        api_host: Host for FastAPI server.
        api_port: Port for FastAPI server.
        data_dir: Directory for the SQLite database and log files.
        frame_source: Which frame source feeds the pipeline ("synthetic", "camera" or "video").
        video_path: Video file played on loop when frame_source is "video".
        frame_rate: Target frames per second of the background frame loop.
        min_visibility: Landmarks below this confidence are treated as missing.
        tolerance_profile: Built-in tolerance profile name.
        tolerance_profile_path: Optional JSON profile overriding the built-in one.
        log_level: Logging level string.
    """

    app_name: str = "Remote Rehabilitation Posture Coach"
    environment: Literal["dev", "prod", "test"] = os.getenv("ENVIRONMENT", "dev")  # type: ignore[assignment]

    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    data_dir: Path = _default_data_dir()

    # Security & CORS
    api_key: str | None = os.getenv("API_KEY")
    exposed_origins: list[str] = (
        os.getenv("EXPOSED_ORIGINS", "*").split(",") if os.getenv("EXPOSED_ORIGINS") else ["*"]
    )

    # Frame source / loop
    frame_source: Literal["synthetic", "camera", "video"] = os.getenv("FRAME_SOURCE", "synthetic").strip().lower()  # type: ignore[assignment]
    frame_rate: float = float(os.getenv("FRAME_RATE", "10"))
    frame_loop_enabled: bool = _env_flag("FRAME_LOOP_ENABLED", "0")
    synthetic_seed: int | None = int(os.getenv("SYNTHETIC_SEED")) if os.getenv("SYNTHETIC_SEED") else None
    synthetic_dropout: float = float(os.getenv("SYNTHETIC_DROPOUT", "0.0"))
    camera_index: int = int(os.getenv("CAMERA_INDEX", "0"))
    video_path: str | None = os.getenv("VIDEO_PATH") or None
    camera_width: int = int(os.getenv("CAMERA_WIDTH", "640"))
    camera_height: int = int(os.getenv("CAMERA_HEIGHT", "480"))
    model_complexity: int = int(os.getenv("MODEL_COMPLEXITY", "0"))

    # Evaluation
    min_visibility: float = float(os.getenv("MIN_VISIBILITY", "0.3"))
    angle_use_z: bool = _env_flag("ANGLE_USE_Z", "0")
    tolerance_profile: str = os.getenv("TOLERANCE_PROFILE", "tai_chi_basic")
    tolerance_profile_path: str | None = os.getenv("TOLERANCE_PROFILE_PATH") or None

    # Session aggregation
    session_retain_history: bool = _env_flag("SESSION_RETAIN_HISTORY", "1")
    session_history_limit: int = int(os.getenv("SESSION_HISTORY_LIMIT", "3000"))
    latency_window: int = int(os.getenv("LATENCY_WINDOW", "90"))


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
