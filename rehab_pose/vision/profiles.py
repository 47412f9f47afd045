"""Reference posture profiles (tolerance tables) and their loading."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from loguru import logger

from rehab_pose.core.config import Settings
from rehab_pose.core.errors import ConfigurationError
from rehab_pose.vision.evaluator import ToleranceBand, ToleranceTable
from rehab_pose.vision.joints import JOINT_TABLE, JointDefinition


@dataclass(frozen=True)
class PostureProfile:
    name: str
    bands: ToleranceTable

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "bands": {
                joint: {"min": b.min, "max": b.max, "ideal": b.ideal}
                for joint, b in self.bands.items()
            },
        }


# Basic tai chi stance; hips are measured but not scored.
BUILTIN_PROFILES: dict[str, dict[str, dict[str, float]]] = {
    "tai_chi_basic": {
        "left_elbow": {"min": 110, "max": 140, "ideal": 125},
        "right_elbow": {"min": 110, "max": 140, "ideal": 125},
        "left_knee": {"min": 150, "max": 180, "ideal": 165},
        "right_knee": {"min": 150, "max": 180, "ideal": 165},
        "left_shoulder": {"min": 80, "max": 120, "ideal": 100},
        "right_shoulder": {"min": 80, "max": 120, "ideal": 100},
    },
}

DEFAULT_PROFILE = "tai_chi_basic"


def build_tolerance_table(
    bands: Mapping[str, Any],
    joint_table: Iterable[JointDefinition] = JOINT_TABLE,
) -> ToleranceTable:
    """Validate raw ``{joint: {min, max, ideal}}`` data into a tolerance table.

    ``ideal`` defaults to the band midpoint when omitted.
    """
    known = {j.name for j in joint_table}
    table: ToleranceTable = {}
    for joint, raw in bands.items():
        if joint not in known:
            raise ConfigurationError(f"tolerance band for unknown joint {joint!r}")
        if isinstance(raw, ToleranceBand):
            table[joint] = raw
            continue
        try:
            lo = float(raw["min"])
            hi = float(raw["max"])
            ideal = float(raw["ideal"]) if raw.get("ideal") is not None else (lo + hi) / 2.0
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ConfigurationError(f"malformed tolerance band for {joint!r}: {raw!r}") from exc
        table[joint] = ToleranceBand(min=lo, max=hi, ideal=ideal)
    if not table:
        raise ConfigurationError("tolerance profile defines no bands")
    return table


def builtin_profile(name: str = DEFAULT_PROFILE) -> PostureProfile:
    bands = BUILTIN_PROFILES.get(name)
    if bands is None:
        raise ConfigurationError(f"unknown tolerance profile {name!r}")
    return PostureProfile(name=name, bands=build_tolerance_table(bands))


def load_profile(path: Path | str, joint_table: Iterable[JointDefinition] = JOINT_TABLE) -> PostureProfile:
    """Load a JSON profile file ``{"name": str, "bands": {joint: {...}}}``."""
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"cannot read tolerance profile {p}: {exc}") from exc
    if not isinstance(data, dict) or not isinstance(data.get("bands"), dict):
        raise ConfigurationError(f"tolerance profile {p} has no 'bands' mapping")
    name = str(data.get("name") or p.stem)
    profile = PostureProfile(name=name, bands=build_tolerance_table(data["bands"], joint_table))
    logger.info("Loaded tolerance profile {} from {} ({} bands)", name, p, len(profile.bands))
    return profile


def resolve_profile(settings: Settings, profile_path: Optional[str] = None) -> PostureProfile:
    path = profile_path or settings.tolerance_profile_path
    if path:
        return load_profile(path)
    return builtin_profile(settings.tolerance_profile)
