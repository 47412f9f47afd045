"""Landmark primitives and the three-point angle calculation."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np

LANDMARK_COUNT = 33


@dataclass(frozen=True)
class Point:
    x: float
    y: float
    z: Optional[float] = None
    visibility: Optional[float] = None

    @classmethod
    def from_obj(cls, obj: Any) -> Optional["Point"]:
        """Build a point from a mapping, a sequence ``(x, y[, z[, visibility]])`` or ``None``."""
        if obj is None or isinstance(obj, Point):
            return obj
        if isinstance(obj, Mapping):
            z = obj.get("z")
            vis = obj.get("visibility", obj.get("score"))
            return cls(
                x=float(obj["x"]),
                y=float(obj["y"]),
                z=float(z) if z is not None else None,
                visibility=float(vis) if vis is not None else None,
            )
        values = list(obj)
        if len(values) < 2:
            raise ValueError(f"point needs at least x and y, got {values!r}")
        return cls(
            x=float(values[0]),
            y=float(values[1]),
            z=float(values[2]) if len(values) > 2 and values[2] is not None else None,
            visibility=float(values[3]) if len(values) > 3 and values[3] is not None else None,
        )


@dataclass(frozen=True)
class LandmarkFrame:
    """One observation instant: landmarks in a fixed numbering plus a timestamp in ms."""

    points: Tuple[Optional[Point], ...]
    timestamp: int
    source: str = field(default="unknown", compare=False)

    def __len__(self) -> int:
        return len(self.points)

    def point(self, index: int) -> Optional[Point]:
        if index < 0 or index >= len(self.points):
            return None
        return self.points[index]

    @classmethod
    def from_landmarks(cls, landmarks: Iterable[Any], timestamp: int, source: str = "external") -> "LandmarkFrame":
        return cls(points=tuple(Point.from_obj(p) for p in landmarks), timestamp=int(timestamp), source=source)

    @classmethod
    def empty(cls, timestamp: int, size: int = LANDMARK_COUNT, source: str = "unknown") -> "LandmarkFrame":
        return cls(points=(None,) * size, timestamp=int(timestamp), source=source)

    def to_list(self) -> list[Optional[dict]]:
        out: list[Optional[dict]] = []
        for p in self.points:
            if p is None:
                out.append(None)
            else:
                out.append({"x": p.x, "y": p.y, "z": p.z, "visibility": p.visibility})
        return out


def _coords(points: Sequence[Point], use_z: bool) -> list[np.ndarray]:
    include_z = use_z and all(p.z is not None for p in points)
    if include_z:
        return [np.array([p.x, p.y, p.z], dtype=float) for p in points]
    return [np.array([p.x, p.y], dtype=float) for p in points]


def calculate_angle(
    a: Optional[Point],
    b: Optional[Point],
    c: Optional[Point],
    *,
    use_z: bool = False,
) -> Optional[float]:
    """Return the angle at vertex ``b`` between rays b->a and b->c, in degrees.

    The result lies in [0, 180]. ``None`` means the angle is undefined: a point
    is missing, a coordinate is not finite, or one ray has zero length. The z
    component is only used when ``use_z`` is set and all three points carry one.
    """
    if a is None or b is None or c is None:
        return None
    pa, pb, pc = _coords((a, b, c), use_z)
    if not (np.all(np.isfinite(pa)) and np.all(np.isfinite(pb)) and np.all(np.isfinite(pc))):
        return None
    v1 = pa - pb
    v2 = pc - pb
    n1 = float(np.linalg.norm(v1))
    n2 = float(np.linalg.norm(v2))
    if n1 == 0.0 or n2 == 0.0:
        return None
    cos = float(np.clip(np.dot(v1, v2) / (n1 * n2), -1.0, 1.0))
    angle = math.degrees(math.acos(cos))
    if not math.isfinite(angle):
        return None
    return angle
