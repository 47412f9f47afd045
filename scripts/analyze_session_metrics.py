#!/usr/bin/env python3
"""
Sample a running server and export a posture accuracy timeline.

- Polls /posture at a fixed rate to collect per-frame accuracy, status and angles
- Reads /debug/metrics for latency and fps, /session/status for the running mean
- Exports:
  - accuracy_timeline.csv with columns: t, accuracy, status, ingested, <joint angles>
  - session_metrics.csv with columns: fps, latency_ms_p50, latency_ms_p95, frame_count, running_mean_accuracy
- Prints a JSON summary.

Usage:
  python scripts/analyze_session_metrics.py --base-url http://127.0.0.1:8000 --duration-sec 60 --out rehab_pose/data/exports
"""
from __future__ import annotations

import argparse
import csv
import json
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Tuple

import requests

JOINTS = [
    "left_elbow",
    "right_elbow",
    "left_shoulder",
    "right_shoulder",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
]


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def fetch_metrics(base_url: str) -> Tuple[float, float, float]:
    r = requests.get(f"{base_url}/debug/metrics", timeout=3)
    r.raise_for_status()
    d = r.json() or {}
    fps = float(((d.get("fps") or {}).get("avg")) or 0.0)
    lat = (d.get("latency_ms") or {})
    return fps, float(lat.get("p50") or 0.0), float(lat.get("p95") or 0.0)


def fetch_session_status(base_url: str) -> Dict[str, Any]:
    r = requests.get(f"{base_url}/session/status", timeout=3)
    r.raise_for_status()
    return (r.json() or {}).get("data") or {}


def fetch_posture(base_url: str) -> Dict[str, Any]:
    r = requests.post(f"{base_url}/posture", timeout=5)
    r.raise_for_status()
    return (r.json() or {}).get("data") or {}


def write_csv(path: Path, header: List[str], rows: List[List[Any]]) -> None:
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(header)
        for r in rows:
            w.writerow(r)


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--base-url", default="http://127.0.0.1:8000")
    ap.add_argument("--duration-sec", type=float, default=60.0)
    ap.add_argument("--sample-hz", type=float, default=5.0)
    ap.add_argument("--out", default="rehab_pose/data/exports")
    args = ap.parse_args()

    base = args.base_url.rstrip("/")
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    duration_s = max(1.0, float(args.duration_sec))
    dt = 1.0 / max(0.1, float(args.sample_hz))
    t0 = time.time()
    rows: List[List[Any]] = []
    status_counts: Dict[str, int] = {}

    print(f"[info] Sampling /posture for {duration_s:.0f}s @ {1.0 / dt:.1f} Hz")
    while time.time() - t0 < duration_s:
        try:
            data = fetch_posture(base)
        except requests.RequestException as exc:
            print(f"[warn] POST /posture failed: {exc}")
            time.sleep(dt)
            continue
        ev = data.get("evaluation") or {}
        angles = data.get("angles") or {}
        status = str(ev.get("status") or "waiting")
        status_counts[status] = status_counts.get(status, 0) + 1
        row = [f"{time.time() - t0:.3f}", f"{float(ev.get('accuracy') or 0.0):.2f}", status, int(bool(data.get("ingested")))]
        row += ["" if angles.get(j) is None else f"{float(angles[j]):.2f}" for j in JOINTS]
        rows.append(row)
        time.sleep(dt)

    timeline_csv = out_dir / "accuracy_timeline.csv"
    write_csv(timeline_csv, ["t", "accuracy", "status", "ingested", *JOINTS], rows)

    try:
        fps_avg, p50, p95 = fetch_metrics(base)
    except requests.RequestException as exc:
        print(f"[error] Could not read /debug/metrics: {exc}")
        fps_avg, p50, p95 = 0.0, 0.0, 0.0
    try:
        session = fetch_session_status(base)
    except requests.RequestException as exc:
        print(f"[warn] Could not read /session/status: {exc}")
        session = {}

    metrics_csv = out_dir / "session_metrics.csv"
    write_csv(
        metrics_csv,
        ["fps", "latency_ms_p50", "latency_ms_p95", "frame_count", "running_mean_accuracy"],
        [[
            f"{fps_avg:.2f}",
            f"{p50:.3f}",
            f"{p95:.3f}",
            int(session.get("frame_count") or 0),
            f"{float(session.get('running_mean_accuracy') or 0.0):.2f}",
        ]],
    )

    sampled = [float(r[1]) for r in rows]
    print(json.dumps({
        "timestamp": _iso_now(),
        "samples": len(rows),
        "sampled_mean_accuracy": round(sum(sampled) / len(sampled), 2) if sampled else 0.0,
        "status_counts": status_counts,
        "session_phase": session.get("phase"),
        "session_frame_count": session.get("frame_count"),
        "session_mean_accuracy": session.get("running_mean_accuracy"),
        "fps_avg": round(fps_avg, 2),
        "latency_p50_ms": round(p50, 3),
        "latency_p95_ms": round(p95, 3),
        "out_files": {
            "accuracy_timeline.csv": str(timeline_csv),
            "session_metrics.csv": str(metrics_csv),
        },
    }))
    return 0


if __name__ == "__main__":
    sys.exit(main())
