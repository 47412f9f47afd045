from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from rehab_pose.api.main import app


@pytest.mark.asyncio
async def test_debug_metrics_endpoint():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        await ac.post("/posture", json={})
        r = await ac.get("/debug/metrics")
    assert r.status_code == 200
    body = r.json()
    assert "latency_ms" in body and "fps" in body and "samples" in body
    assert "p50" in body["latency_ms"] and "p95" in body["latency_ms"]
    assert body["samples"] >= 1
    assert body["source"] == "synthetic"


@pytest.mark.asyncio
async def test_debug_diag_endpoint():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        r = await ac.get("/debug/diag")
    assert r.status_code == 200
    body = r.json()
    assert body["source"]["active"] == "synthetic"
    assert body["source"]["loop_running"] is False
    assert body["evaluation"]["joints"] == 8
    assert body["session"]["phase"] in ("idle", "active", "paused", "stopped")
