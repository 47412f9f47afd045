from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from rehab_pose.api.main import app
from rehab_pose.api.routers import config_router
from rehab_pose.api.routers.posture import session_controller
from rehab_pose.core.config import Settings
from rehab_pose.vision.profiles import builtin_profile
from rehab_pose.vision.sources import SyntheticFrameSource


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture(autouse=True)
def fresh_session():
    session_controller.reset()
    session_controller.set_profile(builtin_profile())
    yield
    session_controller.reset()
    session_controller.set_profile(builtin_profile())


def _ideal_landmarks() -> list[dict | None]:
    src = SyntheticFrameSource(seed=0)
    angles = {name: centre for name, (centre, _) in src.target_angles.items()}
    angles.update({name: band.ideal for name, band in builtin_profile().bands.items()})
    return [
        {"x": p.x, "y": p.y, "z": p.z, "visibility": p.visibility}
        for p in src.build_points(angles)
    ]


@pytest.mark.asyncio
async def test_health():
    async with _client() as ac:
        r = await ac.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_posture_pulls_synthetic_frame():
    async with _client() as ac:
        r = await ac.post("/posture", json={})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    d = body["data"]
    assert d["source"] == "synthetic"
    assert set(d["angles"]) >= {"left_elbow", "right_knee", "left_hip"}
    assert 0.0 <= d["evaluation"]["accuracy"] <= 100.0
    assert d["ingested"] is False
    assert d["session"]["phase"] == "idle"


@pytest.mark.asyncio
async def test_posture_frame_at_ideal_angles_is_good():
    async with _client() as ac:
        await ac.post("/session/start", json={})
        r = await ac.post("/posture/frame", json={"landmarks": _ideal_landmarks(), "timestamp": 1000})
        body = r.json()
        assert body["success"] is True
        d = body["data"]
        assert d["timestamp"] == 1000
        assert d["evaluation"]["accuracy"] == 100.0
        assert d["evaluation"]["status"] == "good"
        assert d["ingested"] is True
        assert d["session"]["frame_count"] == 1

        last = (await ac.get("/posture/last")).json()["data"]
        assert last["timestamp"] == 1000


@pytest.mark.asyncio
async def test_posture_frame_with_missing_landmarks_waits():
    async with _client() as ac:
        r = await ac.post("/posture/frame", json={"landmarks": [None] * 33})
    d = r.json()["data"]
    assert d["evaluation"]["status"] == "waiting"
    assert all(v is None for v in d["angles"].values())


@pytest.mark.asyncio
async def test_posture_frame_rejects_bad_payload():
    async with _client() as ac:
        r = await ac.post("/posture/frame", json={"landmarks": [{"x": "left"}]})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_posture_last_empty_after_reset():
    async with _client() as ac:
        r = await ac.get("/posture/last")
    assert r.json() == {"success": True, "data": None, "error": None}


@pytest.mark.asyncio
async def test_session_lifecycle():
    async with _client() as ac:
        r = await ac.post("/session/start", json={})
        data = r.json()["data"]
        assert data["phase"] == "active"
        assert data["changed"] is True
        assert data["profile"] == "tai_chi_basic"

        await ac.post("/posture", json={})
        await ac.post("/posture", json={})

        pause = (await ac.post("/session/pause")).json()["data"]
        assert pause["phase"] == "paused"
        await ac.post("/posture", json={})
        status = (await ac.get("/session/status")).json()["data"]
        assert status["frame_count"] == 2
        assert status["last_evaluation"] is not None

        resume = (await ac.post("/session/start")).json()["data"]
        assert resume["phase"] == "active"

        stop = (await ac.post("/session/stop")).json()["data"]
        assert stop["phase"] == "stopped"
        assert isinstance(stop["session_id"], int)

        again = (await ac.post("/session/start")).json()["data"]
        assert again["phase"] == "stopped"
        assert again["changed"] is False

        last = (await ac.get("/session/last")).json()["data"]
        assert last["id"] == stop["session_id"]
        assert last["frame_count"] == 2
        assert last["profile"] == "tai_chi_basic"

        history = (await ac.get("/session/history?limit=5")).json()["data"]
        assert history["count"] >= 1
        assert history["sessions"][0]["id"] == stop["session_id"]

        fresh = (await ac.post("/session/start", json={"reset": True})).json()["data"]
        assert fresh["phase"] == "active"
        assert fresh["frame_count"] == 0


@pytest.mark.asyncio
async def test_stop_from_idle_does_not_persist():
    async with _client() as ac:
        r = (await ac.post("/session/stop")).json()["data"]
    assert r["changed"] is False
    assert "session_id" not in r


@pytest.mark.asyncio
async def test_session_reset():
    async with _client() as ac:
        await ac.post("/session/start")
        await ac.post("/posture", json={})
        r = (await ac.post("/session/reset")).json()["data"]
    assert r["phase"] == "idle"
    assert r["frame_count"] == 0
    assert r["running_mean_accuracy"] == 0.0


@pytest.mark.asyncio
async def test_history_limit_validation():
    async with _client() as ac:
        r = await ac.get("/session/history?limit=0")
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_profile_get_and_replace():
    async with _client() as ac:
        current = (await ac.get("/config/profile")).json()["data"]
        assert current["name"] == "tai_chi_basic"
        assert "tai_chi_basic" in current["available"]
        assert len(current["joints"]) == 8

        r = await ac.post(
            "/config/profile",
            json={"name": "knees_only", "bands": {"left_knee": {"min": 90, "max": 120}}},
        )
        body = r.json()
        assert body["success"] is True
        assert body["data"]["name"] == "knees_only"
        assert body["data"]["bands"]["left_knee"]["ideal"] == 105.0

        frame = (await ac.post("/posture", json={})).json()["data"]
        assert set(frame["evaluation"]["verdicts"]) <= {"left_knee"}

        back = (await ac.post("/config/profile", json={"name": "tai_chi_basic"})).json()
        assert back["data"]["name"] == "tai_chi_basic"


@pytest.mark.asyncio
async def test_profile_invalid_requests():
    async with _client() as ac:
        missing = (await ac.post("/config/profile", json={})).json()
        assert missing["success"] is False
        assert missing["error"] == "missing_profile"

        unknown = (await ac.post("/config/profile", json={"name": "ballet"})).json()
        assert unknown["success"] is False
        assert unknown["error"].startswith("invalid_profile")

        inverted = (
            await ac.post("/config/profile", json={"bands": {"left_knee": {"min": 170, "max": 120}}})
        ).json()
        assert inverted["success"] is False

        current = (await ac.get("/config/profile")).json()["data"]
        assert current["name"] == "tai_chi_basic"


@pytest.mark.asyncio
async def test_profile_requires_api_key_when_configured(monkeypatch):
    monkeypatch.setattr(config_router, "get_settings", lambda: Settings(api_key="secret"))
    async with _client() as ac:
        denied = await ac.post("/config/profile", json={"name": "tai_chi_basic"})
        assert denied.status_code == 401
        ok = await ac.post(
            "/config/profile", json={"name": "tai_chi_basic"}, headers={"X-API-Key": "secret"}
        )
        assert ok.status_code == 200
        assert ok.json()["success"] is True


@pytest.mark.asyncio
async def test_root_redirects_to_status():
    async with _client() as ac:
        r = await ac.get("/")
    assert r.status_code == 302
    assert r.headers["location"] == "/session/status"
