from datetime import date

import pytest
from fastapi.testclient import TestClient

from contest_engine.api.deps import get_clock
from contest_engine.db import create_user, schedule_station
from contest_engine.main import app
from contest_engine.timeutils import FixedClock
from tests.helpers import add_forecast, add_reading, ast

SECRET = {"X-Cron-Secret": "test-secret"}
FORECAST = {"max_temp": 88, "min_temp": 74, "wind_gust": 20, "precip_range": 2}


@pytest.fixture
def clock():
    return FixedClock(ast(2026, 10, 20, 10, 0))


@pytest.fixture
def client(db, clock):
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def alice(db):
    return create_user("alice", db)


@pytest.fixture
def scheduled(db):
    schedule_station("IMAYAG30", date(2026, 10, 19), db=db)


def _as(user):
    return {"X-User-Id": str(user["id"])}


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["database"] == "connected"


def test_metrics_counts_seeded_stations(client):
    body = client.get("/metrics").json()
    assert body["stations"] == 4
    assert body["points_in_sync"] is True


def test_forecast_status_open(client):
    body = client.get("/forecasts/status").json()
    assert body["is_open"] is True
    assert body["forecast_date"] == "2026-10-21"
    assert body["remaining_minutes"] == 420
    assert len(body["precip_ranges"]) == 7


def test_forecast_status_closed(client, clock):
    clock.instant = ast(2026, 10, 20, 17, 0)
    body = client.get("/forecasts/status").json()
    assert body["is_open"] is False
    assert body["next_forecast_date"] == "2026-10-22"
    assert body["minutes_until_open"] == 420


def test_register_user(client):
    resp = client.post("/users", json={"username": "bob_1"})
    assert resp.status_code == 201
    assert resp.json()["user"]["total_points"] == 0

    assert client.post("/users", json={"username": "bob_1"}).status_code == 409
    assert client.post("/users", json={"username": "x"}).status_code == 422


def test_unknown_user_header(client):
    assert client.get("/users/me", headers={"X-User-Id": "999"}).status_code == 404
    assert client.get("/users/me").status_code == 422


def test_submit_forecast(client, alice, scheduled):
    resp = client.post("/forecasts", json=FORECAST, headers=_as(alice))
    assert resp.status_code == 201
    forecast = resp.json()["forecast"]
    assert forecast["forecast_date"] == "2026-10-21"
    assert forecast["station_id"] == "IMAYAG30"
    assert forecast["precip_range_desc"] == '0.11" - 0.25"'

    today = client.get("/forecasts/today", headers=_as(alice)).json()
    assert today["forecast"]["id"] == forecast["id"]


def test_second_submission_is_rejected(client, alice, scheduled):
    client.post("/forecasts", json=FORECAST, headers=_as(alice))
    resp = client.post("/forecasts", json={**FORECAST, "max_temp": 90}, headers=_as(alice))
    assert resp.status_code == 409
    assert resp.json()["existing_forecast_id"] is not None


def test_submission_after_close(client, clock, alice, scheduled):
    clock.instant = ast(2026, 10, 20, 17, 0)
    resp = client.post("/forecasts", json=FORECAST, headers=_as(alice))
    assert resp.status_code == 400
    assert "closed" in resp.json()["error"]


def test_submission_without_station(client, alice):
    resp = client.post("/forecasts", json=FORECAST, headers=_as(alice))
    assert resp.status_code == 400
    assert resp.json() == {"error": "Forecasting not available for this date", "date": "2026-10-21"}


@pytest.mark.parametrize(
    "override",
    [{"max_temp": 130}, {"min_temp": 30}, {"precip_range": 8}, {"min_temp": 88}],
)
def test_submission_validation(client, alice, scheduled, override):
    resp = client.post("/forecasts", json={**FORECAST, **override}, headers=_as(alice))
    assert resp.status_code == 422


def test_stations(client, scheduled):
    assert len(client.get("/stations").json()["stations"]) == 4
    current = client.get("/stations/current").json()
    assert current["station"]["id"] == "IMAYAG30"
    assert current["week_start"] == "2026-10-19"
    assert client.get("/stations/KNOPE99").status_code == 404


def test_no_current_station(client):
    assert client.get("/stations/current").status_code == 404


def test_schedule_requires_secret(client):
    body = {"station_id": "ICABOR73", "week_of": "2026-10-28"}
    assert client.post("/stations/schedule", json=body).status_code == 401
    assert client.post("/stations/schedule", json=body, headers={"X-Cron-Secret": "nope"}).status_code == 401

    resp = client.post("/stations/schedule", json=body, headers=SECRET)
    assert resp.status_code == 201
    assert resp.json() == {"week_start": "2026-10-26", "station_id": "ICABOR73"}


def test_admin_requires_secret(client):
    assert client.post("/admin/calculate-scores").status_code == 401
    assert client.get("/admin/health", headers=SECRET).json()["status"] == "ok"


def test_scoring_flow(client, db, alice):
    bob = create_user("bob", db)
    day = date(2026, 10, 20)
    add_reading(db, "IMAYAG30", day)
    add_forecast(db, alice["id"], "IMAYAG30", day)
    add_forecast(db, bob["id"], "IMAYAG30", day, max_temp=89, gust=23, precip=1)

    resp = client.post("/admin/calculate-scores", params={"date": "2026-10-20"}, headers=SECRET)
    assert resp.json()["results"] == {"calculated": 2, "skipped": 0, "errors": 0}

    results = client.get("/scores/date/2026-10-20").json()
    assert results["actual_conditions"]["max_temp"] == 89
    assert [(r["user"], r["scores"]["total"]) for r in results["results"]] == [("bob", 25), ("alice", 16)]

    mine = client.get("/scores/my-scores", headers=_as(alice)).json()
    assert mine["summary"]["total_points"] == 16
    assert mine["scores"][0]["scores"]["max_temp"] == {"score": 4, "diff": 1}

    board = client.get("/leaderboard", headers=_as(alice)).json()
    assert [r["username"] for r in board["rankings"]] == ["bob", "alice"]
    assert board["user_rank"]["rank"] == 2

    weekly = client.get("/leaderboard", params={"type": "weekly"}).json()
    assert [r["total_points"] for r in weekly["rankings"]] == [25, 16]

    stats = client.get("/leaderboard/stats").json()["stats"]
    assert stats["perfect_forecasts"] == 1
    assert stats["top_scorer"]["username"] == "bob"

    checked = client.post("/admin/recompute-totals", headers=SECRET).json()
    assert checked["out_of_sync"] == []


def test_invalid_leaderboard_type(client):
    assert client.get("/leaderboard", params={"type": "daily"}).status_code == 400


def test_scores_for_bad_date(client):
    assert client.get("/scores/date/20-10-2026").status_code == 400
    assert client.get("/scores/date/2026-10-20").status_code == 404


def test_replace_reading_via_admin(client, db):
    add_reading(db, "IMAYAG30", date(2026, 10, 20))
    raw = {"MaxTemp": 91.5, "MinTemp": 75.0, "MaxGust": 18.0, "SumPrec": 0.0}

    resp = client.put("/admin/readings/IMAYAG30/2026-10-20", json=raw, headers=SECRET)
    assert resp.status_code == 200

    bad = client.put("/admin/readings/IMAYAG30/2026-10-20", json={"MaxTemp": 91.5}, headers=SECRET)
    assert bad.status_code == 400


def test_weekly_rank_for_user_with_zero_points(client, db, alice):
    bob = create_user("bob", db)
    day = date(2026, 10, 20)
    add_reading(db, "IMAYAG30", day)
    add_forecast(db, alice["id"], "IMAYAG30", day, max_temp=60, min_temp=45, gust=80, precip=7)
    add_forecast(db, bob["id"], "IMAYAG30", day, max_temp=89, gust=23, precip=1)
    client.post("/admin/calculate-scores", headers=SECRET)

    weekly = client.get("/leaderboard", params={"type": "weekly"}, headers=_as(alice)).json()
    assert weekly["user_rank"] == {"rank": 2, "user_id": alice["id"]}
