from datetime import date, timedelta

import click
import pytest

import app as app_module
from config import PipelineConfig
from models import WeatherRecord, RAW_FETCH, DAILY_AGGREGATE

def test_fetch_endpoint_runs_cycle(app, client, fake_provider):
    r = client.get("/weather/get")
    assert r.status_code == 200
    assert b"Weather data is being fetched" in r.data
    with app.app_context():
        assert WeatherRecord.query.count() == 6

def test_post_creates_record_with_location(app, client):
    r = client.post("/weather", json={
        "city": "Delhi",
        "date": "2024-06-01",
        "avgTemp": 30.5,
        "maxTemp": 36.0,
        "minTemp": 27.0,
        "dominantCondition": "Haze",
    })
    assert r.status_code == 201
    body = r.get_json()
    assert body["city"] == "Delhi"
    assert body["kind"] == RAW_FETCH
    assert body["maxTemp"] == 36.0
    assert r.headers["Location"].endswith(f"/weather/{body['id']}")

    r = client.get(f"/weather/{body['id']}")
    assert r.status_code == 200
    assert r.get_json()["dominantCondition"] == "Haze"

def test_post_defaults_date_to_today(client):
    r = client.post("/weather", json={"city": "Mumbai", "avgTemp": 29})
    assert r.status_code == 201
    assert r.get_json()["date"] == date.today().isoformat()

@pytest.mark.parametrize("payload", [
    {"city": "Atlantis", "avgTemp": 20},
    {"city": "Delhi", "avgTemp": "hot"},
    {"city": "Delhi", "date": "01/06/2024"},
    {"city": "Delhi", "kind": "hourly"},
    {"city": "Delhi", "date": 20240601},
    {"city": 42, "avgTemp": 20},
    {"city": "Delhi", "dominantCondition": ["Sunny"]},
    {"city": "Delhi", "avgTemp": "nan"},
    {"city": "Delhi", "maxTemp": "inf"},
    {"city": "Delhi", "avgTemp": True},
])
def test_post_rejects_invalid_body(client, payload):
    r = client.post("/weather", json=payload)
    assert r.status_code == 400
    assert "error" in r.get_json()

def test_post_rejects_non_json(client):
    r = client.post("/weather", data="city=Delhi")
    assert r.status_code == 400

def test_list_all(client):
    for city in ("Delhi", "Chennai"):
        client.post("/weather", json={"city": city, "date": "2024-06-01", "avgTemp": 30})
    r = client.get("/weather")
    assert r.status_code == 200
    assert [rec["city"] for rec in r.get_json()] == ["Delhi", "Chennai"]

def test_summary_by_city_and_date(client):
    client.post("/weather", json={"city": "Delhi", "date": "2024-06-01", "avgTemp": 31})
    client.post("/weather", json={"city": "Delhi", "date": "2024-06-01", "kind": DAILY_AGGREGATE, "avgTemp": 30})

    r = client.get("/weather/summary/Delhi/2024-06-01")
    assert r.status_code == 200
    assert r.get_json()["avgTemp"] == 31

    assert client.get("/weather/summary/Delhi/2024-06-02").status_code == 404
    assert client.get("/weather/summary/Delhi/June-1").status_code == 400

def test_summary_for_today(client, fake_provider):
    assert client.get("/weather/summary/Kolkata").status_code == 404
    client.get("/weather/get")
    r = client.get("/weather/summary/Kolkata")
    assert r.status_code == 200
    assert r.get_json()["date"] == date.today().isoformat()

def test_by_date(client):
    client.post("/weather", json={"city": "Delhi", "date": "2024-06-01", "avgTemp": 31})
    client.post("/weather", json={"city": "Mumbai", "date": "2024-06-01", "avgTemp": 29})
    client.post("/weather", json={"city": "Mumbai", "date": "2024-06-02", "avgTemp": 28})
    r = client.get("/weather/by-date/2024-06-01")
    assert sorted(rec["city"] for rec in r.get_json()) == ["Delhi", "Mumbai"]

def test_historical_summary_range(client):
    start = date(2024, 6, 1)
    for offset in range(-1, 4):
        day = (start + timedelta(days=offset)).isoformat()
        client.post("/weather", json={"city": "Delhi", "date": day, "avgTemp": 20 + offset})

    r = client.get("/weather/historical-summary/Delhi?startDate=2024-06-01&endDate=2024-06-02")
    assert r.status_code == 200
    assert [rec["date"] for rec in r.get_json()] == ["2024-06-01", "2024-06-02"]

    r = client.get("/weather/historical-summary/Mumbai?startDate=2024-06-01&endDate=2024-06-02")
    assert r.status_code == 404

def test_historical_summary_requires_dates(client):
    r = client.get("/weather/historical-summary/Delhi?startDate=2024-06-01")
    assert r.status_code == 400
    assert "endDate" in r.get_json()["error"]

def test_missing_record_id(client):
    assert client.get("/weather/999").status_code == 404

def test_cli_commands(app, fake_provider):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["fetch-weather"])
    assert result.exit_code == 0
    assert "6 succeeded" in result.output

    result = runner.invoke(args=["aggregate-weather"])
    assert result.exit_code == 0
    assert "6 succeeded" in result.output
    with app.app_context():
        assert WeatherRecord.query.filter_by(kind=DAILY_AGGREGATE).count() == 6

def test_invalid_body_is_not_stored(app, client):
    client.post("/weather", json={"city": "Delhi", "avgTemp": "nan"})
    client.post("/weather", json={"city": "Delhi", "date": 20240601})
    with app.app_context():
        assert WeatherRecord.query.count() == 0

def test_scheduler_not_started_inside_cli_command(app, monkeypatch):
    started = []
    monkeypatch.setattr(app_module, "start_scheduler", lambda flask_app, config: started.append(config))
    config = PipelineConfig(scheduler_enabled=True)

    with click.Context(click.Command("fetch-weather")):
        app_module.create_app(config)
    assert started == []

    app_module.create_app(config)
    assert started == [config]
