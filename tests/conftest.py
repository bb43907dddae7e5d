import pytest
from app import create_app
from models import db
from store import WeatherStore

CITIES = ["Delhi", "Mumbai", "Chennai", "Bangalore", "Kolkata", "Hyderabad"]

# Creates a Flask app with a temporary SQLite database for tests; the scheduler stays off.
@pytest.fixture()
def app(tmp_path, monkeypatch):
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("OPENWEATHERMAP_API_KEY", "test-key")
    monkeypatch.setenv("WEATHER_CITIES", ",".join(CITIES))
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    app = create_app()
    app.config.update(TESTING=True)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()

@pytest.fixture()
def client(app):
    return app.test_client()

@pytest.fixture()
def config(app):
    return app.extensions["weather_pipeline"]

@pytest.fixture()
def store(app):
    return WeatherStore()

# Replaces the provider call with fixed Kelvin readings per city.
@pytest.fixture()
def fake_provider(monkeypatch):
    import weather_api as wa
    readings = {city: 300.0 for city in CITIES}
    calls = []

    def fake_fetch(city, api_key, base_url=None, timeout=None):
        calls.append({"city": city, "api_key": api_key})
        value = readings[city]
        if isinstance(value, Exception):
            raise value
        return {"city": city, "temp_k": value, "condition": "Clear"}

    monkeypatch.setattr(wa, "fetch_current", fake_fetch)
    fake_fetch.readings = readings
    fake_fetch.calls = calls
    return fake_fetch
