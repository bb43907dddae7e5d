import logging
import math
import os
from datetime import date, datetime

import click
from flask import Flask, current_app, jsonify, request, url_for

from config import PipelineConfig
from models import db, WeatherRecord, RAW_FETCH, RECORD_KINDS
from pipeline import run_fetch_cycle, run_aggregation_cycle
from scheduler import start_scheduler
from store import StoreError, WeatherStore

logger = logging.getLogger(__name__)

EXTENSION_KEY = "weather_pipeline"


class DateParseError(ValueError):
    pass


# Parses a YYYY-MM-DD path/query/body value.
def _parse_date(value, name="date"):
    if not isinstance(value, str):
        raise DateParseError(f"{name} must be in YYYY-MM-DD format.")
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as e:
        raise DateParseError(f"{name} must be in YYYY-MM-DD format.") from e

# Builds an unsaved WeatherRecord from a JSON body; raises ValueError on bad input.
def _record_from_json(payload, cities):
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object.")

    city = payload.get("city")
    city = city.strip() if isinstance(city, str) else ""
    if city not in cities:
        raise ValueError(f"Unknown city '{city}'. Expected one of: {', '.join(cities)}.")

    kind = payload.get("kind") or RAW_FETCH
    if kind not in RECORD_KINDS:
        raise ValueError(f"kind must be one of: {', '.join(RECORD_KINDS)}.")

    numbers = {}
    for key, column in (("avgTemp", "avg_temp"), ("maxTemp", "max_temp"), ("minTemp", "min_temp")):
        value = payload.get(key)
        if value is None:
            continue
        if isinstance(value, bool):
            raise ValueError(f"{key} must be numeric.")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be numeric.")
        if not math.isfinite(number):
            raise ValueError(f"{key} must be a finite number.")
        numbers[column] = number

    condition = payload.get("dominantCondition")
    if condition is not None and not isinstance(condition, str):
        raise ValueError("dominantCondition must be a string.")

    return WeatherRecord(
        city=city,
        date=_parse_date(payload["date"]) if payload.get("date") is not None else date.today(),
        kind=kind,
        dominant_condition=condition,
        **numbers,
    )

def configure_logging():
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

def pipeline_config(app=None) -> PipelineConfig:
    return (app or current_app).extensions[EXTENSION_KEY]

# App factory: sets configuration, initializes the database, registers routes and CLI commands, starts the scheduler.
def create_app(config: PipelineConfig | None = None):
    configure_logging()

    app = Flask(__name__)
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///weather.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    config = config or PipelineConfig.from_env()
    app.extensions[EXTENSION_KEY] = config

    db.init_app(app)

    with app.app_context():
        db.create_all()

    @app.errorhandler(DateParseError)
    def bad_date(error):
        return jsonify(error=str(error)), 400

    @app.errorhandler(StoreError)
    def store_unavailable(error):
        logger.error("Store error while handling %s: %s", request.path, error)
        return jsonify(error="Weather store is unavailable."), 503

    # Runs one fetch cycle on demand.
    @app.route("/weather/get", methods=["GET"])
    def fetch_weather_data():
        run_fetch_cycle(pipeline_config())
        return "Weather data is being fetched", 200

    # Stores a caller-supplied record as-is, bypassing the fetch logic.
    @app.route("/weather", methods=["POST"])
    def create_weather_summary():
        try:
            record = _record_from_json(request.get_json(silent=True), pipeline_config().cities)
        except ValueError as e:
            return jsonify(error=str(e)), 400
        record = WeatherStore().create(record)
        response = jsonify(record.to_dict())
        response.status_code = 201
        response.headers["Location"] = url_for("get_weather_summary", record_id=record.id)
        return response

    @app.route("/weather", methods=["GET"])
    def get_all_weather_summaries():
        return jsonify([r.to_dict() for r in WeatherStore().find_all_records()])

    @app.route("/weather/<int:record_id>", methods=["GET"])
    def get_weather_summary(record_id):
        record = WeatherStore().get(record_id)
        if record is None:
            return jsonify(error="Record not found."), 404
        return jsonify(record.to_dict())

    @app.route("/weather/summary/<city>/<date_str>", methods=["GET"])
    def get_weather_summary_by_city_and_date(city, date_str):
        record = WeatherStore().find_first_match(city, _parse_date(date_str))
        if record is None:
            return jsonify(error="Record not found."), 404
        return jsonify(record.to_dict())

    # Today's first record for the city.
    @app.route("/weather/summary/<city>", methods=["GET"])
    def get_weather_summary_by_city(city):
        record = WeatherStore().find_first_match(city, date.today())
        if record is None:
            return jsonify(error="Record not found."), 404
        return jsonify(record.to_dict())

    @app.route("/weather/by-date/<date_str>", methods=["GET"])
    def get_weather_summaries_by_date(date_str):
        records = WeatherStore().find_by_date(_parse_date(date_str))
        return jsonify([r.to_dict() for r in records])

    @app.route("/weather/historical-summary/<city>", methods=["GET"])
    def get_historical_weather_summary(city):
        start = _parse_date(request.args.get("startDate"), "startDate")
        end = _parse_date(request.args.get("endDate"), "endDate")
        records = WeatherStore().find_all_in_range(city, start, end)
        if not records:
            return jsonify(error="No records in range."), 404
        return jsonify([r.to_dict() for r in records])

    @app.cli.command("fetch-weather")
    def fetch_weather_command():
        """Run one fetch cycle for all configured cities."""
        report = run_fetch_cycle(pipeline_config())
        click.echo(report.summary())
        if report.failed:
            click.echo(f"Failed: {', '.join(report.failed)}")

    @app.cli.command("aggregate-weather")
    def aggregate_weather_command():
        """Aggregate today's weather records into one daily summary per city."""
        report = run_aggregation_cycle(pipeline_config())
        click.echo(report.summary())
        if report.failed:
            click.echo(f"Failed: {', '.join(report.failed)}")

    # One-off `flask` commands load the app inside a click context and must not
    # start background cycles of their own.
    if config.scheduler_enabled and click.get_current_context(silent=True) is None:
        start_scheduler(app, config)

    return app

if __name__ == "__main__":
    app = create_app()
    # The reloader would start a second scheduler in the child process.
    app.run(debug=os.environ.get("FLASK_DEBUG") == "1", use_reloader=False)
