"""
Fetch and daily aggregation cycles.

Both cycles walk the configured city list in order and treat every city
independently: a failure is logged with the city name and the loop moves on.
Neither cycle retries; the next scheduled run picks the city up again.
"""
import logging
import threading
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

import weather_api
from config import PipelineConfig
from models import WeatherRecord, RAW_FETCH, DAILY_AGGREGATE
from store import StoreError, WeatherStore

logger = logging.getLogger(__name__)

KELVIN_OFFSET = 273.15
UNKNOWN_CONDITION = "Unknown"

# Fetch cycles may run concurrently (scheduler jobs, HTTP trigger); the
# find-then-create of one city's raw record must not interleave.
_upsert_locks: dict[str, threading.Lock] = {}
_upsert_locks_guard = threading.Lock()


class ConversionError(ValueError):
    pass


@dataclass
class CycleReport:
    name: str
    day: date
    succeeded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{self.name} for {self.day.isoformat()}: "
            f"{len(self.succeeded)} succeeded, {len(self.skipped)} skipped, {len(self.failed)} failed"
        )


def kelvin_to_celsius(kelvin) -> float:
    try:
        return float(kelvin) - KELVIN_OFFSET
    except (TypeError, ValueError) as e:
        raise ConversionError(f"Invalid Kelvin temperature: {kelvin!r}") from e


def check_threshold(city: str, celsius: float, threshold: float = 32.0) -> bool:
    """Log an alert when `celsius` is strictly above `threshold`; return whether it alerted."""
    try:
        if celsius > threshold:
            logger.warning(
                "ALERT! Temperature in %s is now %.2f°C, exceeding the threshold of %.2f°C.",
                city, celsius, threshold,
            )
            return True
    except TypeError:
        logger.error("Cannot compare temperature %r for %s against threshold", celsius, city)
    return False


def upsert_lock(city: str) -> threading.Lock:
    with _upsert_locks_guard:
        return _upsert_locks.setdefault(city, threading.Lock())


# Fetches the current reading for one city and upserts today's raw record.
def fetch_city(city: str, config: PipelineConfig, store: WeatherStore, today: date) -> WeatherRecord:
    reading = weather_api.fetch_current(
        city, config.api_key, base_url=config.provider_url, timeout=config.provider_timeout
    )
    celsius = kelvin_to_celsius(reading.get("temp_k"))
    check_threshold(city, celsius, config.alert_threshold)

    with upsert_lock(city):
        record = store.find_first_match(city, today, kind=RAW_FETCH)
        if record is None:
            record = store.create(WeatherRecord(city=city, date=today, kind=RAW_FETCH, avg_temp=celsius))
            logger.info("Saved new weather summary for %s: %.2f°C (%s)", city, celsius, reading.get("condition"))
        else:
            record.avg_temp = celsius
            record = store.save(record)
            logger.info("Updated weather summary for %s: %.2f°C (%s)", city, celsius, reading.get("condition"))
    return record


def run_fetch_cycle(config: PipelineConfig, store: WeatherStore | None = None, today: date | None = None) -> CycleReport:
    store = store or WeatherStore()
    today = today or date.today()
    report = CycleReport("Fetch cycle", today)
    logger.info("Fetching weather data for %d cities on %s", len(config.cities), today.isoformat())

    for city in config.cities:
        try:
            fetch_city(city, config, store, today)
        except (weather_api.ProviderError, ConversionError, StoreError) as e:
            logger.error("Failed to fetch or process weather data for %s: %s", city, e)
            report.failed.append(city)
        except Exception:
            logger.exception("Unexpected error while processing weather data for %s", city)
            store.rollback()
            report.failed.append(city)
        else:
            report.succeeded.append(city)

    logger.info(report.summary())
    return report


def dominant_condition_of(labels: Iterable[str | None]) -> str:
    """Most frequent non-empty label; ties go to the label seen first."""
    counts = Counter(label for label in labels if label)
    if not counts:
        return UNKNOWN_CONDITION
    return counts.most_common(1)[0][0]


def aggregate_records(records: list[WeatherRecord]) -> dict:
    """
    Reduce same-day records into the fields of one daily aggregate.

    Raw fetch records only carry avg_temp, so when no record in the set has a
    max_temp (or min_temp) the extreme is taken over the avg_temp readings.
    """
    if not records:
        raise ValueError("Cannot aggregate an empty set of weather records.")

    readings = [r.avg_temp if r.avg_temp is not None else 0.0 for r in records]
    highs = [r.max_temp for r in records if r.max_temp is not None]
    lows = [r.min_temp for r in records if r.min_temp is not None]

    return {
        "avg_temp": sum(readings) / len(readings),
        "max_temp": max(highs) if highs else max(readings),
        "min_temp": min(lows) if lows else min(readings),
        "dominant_condition": dominant_condition_of(r.dominant_condition for r in records),
    }


def aggregate_city(city: str, store: WeatherStore, today: date) -> WeatherRecord | None:
    records = [r for r in store.find_all(city, today) if r.kind != DAILY_AGGREGATE]
    if not records:
        logger.info("No weather data for %s on %s, skipping aggregation", city, today.isoformat())
        return None

    fields = aggregate_records(records)
    summary = store.create(WeatherRecord(city=city, date=today, kind=DAILY_AGGREGATE, **fields))
    logger.info(
        "Aggregated daily weather for %s from %d record(s): avg %.2f°C, max %.2f°C, min %.2f°C, %s",
        city, len(records), fields["avg_temp"], fields["max_temp"], fields["min_temp"],
        fields["dominant_condition"],
    )
    return summary


def run_aggregation_cycle(config: PipelineConfig, store: WeatherStore | None = None, today: date | None = None) -> CycleReport:
    store = store or WeatherStore()
    today = today or date.today()
    report = CycleReport("Daily aggregation", today)
    logger.info("Aggregating daily weather data for %d cities on %s", len(config.cities), today.isoformat())

    for city in config.cities:
        try:
            summary = aggregate_city(city, store, today)
        except StoreError as e:
            logger.error("Failed to aggregate weather data for %s: %s", city, e)
            report.failed.append(city)
        except Exception:
            logger.exception("Unexpected error while aggregating weather data for %s", city)
            store.rollback()
            report.failed.append(city)
        else:
            (report.succeeded if summary is not None else report.skipped).append(city)

    logger.info(report.summary())
    return report
