"""
Persistence for weather records.

All reads and writes of WeatherRecord go through WeatherStore. Each write
commits on its own, so a single record update is one transaction. Any failed
statement rolls the session back, so the next call starts on a clean
transaction.
"""
import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from models import db, WeatherRecord

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    pass


class StoreReadError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass


class WeatherStore:
    """Query and write helpers over the Flask-SQLAlchemy session."""

    def __init__(self, session=None):
        self.session = session or db.session

    def _query(self, city: str | None = None, on_date: date | None = None, kind: str | None = None):
        stmt = db.select(WeatherRecord)
        if city is not None:
            stmt = stmt.where(WeatherRecord.city == city)
        if on_date is not None:
            stmt = stmt.where(WeatherRecord.date == on_date)
        if kind is not None:
            stmt = stmt.where(WeatherRecord.kind == kind)
        return stmt.order_by(WeatherRecord.id)

    def _read_failed(self, message: str, error: SQLAlchemyError) -> StoreReadError:
        self.rollback()
        return StoreReadError(f"{message}: {error}")

    def _all(self, stmt) -> list[WeatherRecord]:
        try:
            return list(self.session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            raise self._read_failed("Weather record query failed", e) from e

    def find_first_match(self, city: str, on_date: date, kind: str | None = None) -> WeatherRecord | None:
        try:
            return self.session.execute(self._query(city, on_date, kind).limit(1)).scalars().first()
        except SQLAlchemyError as e:
            raise self._read_failed(f"Weather record lookup failed for {city} on {on_date}", e) from e

    def find_all(self, city: str, on_date: date, kind: str | None = None) -> list[WeatherRecord]:
        return self._all(self._query(city, on_date, kind))

    def find_by_date(self, on_date: date) -> list[WeatherRecord]:
        return self._all(self._query(on_date=on_date))

    def find_all_in_range(self, city: str, start_date: date, end_date: date) -> list[WeatherRecord]:
        """Records for `city` whose date falls within [start_date, end_date]."""
        stmt = (
            db.select(WeatherRecord)
            .where(WeatherRecord.city == city, WeatherRecord.date.between(start_date, end_date))
            .order_by(WeatherRecord.date, WeatherRecord.id)
        )
        return self._all(stmt)

    def find_all_records(self) -> list[WeatherRecord]:
        return self._all(self._query())

    def get(self, record_id: int) -> WeatherRecord | None:
        try:
            return self.session.get(WeatherRecord, record_id)
        except SQLAlchemyError as e:
            raise self._read_failed(f"Weather record {record_id} lookup failed", e) from e

    def create(self, record: WeatherRecord) -> WeatherRecord:
        self.session.add(record)
        return self._commit(record)

    def save(self, record: WeatherRecord) -> WeatherRecord:
        record = self.session.merge(record)
        return self._commit(record)

    def rollback(self):
        try:
            self.session.rollback()
        except SQLAlchemyError as e:
            logger.error("Rolling back the weather store session failed: %s", e)

    def _commit(self, record: WeatherRecord) -> WeatherRecord:
        city = record.city
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.rollback()
            raise StoreWriteError(f"Saving weather record for {city} failed: {e}") from e
        logger.debug("Stored weather record %s for %s", record.id, city)
        return record
