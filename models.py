from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

RAW_FETCH = "raw_fetch"
DAILY_AGGREGATE = "daily_aggregate"
RECORD_KINDS = (RAW_FETCH, DAILY_AGGREGATE)


def _utcnow():
    return datetime.now(timezone.utc)


class WeatherRecord(db.Model):
    __tablename__ = "weather_records"

    id = db.Column(db.Integer, primary_key=True)
    city = db.Column(db.String(120), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)

    kind = db.Column(db.String(32), nullable=False, default=RAW_FETCH)  # "raw_fetch" or "daily_aggregate"

    avg_temp = db.Column(db.Float, nullable=False, default=0.0)
    # Only set on daily aggregates and on records posted with explicit values.
    max_temp = db.Column(db.Float, nullable=True)
    min_temp = db.Column(db.Float, nullable=True)
    dominant_condition = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "city": self.city,
            "date": self.date.isoformat() if self.date else None,
            "kind": self.kind,
            "avgTemp": self.avg_temp,
            "maxTemp": self.max_temp,
            "minTemp": self.min_temp,
            "dominantCondition": self.dominant_condition,
        }

    def __repr__(self):
        return f"<WeatherRecord {self.id} {self.city} {self.date} {self.kind}>"
