import os
from dataclasses import dataclass

DEFAULT_CITIES = ("Delhi", "Mumbai", "Chennai", "Bangalore", "Kolkata", "Hyderabad")
OPENWEATHERMAP_URL = "https://api.openweathermap.org/data/2.5/weather"


@dataclass(frozen=True)
class PipelineConfig:
    """Settings shared by the fetch and aggregation cycles."""
    api_key: str = ""
    cities: tuple[str, ...] = DEFAULT_CITIES
    fetch_interval: int = 300
    aggregation_interval: int = 86400
    alert_threshold: float = 32.0
    provider_timeout: float = 10.0
    provider_url: str = OPENWEATHERMAP_URL
    scheduler_enabled: bool = True

    def __post_init__(self):
        if not self.cities:
            raise ValueError("At least one city must be configured.")
        if self.fetch_interval <= 0 or self.aggregation_interval <= 0:
            raise ValueError("Scheduler intervals must be positive.")

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Load pipeline config from environment variables."""
        cities = tuple(
            c.strip() for c in os.getenv("WEATHER_CITIES", ",".join(DEFAULT_CITIES)).split(",") if c.strip()
        )
        return cls(
            api_key=os.getenv("OPENWEATHERMAP_API_KEY", ""),
            cities=cities,
            fetch_interval=int(os.getenv("FETCH_INTERVAL_SECONDS", "300")),
            aggregation_interval=int(os.getenv("AGGREGATION_INTERVAL_SECONDS", "86400")),
            alert_threshold=float(os.getenv("ALERT_THRESHOLD_C", "32.0")),
            provider_timeout=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10")),
            provider_url=os.getenv("OPENWEATHERMAP_URL", OPENWEATHERMAP_URL),
            scheduler_enabled=os.getenv("SCHEDULER_ENABLED", "true").lower() == "true",
        )
