import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler

from config import PipelineConfig
from pipeline import run_fetch_cycle, run_aggregation_cycle

logger = logging.getLogger(__name__)

FETCH_JOB_ID = "fetch_cycle"
STARTUP_FETCH_JOB_ID = "startup_fetch"
AGGREGATION_JOB_ID = "daily_aggregation"


def _in_app_context(app, cycle, config: PipelineConfig):
    def job():
        with app.app_context():
            cycle(config)
    job.__name__ = cycle.__name__
    return job


def build_scheduler(app, config: PipelineConfig) -> BackgroundScheduler:
    """Register the startup fetch and both periodic cycles without starting them."""
    scheduler = BackgroundScheduler()
    # A cycle still running when its next run is due is not started twice.
    options = {"max_instances": 1, "coalesce": True}
    fetch_job = _in_app_context(app, run_fetch_cycle, config)
    aggregate_job = _in_app_context(app, run_aggregation_cycle, config)

    # No trigger: runs once as soon as the scheduler starts.
    scheduler.add_job(fetch_job, id=STARTUP_FETCH_JOB_ID, **options)
    scheduler.add_job(fetch_job, "interval", seconds=config.fetch_interval, id=FETCH_JOB_ID, **options)
    scheduler.add_job(aggregate_job, "interval", seconds=config.aggregation_interval, id=AGGREGATION_JOB_ID, **options)
    return scheduler


def start_scheduler(app, config: PipelineConfig) -> BackgroundScheduler:
    scheduler = build_scheduler(app, config)
    scheduler.start()
    atexit.register(shutdown_scheduler, scheduler)
    logger.info(
        "Scheduler started: fetch every %ss, aggregation every %ss, cities: %s",
        config.fetch_interval, config.aggregation_interval, ", ".join(config.cities),
    )
    return scheduler


def shutdown_scheduler(scheduler: BackgroundScheduler):
    if scheduler.running:
        logger.info("Stopping scheduler")
        scheduler.shutdown(wait=False)
