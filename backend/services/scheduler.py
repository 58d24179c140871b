"""
Pipeline Scheduler

Periodic projection refresh and nightly result settlement.
Uses APScheduler for background job execution.
"""

import logging
import os
from datetime import datetime
from typing import List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED

from .pipeline import ProjectionPipeline
from .sports import Sport

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MINUTES = 15


def sports_from_env() -> List[str]:
    """Sports listed in PIPELINE_SPORTS (comma separated), default all."""
    raw = os.getenv("PIPELINE_SPORTS", "")
    sports = [Sport.parse(s).value for s in raw.split(",") if s.strip()]
    return sports or [s.value for s in Sport]


def interval_from_env() -> int:
    raw = os.getenv("PIPELINE_INTERVAL_MINUTES")
    if not raw:
        return DEFAULT_INTERVAL_MINUTES
    try:
        minutes = int(raw)
    except ValueError:
        raise ValueError(f"PIPELINE_INTERVAL_MINUTES must be an integer, got {raw!r}") from None
    if minutes <= 0:
        raise ValueError("PIPELINE_INTERVAL_MINUTES must be positive")
    return minutes


class PipelineScheduler:
    """
    Scheduler for the projection pipeline.

    Schedules:
    - Pipeline refresh every `interval_minutes`
    - Daily settlement of finished games (4:00 AM)
    """

    def __init__(
        self,
        pipeline: ProjectionPipeline,
        sports: Optional[List[str]] = None,
        interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
        timezone: str = "America/New_York"
    ):
        """
        Initialize the pipeline scheduler.

        Args:
            pipeline: Pipeline the jobs run
            sports: Sport codes to refresh (default all)
            interval_minutes: Minutes between refreshes
            timezone: Timezone for scheduling (default: US Eastern)
        """
        self.pipeline = pipeline
        self.sports = sports or [s.value for s in Sport]
        self.interval_minutes = interval_minutes
        self.timezone = timezone

        self.scheduler = BackgroundScheduler(timezone=timezone)
        self._setup_job_listeners()

        # Track job history
        self.job_history = []

    def _setup_job_listeners(self):
        """Set up listeners for job events."""
        def job_executed(event):
            self.job_history.append({
                'job_id': event.job_id,
                'status': 'success',
                'time': datetime.now().isoformat(),
            })
            logger.info(f"Job executed: {event.job_id}")

        def job_error(event):
            self.job_history.append({
                'job_id': event.job_id,
                'status': 'error',
                'error': str(event.exception),
                'time': datetime.now().isoformat(),
            })
            logger.error(f"Job error: {event.job_id} - {event.exception}")

        self.scheduler.add_listener(job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error, EVENT_JOB_ERROR)

    def start(self):
        """Start the scheduler."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Pipeline scheduler started")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Pipeline scheduler stopped")

    def schedule_refresh(self):
        self.scheduler.add_job(
            self._run_refresh,
            IntervalTrigger(minutes=self.interval_minutes),
            id='pipeline_refresh',
            replace_existing=True,
            name='Projection Pipeline Refresh'
        )
        logger.info(f"Scheduled pipeline refresh every {self.interval_minutes} minutes for {', '.join(self.sports)}")

    def schedule_settlement(self, hour: int = 4, minute: int = 0):
        """
        Schedule daily settlement of opportunities on final games.

        Args:
            hour: Hour to run (0-23), default 4am
            minute: Minute to run (0-59)
        """
        self.scheduler.add_job(
            self._run_settlement,
            CronTrigger(hour=hour, minute=minute),
            id='daily_settlement',
            replace_existing=True,
            name='Daily Result Settlement'
        )
        logger.info(f"Scheduled daily settlement at {hour:02d}:{minute:02d}")

    def schedule_all(self):
        """Schedule all default jobs."""
        self.schedule_refresh()
        self.schedule_settlement()

    def _run_refresh(self) -> dict:
        logger.info("Starting scheduled pipeline refresh")
        result = self.pipeline.run(sports=self.sports)
        if result.errors:
            logger.warning(f"Pipeline refresh finished with {len(result.errors)} errors")
        return result.to_dict()

    def _run_settlement(self) -> dict:
        logger.info("Starting scheduled settlement")
        settled = self.pipeline.settle_results()
        return {'settled': settled}

    def run_now(self, job_name: str) -> dict:
        """
        Run a job immediately.

        Args:
            job_name: 'refresh' or 'settle'

        Returns:
            Job result dict
        """
        if job_name == 'refresh':
            return self._run_refresh()
        elif job_name == 'settle':
            return self._run_settlement()
        else:
            raise ValueError(f"Unknown job: {job_name}")

    def get_status(self) -> dict:
        """
        Get scheduler status and job information.

        Returns:
            Status dict with jobs and history
        """
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, 'next_run_time', None)
            jobs.append({
                'id': job.id,
                'name': job.name,
                'next_run': next_run.isoformat() if next_run else None,
            })

        return {
            'running': self.scheduler.running,
            'interval_minutes': self.interval_minutes,
            'sports': list(self.sports),
            'jobs': jobs,
            'recent_history': self.job_history[-10:],
        }


def create_scheduler(
    pipeline: Optional[ProjectionPipeline] = None,
    auto_start: bool = True
) -> PipelineScheduler:
    """
    Factory function to create and optionally start a scheduler.

    Interval and sports come from PIPELINE_INTERVAL_MINUTES and
    PIPELINE_SPORTS.

    Args:
        pipeline: Pipeline to run (default one bound to the configured database)
        auto_start: Whether to start the scheduler immediately

    Returns:
        Configured PipelineScheduler instance
    """
    scheduler = PipelineScheduler(
        pipeline=pipeline or ProjectionPipeline(),
        sports=sports_from_env(),
        interval_minutes=interval_from_env(),
    )

    scheduler.schedule_all()

    if auto_start:
        scheduler.start()

    return scheduler
