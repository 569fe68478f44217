#!/usr/bin/env python3
"""
Publishing Scheduler

Runs the periodic sweeps of the publishing system with APScheduler.
Integrates with FastAPI application lifecycle.

Jobs:
- process_pending_uploads: dispatch scheduled targets whose publish_at has
  passed (every SCHEDULER_PUBLISH_INTERVAL_SECONDS)
- process_workflows: run every active workflow (every
  SCHEDULER_WORKFLOW_INTERVAL_MINUTES)
- retry_failed_removals: re-dispatch retryable failed removals (hourly)
- cleanup_cache: delete expired cache files (hourly)

Usage:
    from scripts.publish_scheduler import start_scheduler, stop_scheduler, trigger_job

    # Start on app startup
    start_scheduler()

    # Stop on app shutdown
    stop_scheduler()

    # Manual trigger
    result = trigger_job("process_pending_uploads")
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import get_settings
from app.services.cache_service import cleanup_cache
from app.services.publishing_service import process_pending_uploads, retry_failed_removals
from app.services.workflow_service import process_all_workflows
from app.utils.logging_utils import setup_logger, get_job_logger


base_logger = setup_logger(logger_name="publish_scheduler")
logger = get_job_logger("scheduler", base_logger)

# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None

# job_id -> last run info
_job_runs: Dict[str, Dict[str, Any]] = {}


def _retry_removals() -> Dict[str, Any]:
    return retry_failed_removals(max_age_hours=get_settings().removal_retry_max_age_hours)


# job_id -> (name, function)
JOBS: Dict[str, tuple] = {
    "process_pending_uploads": ("Process pending uploads", process_pending_uploads),
    "process_workflows": ("Process workflows", process_all_workflows),
    "retry_failed_removals": ("Retry failed removals", _retry_removals),
    "cleanup_cache": ("Cache cleanup", cleanup_cache),
}


def _run_job(job_id: str, func: Callable[[], Dict[str, Any]], manual: bool = False) -> Dict[str, Any]:
    """
    Run one job and record its outcome.

    Exceptions are logged and stored as the job's last status, never raised.
    """
    job_logger = get_job_logger(job_id, base_logger)
    job_logger.info(f"Starting {'manual' if manual else 'scheduled'} run")
    started = datetime.now(timezone.utc)

    try:
        result = func()
        status = "success_manual" if manual else "success"
        job_logger.info(f"Finished in {(datetime.now(timezone.utc) - started).total_seconds():.1f}s: {result}")
        _job_runs[job_id] = {"last_run_time": started.isoformat(), "last_status": status}
        return {"success": True, "job_id": job_id, "result": result, "timestamp": started.isoformat()}
    except Exception as e:
        job_logger.error(f"Job failed: {str(e)}")
        job_logger.exception("Full traceback:")
        status = f"failed{'_manual' if manual else ''}_exception: {str(e)}"
        _job_runs[job_id] = {"last_run_time": started.isoformat(), "last_status": status}
        return {"success": False, "job_id": job_id, "error": str(e), "timestamp": started.isoformat()}


def _scheduled(job_id: str) -> Callable[[], Dict[str, Any]]:
    def run():
        return _run_job(job_id, JOBS[job_id][1])
    return run


def start_scheduler():
    """
    Initialize and start the background scheduler.
    Called on FastAPI app startup. No-op when SCHEDULER_ENABLED is false.
    """
    global _scheduler

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")
        return

    if _scheduler is not None:
        logger.warning("Scheduler already running, skipping start")
        return

    logger.info("=" * 60)
    logger.info("Publishing Scheduler Starting")
    logger.info("=" * 60)
    logger.info(f"Pending uploads: every {settings.scheduler_publish_interval_seconds}s")
    logger.info(f"Workflows: every {settings.scheduler_workflow_interval_minutes} min")
    logger.info(f"Failed removals: hourly (max age {settings.removal_retry_max_age_hours}h)")
    logger.info("Cache cleanup: hourly")

    _scheduler = BackgroundScheduler(
        job_defaults={
            'coalesce': True,  # Combine multiple missed runs into one
            'max_instances': 1,  # A sweep never overlaps itself
        }
    )

    triggers = {
        "process_pending_uploads": IntervalTrigger(seconds=settings.scheduler_publish_interval_seconds),
        "process_workflows": IntervalTrigger(minutes=settings.scheduler_workflow_interval_minutes),
        "retry_failed_removals": IntervalTrigger(hours=1),
        "cleanup_cache": IntervalTrigger(hours=1),
    }
    for job_id, (name, _) in JOBS.items():
        _scheduler.add_job(
            func=_scheduled(job_id),
            trigger=triggers[job_id],
            id=job_id,
            name=name,
            replace_existing=True,
        )

    _scheduler.start()

    for job in _scheduler.get_jobs():
        logger.info(f"Next {job.id}: {job.next_run_time.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    logger.info("Scheduler started successfully")
    logger.info("=" * 60)


def stop_scheduler():
    """
    Gracefully stop the scheduler.
    Called on FastAPI app shutdown.
    """
    global _scheduler

    if _scheduler is None:
        logger.warning("Scheduler not running, skipping stop")
        return

    logger.info("Stopping publishing scheduler...")
    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler stopped successfully")


def get_scheduler_status() -> dict:
    """
    Get current scheduler status for monitoring/debugging.
    Returns dict with scheduler state and next/last run of every job.
    """
    jobs = {}
    for job_id, (name, _) in JOBS.items():
        job = _scheduler.get_job(job_id) if _scheduler else None
        jobs[job_id] = {
            "name": name,
            "next_run_time": job.next_run_time.isoformat() if job and job.next_run_time else None,
            "last_run_time": _job_runs.get(job_id, {}).get("last_run_time"),
            "last_status": _job_runs.get(job_id, {}).get("last_status", "never_run"),
        }

    if _scheduler is None:
        return {"running": False, "message": "Scheduler not started", "jobs": jobs}

    return {"running": True, "jobs": jobs}


def trigger_job(job_id: str) -> dict:
    """
    Run a job immediately in the calling thread.

    Raises:
        KeyError: unknown job id
    """
    if job_id not in JOBS:
        raise KeyError(job_id)
    logger.info(f"Manual trigger: {job_id}")
    return _run_job(job_id, JOBS[job_id][1], manual=True)
