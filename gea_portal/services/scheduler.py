"""
Background Job Scheduler for the GEA Member Portal.

Handles scheduled tasks using APScheduler:
- Nightly maintenance (2:00 AM Africa/Gaborone): guest list reminders,
  bump window promotion
- RSO daily summary (6:00 AM Africa/Gaborone)

Job failures are counted per job over 24 hours; a job that reaches the
threshold is paused and the board is alerted.
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from gea_portal.core.config import settings
from gea_portal.core.exceptions import SchedulerJobError


# Configure logging
logger = logging.getLogger(__name__)


# ==========================================
# JOB FAILURE MONITOR
# ==========================================

class JobFailureMonitor:
    """
    Monitor job failures and alert when threshold exceeded.

    Prevents silent scheduler failures that would leave tentative
    reservations unpromoted for days.
    """

    def __init__(self, failure_threshold: int = 2):
        self.failure_threshold = failure_threshold
        self.failed_jobs: Dict[str, List[datetime]] = defaultdict(list)
        self.paused_jobs: set = set()

    async def record_success(self, job_id: str) -> None:
        """Record job success - reset failure count."""
        self.failed_jobs[job_id] = []
        if job_id in self.paused_jobs:
            self.paused_jobs.remove(job_id)

    async def record_failure(self, job_id: str, error: str) -> bool:
        """
        Record job failure and alert if threshold exceeded.

        Returns True if job should be paused.
        """
        now = datetime.now(timezone.utc)

        self.failed_jobs[job_id].append(now)

        # Keep only failures from last 24 hours
        cutoff = now - timedelta(hours=24)
        self.failed_jobs[job_id] = [
            t for t in self.failed_jobs[job_id] if t > cutoff
        ]

        failure_count = len(self.failed_jobs[job_id])

        if failure_count >= self.failure_threshold:
            await self._send_critical_alert(job_id, failure_count, error)
            self.paused_jobs.add(job_id)
            return True

        return False

    async def _send_critical_alert(self, job_id: str, failure_count: int, error: str) -> None:
        """Queue an alert to the board when job failures exceed threshold."""
        from gea_portal.services.notifications import NotificationService, Templates

        NotificationService().notify(Templates.JOB_FAILURE_ALERT, settings.email_board, {
            "JOB_ID": job_id,
            "FAILURE_COUNT": failure_count,
            "LAST_ERROR": error,
            "SERVICE": settings.app_name,
            "TIME": datetime.now(timezone.utc).isoformat(),
        })

        logger.critical(
            f"CRITICAL: Job {job_id} failed {failure_count} times. "
            f"Last error: {error}. Job paused."
        )

    def get_status(self) -> Dict[str, Any]:
        """Get current failure status for all jobs."""
        return {
            job_id: {
                "failure_count": len(failures),
                "last_failure": failures[-1].isoformat() if failures else None,
                "is_paused": job_id in self.paused_jobs
            }
            for job_id, failures in self.failed_jobs.items()
        }


# Global job monitor
job_monitor = JobFailureMonitor(
    failure_threshold=settings.job_failure_alert_threshold
)


class PortalScheduler:
    """
    Background job scheduler for the portal.

    Uses APScheduler with an in-memory job store; only one worker per
    deployment should run it (see settings.run_scheduler).
    """

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.is_running = False
        self.job_monitor = job_monitor

        tz = settings.scheduler_timezone
        self.jobs_config = {
            "nightly_maintenance": {
                "func": nightly_maintenance_job,
                "trigger": CronTrigger(hour=settings.nightly_tasks_hour, minute=0, timezone=tz),
                "name": "Nightly Reservation Maintenance",
                "description": "Guest list reminders and bump window promotion"
            },
            "rso_daily_summary": {
                "func": rso_daily_summary_job,
                "trigger": CronTrigger(hour=settings.rso_summary_hour, minute=0, timezone=tz),
                "name": "RSO Daily Summary",
                "description": "Email today's reservations to the RSO"
            },
        }

    def create_scheduler(self) -> AsyncIOScheduler:
        """Create and configure the scheduler."""
        jobstores = {
            'default': MemoryJobStore()
        }

        executors = {
            'default': AsyncIOExecutor()
        }

        job_defaults = {
            'coalesce': True,  # Combine missed runs into one
            'max_instances': 1,  # Only one instance of each job at a time
            'misfire_grace_time': 300  # 5 minute grace period
        }

        return AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone=settings.scheduler_timezone
        )

    def start(self):
        """Start the scheduler with all jobs."""
        if self.is_running:
            logger.warning("Scheduler is already running")
            return

        self.scheduler = self.create_scheduler()

        for job_id, config in self.jobs_config.items():
            self.scheduler.add_job(
                config["func"],
                config["trigger"],
                id=job_id,
                name=config["name"],
                replace_existing=True
            )

        self.scheduler.start()
        self.is_running = True
        logger.info("🚀 Portal Scheduler started successfully")

        for job in self.scheduler.get_jobs():
            logger.info(f"  - {job.name}: Next run at {job.next_run_time}")

    def stop(self):
        """Stop the scheduler gracefully."""
        if self.scheduler and self.is_running:
            self.scheduler.shutdown(wait=True)
            self.is_running = False
            logger.info("🛑 Portal Scheduler stopped")

    def get_jobs_status(self) -> list:
        """Get status of all scheduled jobs."""
        if not self.scheduler:
            return []

        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "pending": job.pending
            }
            for job in self.scheduler.get_jobs()
        ]

    def pause_job(self, job_id: str) -> bool:
        """Pause a specific job."""
        if not self.scheduler:
            return False
        self.scheduler.pause_job(job_id)
        logger.info(f"Paused job: {job_id}")
        return True

    def get_health_status(self) -> Dict[str, Any]:
        """
        Get scheduler health status for monitoring.

        Returns scheduler status and job failure information.
        """
        failed_jobs = self.job_monitor.get_status()
        has_failures = any(
            info["failure_count"] > 0
            for info in failed_jobs.values()
        )

        return {
            "status": "degraded" if has_failures else "healthy",
            "is_running": self.is_running,
            "jobs": self.get_jobs_status(),
            "failures": failed_jobs,
            "paused_jobs": list(self.job_monitor.paused_jobs)
        }


# ==========================================
# JOB IMPLEMENTATIONS
# ==========================================

async def _handle_job_failure(job_id: str, error: Exception) -> None:
    should_pause = await job_monitor.record_failure(job_id, str(error))
    if should_pause:
        scheduler = get_scheduler()
        if scheduler.scheduler:
            scheduler.pause_job(job_id)


async def nightly_maintenance_job():
    """
    Nightly reservation maintenance.

    Every task runs even if an earlier one fails; the job is reported as
    failed afterwards if any task did.
    """
    job_id = "nightly_maintenance"
    logger.info("🌙 Starting nightly maintenance...")
    start_time = datetime.now(timezone.utc)

    try:
        from gea_portal.services.maintenance import run_nightly_maintenance

        report = run_nightly_maintenance()
        elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()

        if not report.success:
            raise SchedulerJobError(
                job_id,
                "; ".join(f"{o.name}: {o.error}" for o in report.failed)
            )

        logger.info(f"✅ Nightly maintenance completed in {elapsed:.2f}s")
        await job_monitor.record_success(job_id)
        return report.to_dict()

    except Exception as e:
        logger.error(f"❌ Nightly maintenance failed: {e}", exc_info=True)
        await _handle_job_failure(job_id, e)
        raise


async def rso_daily_summary_job():
    """Send the RSO the list of today's reservations."""
    job_id = "rso_daily_summary"
    logger.info("📋 Building RSO daily summary...")

    try:
        from gea_portal.services.maintenance import send_rso_daily_summary

        result = send_rso_daily_summary()

        logger.info(f"✅ RSO summary sent: {result['reservations']} reservation(s)")
        await job_monitor.record_success(job_id)
        return result

    except Exception as e:
        logger.error(f"❌ RSO daily summary failed: {e}", exc_info=True)
        await _handle_job_failure(job_id, e)
        raise


# ==========================================
# GLOBAL SCHEDULER INSTANCE
# ==========================================

scheduler = PortalScheduler()


def get_scheduler() -> PortalScheduler:
    """Get the global scheduler instance."""
    return scheduler

