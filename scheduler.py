import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from database import session_scope
from services import reconcile_all_budgets


logger = logging.getLogger(__name__)

# job id -> misfire grace in seconds
RECONCILE_JOBS = {"reconcile_daily": 3600, "reconcile_hourly_safety": 300}


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.enabled = settings.scheduler_enabled
        self.timezone = settings.timezone
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _triggers(self) -> dict:
        return {
            "reconcile_daily": CronTrigger(hour=3, minute=15, timezone=self.timezone),
            "reconcile_hourly_safety": IntervalTrigger(hours=1, timezone=self.timezone),
        }

    def reconcile(self, job_id: str = "manual") -> int:
        with session_scope() as session:
            corrected = reconcile_all_budgets(session)
        if corrected:
            logger.warning(f"reconcile_job: job={job_id} corrected={corrected}")
        else:
            logger.info(f"reconcile_job: job={job_id} clean")
        return corrected

    def start(self) -> None:
        if not self.enabled:
            logger.info("scheduler_skipped: BUDGETMATE_SCHEDULER_ENABLED is off")
            return

        # Repair anything left over from an unclean shutdown before serving.
        self.reconcile("startup")

        for job_id, trigger in self._triggers().items():
            self.scheduler.add_job(
                self.reconcile,
                trigger,
                args=[job_id],
                id=job_id,
                replace_existing=True,
                coalesce=True,
                max_instances=1,
                misfire_grace_time=RECONCILE_JOBS[job_id],
            )

        self.scheduler.start()
        logger.info(f"scheduler_started: jobs={sorted(RECONCILE_JOBS)}")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("scheduler_stopped")
