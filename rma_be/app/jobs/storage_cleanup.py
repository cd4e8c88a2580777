"""Retention cleanup for evidence and label files.

Runs daily at 02:00 and once shortly after startup when ENABLE_STORAGE_CLEANUP
is set.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_settings
from app.utils.storage import delete_expired_files, storage_root

logger = logging.getLogger(__name__)

job_defaults = {
    "coalesce": True,
    "max_instances": 1,
    "misfire_grace_time": 3600,
}

scheduler = BackgroundScheduler(jobstores={"default": MemoryJobStore()}, job_defaults=job_defaults)


def run_storage_cleanup(now: Optional[datetime] = None) -> Dict[str, int]:
    settings = get_settings()
    root = storage_root() / "rma"
    logger.info("Storage cleanup started (retention %s days)", settings.STORAGE_RETENTION_DAYS)
    try:
        files, dirs = delete_expired_files(root, settings.STORAGE_RETENTION_DAYS, now=now)
    except Exception as e:
        logger.error("Storage cleanup failed: %s", e, exc_info=True)
        return {"deletedFiles": 0, "deletedDirs": 0}
    logger.info("Storage cleanup finished: %d files, %d directories removed", files, dirs)
    return {"deletedFiles": files, "deletedDirs": dirs}


def start_scheduler() -> None:
    if not get_settings().ENABLE_STORAGE_CLEANUP:
        logger.info("Storage cleanup job disabled")
        return
    if scheduler.running:
        return
    scheduler.add_job(
        run_storage_cleanup,
        "cron",
        hour=2,
        minute=0,
        id="storage_cleanup_daily",
        name="Storage retention cleanup",
        replace_existing=True,
    )
    scheduler.add_job(
        run_storage_cleanup,
        "date",
        run_date=datetime.now() + timedelta(seconds=5),
        id="storage_cleanup_startup",
        name="Storage retention cleanup (startup)",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Storage cleanup scheduled (daily at 02:00)")


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
