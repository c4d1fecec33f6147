import traceback
from typing import Any, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from config.common_settings import CommonConfig
from content_lock.expiry_sweeper import ExpirySweeper, SweepMode
from content_lock.repositories import ContentLockRepository
from utils.logging_util import logger


class ContentLockMaintenanceJob:
    """
    Administrative check/clean of content locks.

    The job runner hands over {"mode": "check"|"clean", "max_age_hours": ..., "owner_ids": [...]}
    and gets back the number of matched or removed locks.
    """

    def __init__(self, sweeper: ExpirySweeper = None, config: CommonConfig = None):
        self.logger = logger
        self.config = config
        self.scheduler = None
        if sweeper is None:
            self.config = self.config or CommonConfig()
            sweeper = ExpirySweeper(ContentLockRepository(self.config.get_db_manager()))
        self.sweeper = sweeper

    def run(self, args: Dict[str, Any]) -> int:
        mode = args.get("mode")
        try:
            mode = SweepMode(mode)
        except ValueError:
            raise ValueError(f"Unknown content lock maintenance mode: {mode!r}")

        count = self.sweeper.bulk_clean(args.get("max_age_hours"), args.get("owner_ids"), mode)
        self.logger.info(f"Content lock maintenance ({mode.value}): {count} locks")
        return count

    def check(self, max_age_hours: Any, owner_ids: Optional[list] = None) -> int:
        return self.run({"mode": SweepMode.CHECK, "max_age_hours": max_age_hours, "owner_ids": owner_ids})

    def clean(self, max_age_hours: Any, owner_ids: Optional[list] = None) -> int:
        return self.run({"mode": SweepMode.CLEAN, "max_age_hours": max_age_hours, "owner_ids": owner_ids})

    def clean_from_config(self) -> int:
        maintenance = self.config.get_content_lock_config("maintenance")
        try:
            return self.clean(maintenance["max_age_hours"], maintenance["owner_ids"])
        except Exception as e:
            # keep the scheduler alive; the next interval retries
            self.logger.error(f"Scheduled content lock clean failed: {str(e)}, stack:{traceback.format_exc()}")
            return 0

    def initialize(self) -> bool:
        """Start the interval clean when enabled in app.content_lock.maintenance."""
        self.config = self.config or CommonConfig()
        if not self.config.get_content_lock_config("maintenance.enabled", False):
            self.logger.info("Scheduled content lock clean is disabled")
            return False
        try:
            self.scheduler = BackgroundScheduler()
            self.setup_scheduler()
            self.logger.info("ContentLockMaintenanceJob initialized successfully")
            return True
        except Exception as e:
            self.logger.error(f"Failed to initialize ContentLockMaintenanceJob: {str(e)}, stack:{traceback.format_exc()}")
            return False

    def setup_scheduler(self):
        self.scheduler.add_job(
            self.clean_from_config,
            'interval',
            minutes=self.config.get_content_lock_config("maintenance.interval_minutes", 60),
            id='clean_content_locks',
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()

    def shutdown(self):
        if self.scheduler:
            self.scheduler.shutdown()
            self.scheduler = None
