"""Deletes finished job records once they are past the retention horizon."""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from .models import NotificationMessage, utcnow
from .notifier import OUTBOX_KEY
from .storage import Storage

logger = logging.getLogger(__name__)

LAST_RUN_KEY = "sweep:last_run"


class RetentionSweeper:

    def __init__(self, storage: Storage, now: Callable[[], datetime] = utcnow):
        self.storage = storage
        self.now = now

    def sweep(self, retention_days: Optional[int] = None) -> int:
        """Delete terminal jobs older than the horizon. Returns how many were deleted.

        Outbox messages past the same horizon are dropped as well.
        """
        if retention_days is None:
            retention_days = self.storage.get_config().retention_days
        now = self.now()
        cutoff = now - timedelta(days=retention_days)

        deleted = 0
        for job in self.storage.iter_jobs():
            if not job.is_terminal:
                continue
            finished = job.completed_at or job.created_at
            if finished < cutoff and self.storage.delete_job(job.id):
                deleted += 1
                logger.debug("Deleted %s job %s", job.status.value, job.id, extra={"job_id": job.id})

        pruned = self.prune_outbox(cutoff)

        self.storage.put(LAST_RUN_KEY, now.isoformat())
        logger.info(
            "Retention sweep deleted %d job(s) and %d outbox message(s) older than %d day(s)",
            deleted, pruned, retention_days,
        )
        return deleted

    def prune_outbox(self, cutoff: datetime) -> int:
        dropped = []

        def keep_recent(entries: List[dict]) -> List[dict]:
            kept = [e for e in entries if NotificationMessage(**e).created_at >= cutoff]
            dropped.append(len(entries) - len(kept))
            return kept

        if self.storage.exists(OUTBOX_KEY):
            self.storage.update(OUTBOX_KEY, keep_recent, [])
        return sum(dropped)

    def last_run(self) -> Optional[datetime]:
        value = self.storage.get(LAST_RUN_KEY)
        return datetime.fromisoformat(value) if value else None
