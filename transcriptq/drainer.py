"""One scheduler tick: poll in-flight jobs, then submit a batch of pending ones."""

import logging
import time
from typing import Callable, List
from .errors import JobNotFound
from .models import Job, JobStatus, TickReport
from .poller import Poller
from .storage import Storage
from .submitter import Submitter

logger = logging.getLogger(__name__)


class TimeBudget:
    """Elapsed-time check against a budget below the host's execution ceiling."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self.clock = clock
        self.started = clock()

    @property
    def elapsed(self) -> float:
        return self.clock() - self.started

    def exhausted(self) -> bool:
        return self.elapsed >= self.seconds


class Drainer:
    """Drains the queue index within a time budget.

    Nothing is kept between ticks. Every tick starts from a fresh snapshot of
    the queue index and the records it points to, so a tick can crash or
    overlap with another one without losing jobs.
    """

    def __init__(
        self,
        storage: Storage,
        submitter: Submitter,
        poller: Poller,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.storage = storage
        self.submitter = submitter
        self.poller = poller
        self.clock = clock

    def tick(self) -> TickReport:
        config = self.storage.get_config()
        budget = TimeBudget(config.time_budget_seconds, self.clock)
        report = TickReport()

        snapshot = self.storage.queue_snapshot()
        processing: List[Job] = []
        pending: List[Job] = []
        for job_id in snapshot:
            if self._out_of_time(budget, report):
                return report
            try:
                job = self.storage.get_job(job_id)
            except JobNotFound:
                logger.warning("Dropping orphaned queue entry %s", job_id, extra={"job_id": job_id})
                self.storage.remove_from_queue(job_id)
                report.repaired += 1
                continue
            if job.is_terminal:
                logger.warning("Dropping %s job %s from queue", job.status.value, job_id, extra={"job_id": job_id})
                self.storage.remove_from_queue(job_id)
                report.repaired += 1
            elif job.status == JobStatus.PROCESSING:
                processing.append(job)
            else:
                pending.append(job)

        for job in processing:
            if self._out_of_time(budget, report):
                return report
            if self._run(self.poller.poll, job, report):
                report.polled += 1

        for job in pending[: config.batch_size]:
            if self._out_of_time(budget, report):
                return report
            if self._run(self.submitter.submit, job, report):
                report.submitted += 1

        logger.info(
            "Tick done in %.1fs: polled %d, submitted %d, repaired %d",
            budget.elapsed, report.polled, report.submitted, report.repaired,
        )
        return report

    def _out_of_time(self, budget: TimeBudget, report: TickReport) -> bool:
        if not budget.exhausted():
            return False
        report.stopped_early = True
        logger.warning(
            "Time budget of %ss used up after %.1fs, leaving the rest for the next tick",
            budget.seconds, budget.elapsed,
        )
        return True

    def _run(self, step: Callable[[Job], Job], job: Job, report: TickReport) -> bool:
        # One bad job must not stop the rest of the tick.
        try:
            step(job)
        except Exception:
            logger.exception("Error handling job %s", job.id, extra={"job_id": job.id})
            report.errors += 1
            return False
        return True
