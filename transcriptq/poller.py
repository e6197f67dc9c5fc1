"""Checks on submitted jobs and maps service states onto job states."""

import logging
from datetime import timedelta
from .client import ServiceState, TranscriptionClient
from .completer import Completer
from .errors import ExternalProcessingFailure, StatusCheckError
from .models import Job, JobStatus
from .queue import JobQueue

logger = logging.getLogger(__name__)


class Poller:
    """Polls one processing job per call.

    Polling never touches ``attempts``. A status check that cannot be
    answered leaves the job alone, unless the job has been processing longer
    than ``max_processing_hours``, in which case it is failed.
    """

    def __init__(self, queue: JobQueue, client: TranscriptionClient, completer: Completer):
        self.queue = queue
        self.client = client
        self.completer = completer

    def poll(self, job: Job) -> Job:
        if job.status != JobStatus.PROCESSING or not job.external_handle:
            logger.debug("Job %s is not pollable", job.id, extra={"job_id": job.id})
            return job

        try:
            status = self.client.get_status(job.external_handle)
        except StatusCheckError as e:
            logger.warning("Status check for job %s failed: %s", job.id, e, extra={"job_id": job.id})
            return self._fail_if_stale(job)

        if status.state == ServiceState.SUCCEEDED:
            return self.completer.complete(job.id, status.result) or job
        if status.state == ServiceState.FAILED:
            self.queue.mark_failed(job, str(ExternalProcessingFailure(status.error or "")))
            return job

        logger.debug("Job %s still running", job.id, extra={"job_id": job.id})
        return self._fail_if_stale(job)

    def is_stale(self, job: Job) -> bool:
        limit_hours = self.queue.storage.get_config().max_processing_hours
        if not limit_hours or job.submitted_at is None:
            return False
        return self.queue.now() - job.submitted_at > timedelta(hours=limit_hours)

    def _fail_if_stale(self, job: Job) -> Job:
        if not self.is_stale(job):
            return job
        limit_hours = self.queue.storage.get_config().max_processing_hours
        message = f"Gave up waiting for the transcription service after {limit_hours:g} hours"
        return self.completer.fail(job.id, message) or job
