"""Job creation and state transitions."""

import logging
from typing import Callable, Dict, Optional
from .errors import PermanentSubmissionError, ResourceNotFound, SubmissionError
from .models import Artifact, Job, JobStatus, ResourceRef, utcnow
from .notifier import Notifier
from .resources import ResourceStore
from .storage import Storage

logger = logging.getLogger(__name__)


class JobQueue:
    """Manages job records and the queue index together.

    Terminal transitions write the record first and then drop the id from
    the queue, so a crash in between leaves a terminal id in the queue, which
    the drainer cleans up, rather than a live job missing from it.
    """

    def __init__(
        self,
        storage: Storage,
        resources: ResourceStore,
        notifier: Notifier,
        now: Callable = utcnow,
    ):
        self.storage = storage
        self.resources = resources
        self.notifier = notifier
        self.now = now

    def create_job(
        self,
        owner_ref: str,
        correlation_ref: str,
        resource: Optional[ResourceRef],
        payload: str,
    ) -> str:
        """Persist a new pending job and enqueue it. Returns the job id."""
        if resource is None or not resource.id:
            raise ResourceNotFound("A resource reference is required")
        if not self.resources.exists(resource):
            raise ResourceNotFound(f"Resource {resource.id} is missing or unreadable")

        job = Job(
            owner_ref=owner_ref,
            correlation_ref=correlation_ref,
            resource=resource,
            request_payload=payload,
            created_at=self.now(),
        )
        self.storage.add_job(job)
        self.storage.enqueue(job.id)
        logger.info("Created job %s for %s", job.id, correlation_ref, extra={"job_id": job.id})
        return job.id

    def mark_processing(self, job: Job, handle: str) -> None:
        """Record a successful submission."""
        if job.external_handle is not None:
            raise ValueError(f"Job {job.id} already has an external handle")
        job.external_handle = handle
        job.status = JobStatus.PROCESSING
        job.submitted_at = self.now()
        self.storage.update_job(job)

    def record_submission_failure(self, job: Job, error: SubmissionError) -> None:
        """Count a failed submission; fail the job once attempts run out."""
        config = self.storage.get_config()
        job.attempts = min(job.attempts + 1, config.max_attempts)
        job.last_error = str(error)

        if isinstance(error, PermanentSubmissionError) or job.attempts >= config.max_attempts:
            self.mark_failed(job, f"Submission failed after {job.attempts} attempt(s): {error}")
        else:
            self.storage.update_job(job)
            logger.info(
                "Job %s submission attempt %d failed, will retry: %s",
                job.id, job.attempts, error, extra={"job_id": job.id},
            )

    def mark_complete(self, job: Job, artifact: Artifact) -> None:
        job.status = JobStatus.COMPLETE
        job.completed_at = self.now()
        job.artifact_ref = artifact.id
        job.last_error = None
        self.storage.update_job(job)
        self.storage.remove_from_queue(job.id)
        logger.info("Job %s complete, artifact %s", job.id, artifact.id, extra={"job_id": job.id})
        self.notifier.notify(job, success=True)

    def mark_failed(self, job: Job, error_message: str) -> None:
        job.status = JobStatus.FAILED
        job.completed_at = self.now()
        job.last_error = error_message
        self.storage.update_job(job)
        self.storage.remove_from_queue(job.id)
        logger.warning("Job %s failed: %s", job.id, error_message, extra={"job_id": job.id})
        self.notifier.notify(job, success=False)

    def get_stats(self) -> Dict[str, int]:
        return self.storage.get_stats()
