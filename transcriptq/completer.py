"""Turns a successful service result into a transcript document."""

import logging
from typing import Any, Callable, Dict, Optional, Union
from .artifacts import ArtifactStore
from .errors import ArtifactCreationFailure, CompletionError, JobNotFound, LockAcquisitionTimeout
from .models import Job
from .queue import JobQueue
from .storage import Storage
from .transcript import extract_result_text

logger = logging.getLogger(__name__)


class Completer:
    """Finalizes jobs under a per-job lock.

    Overlapping ticks may poll the same job and both see it succeed; the lock
    plus the re-read after acquiring it make sure only one of them creates an
    artifact. Whatever goes wrong after the lock is taken, the job leaves
    ``processing``.
    """

    def __init__(self, queue: JobQueue, artifacts: ArtifactStore):
        self.queue = queue
        self.artifacts = artifacts

    @property
    def storage(self) -> Storage:
        return self.queue.storage

    def lock_name(self, job_id: str) -> str:
        return f"complete-{job_id}"

    def complete(self, job_id: str, result: Optional[Union[str, Dict[str, Any]]]) -> Optional[Job]:
        """Complete ``job_id`` with the raw service result.

        Returns the job as left by this call, or None when the lock could not
        be taken (the job is untouched and will be polled again next tick).
        """
        return self._with_lock(job_id, lambda job: self._materialize(job, result))

    def fail(self, job_id: str, error_message: str) -> Optional[Job]:
        """Fail a processing job without racing a concurrent completion."""
        return self._with_lock(job_id, lambda job: self.queue.mark_failed(job, error_message))

    def _with_lock(self, job_id: str, finalize: Callable[[Job], None]) -> Optional[Job]:
        timeout = self.storage.get_config().lock_timeout_seconds
        try:
            with self.storage.lock(self.lock_name(job_id), timeout):
                try:
                    job = self.storage.get_job(job_id)
                except JobNotFound:
                    logger.warning("Job %s vanished before completion", job_id, extra={"job_id": job_id})
                    return None
                if job.is_terminal:
                    logger.debug("Job %s already %s", job_id, job.status.value, extra={"job_id": job_id})
                    return job
                finalize(job)
                return job
        except LockAcquisitionTimeout as e:
            logger.warning("Skipping job %s this tick: %s", job_id, e, extra={"job_id": job_id})
            return None

    def _materialize(self, job: Job, result: Optional[Union[str, Dict[str, Any]]]) -> None:
        try:
            text = extract_result_text(result)
            artifact = self.artifacts.create(job, text)
        except CompletionError as e:
            self.queue.mark_failed(job, str(e))
            return
        except Exception as e:
            failure = ArtifactCreationFailure(f"Could not create transcript document: {e}")
            logger.exception(str(failure), extra={"job_id": job.id})
            self.queue.mark_failed(job, str(failure))
            return

        try:
            self.queue.mark_complete(job, artifact)
        except Exception as e:
            # A record already marked complete only missed its dequeue, which
            # the drainer repairs. Otherwise fail it; if that write fails as
            # well the next poll reuses the artifact written for this job.
            if self.storage.get_job(job.id).is_terminal:
                raise
            failure = ArtifactCreationFailure(f"Could not record transcript document {artifact.id}: {e}")
            logger.exception(str(failure), extra={"job_id": job.id})
            job.artifact_ref = None
            self.queue.mark_failed(job, str(failure))
