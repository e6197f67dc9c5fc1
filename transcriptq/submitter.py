"""Hands pending jobs to the transcription service."""

import logging
from .client import TranscriptionClient
from .errors import InvalidResource, ResourceTooLarge, SubmissionError
from .models import Job, JobStatus
from .queue import JobQueue
from .resources import ResourceStore

logger = logging.getLogger(__name__)


class Submitter:
    """Submits one pending job per call.

    Size and readability problems fail the job without using up an attempt,
    since retrying cannot fix them. Service errors go through the attempt
    counter on the job.
    """

    def __init__(self, queue: JobQueue, resources: ResourceStore, client: TranscriptionClient):
        self.queue = queue
        self.resources = resources
        self.client = client

    def submit(self, job: Job) -> Job:
        if job.status != JobStatus.PENDING:
            logger.debug("Job %s is %s, not submitting", job.id, job.status.value)
            return job

        config = self.queue.storage.get_config()
        if job.resource.size > config.max_resource_bytes:
            self.queue.mark_failed(job, str(ResourceTooLarge(job.resource.size, config.max_resource_bytes)))
            return job

        try:
            data = self.resources.read(job.resource)
        except InvalidResource as e:
            self.queue.mark_failed(job, str(e))
            return job

        try:
            handle = self.client.submit(job.request_payload, job.resource, data, idempotency_key=job.id)
        except SubmissionError as e:
            self.queue.record_submission_failure(job, e)
            return job

        self.queue.mark_processing(job, handle)
        logger.info("Submitted job %s, handle %s", job.id, handle, extra={"job_id": job.id})
        return job
