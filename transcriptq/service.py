"""Entry points for collaborators: queue a transcription, ask about it, run ticks."""

import logging
import time
from typing import Callable, Optional
from .artifacts import ArtifactStore, LocalArtifactStore
from .client import HttpTranscriptionClient, TranscriptionClient
from .completer import Completer
from .drainer import Drainer
from .errors import PermissionDenied, ResourceTooLarge
from .models import CreatedJob, JobStatus, JobStatusView, ResourceRef, TickReport, utcnow
from .notifier import Notifier, OutboxNotifier, SmtpNotifier
from .poller import Poller
from .queue import JobQueue
from .resources import LocalResourceStore, ResourceStore
from .scheduler import DRAIN_HANDLER, TriggerRegistry
from .settings import Settings
from .storage import Storage
from .submitter import Submitter
from .sweeper import RetentionSweeper

logger = logging.getLogger(__name__)

Authorizer = Callable[[str, str], bool]


class TranscriptionService:
    """Wires the store and the job components together.

    Cheap to build; a new instance per tick or per request is the intended
    use, since nothing here outlives the call that created it.
    """

    def __init__(
        self,
        storage: Storage,
        resources: ResourceStore,
        client: TranscriptionClient,
        notifier: Optional[Notifier] = None,
        artifacts: Optional[ArtifactStore] = None,
        authorize: Optional[Authorizer] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable = utcnow,
    ):
        self.storage = storage
        self.resources = resources
        self.client = client
        self.artifacts = artifacts or LocalArtifactStore(storage)
        self.notifier = notifier or OutboxNotifier(storage, link_for=self.artifacts.link_for)
        self.authorize = authorize

        self.queue = JobQueue(storage, resources, self.notifier, now=now)
        self.completer = Completer(self.queue, self.artifacts)
        self.submitter = Submitter(self.queue, resources, client)
        self.poller = Poller(self.queue, client, self.completer)
        self.drainer = Drainer(storage, self.submitter, self.poller, clock=clock)
        self.sweeper = RetentionSweeper(storage, now=now)
        self.triggers = TriggerRegistry(storage)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "TranscriptionService":
        settings = settings or Settings()
        storage = Storage(settings.data_dir)
        artifacts = LocalArtifactStore(storage, base_url=settings.artifact_base_url)
        if settings.smtp_host:
            notifier = SmtpNotifier(
                host=settings.smtp_host,
                port=settings.smtp_port,
                sender=settings.smtp_sender,
                username=settings.smtp_username,
                password=settings.smtp_password,
                use_tls=settings.smtp_use_tls,
                link_for=artifacts.link_for,
            )
        else:
            notifier = OutboxNotifier(storage, link_for=artifacts.link_for)
        client = HttpTranscriptionClient(
            base_url=settings.service_base_url,
            api_key=settings.service_api_key,
            model=settings.service_model,
            temperature=settings.temperature,
            max_output_tokens=settings.max_output_tokens,
            timeout=settings.service_timeout_seconds,
        )
        kwargs.setdefault("resources", LocalResourceStore(settings.resource_dir))
        kwargs.setdefault("client", client)
        kwargs.setdefault("notifier", notifier)
        kwargs.setdefault("artifacts", artifacts)
        return cls(storage=storage, **kwargs)

    def create_transcription_job(
        self,
        owner_ref: str,
        correlation_ref: str,
        resource: Optional[ResourceRef],
        request_payload: str,
    ) -> CreatedJob:
        """Queue a resource for transcription.

        Raises PermissionDenied, ResourceNotFound or ResourceTooLarge.
        """
        if self.authorize is not None and not self.authorize(owner_ref, correlation_ref):
            raise PermissionDenied(f"{owner_ref} may not queue transcriptions for {correlation_ref}")

        config = self.storage.get_config()
        if resource is not None and resource.size > config.max_resource_bytes:
            raise ResourceTooLarge(resource.size, config.max_resource_bytes)

        jobs_ahead = len(self.storage.get_jobs_by_status(JobStatus.PENDING))
        job_id = self.queue.create_job(owner_ref, correlation_ref, resource, request_payload)
        return CreatedJob(job_id=job_id, estimated_wait_minutes=self.estimate_wait_minutes(jobs_ahead))

    def estimate_wait_minutes(self, jobs_ahead: int) -> int:
        config = self.storage.get_config()
        ticks = jobs_ahead // config.batch_size + 1
        interval = self.triggers.interval_minutes(DRAIN_HANDLER)
        return ticks * interval + config.expected_processing_minutes

    def get_job_status(self, job_id: str) -> JobStatusView:
        """Raises JobNotFound."""
        job = self.storage.get_job(job_id)
        return JobStatusView(status=job.status, artifact_ref=job.artifact_ref, last_error=job.last_error)

    def run_tick(self) -> TickReport:
        return self.drainer.tick()

    def run_sweep(self, retention_days: Optional[int] = None) -> int:
        return self.sweeper.sweep(retention_days)
