"""Exception hierarchy for transcription jobs."""


class TranscriptQError(Exception):
    """Base class for all transcriptq errors."""


class JobNotFound(TranscriptQError):
    """No record exists for the requested job id."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class PermissionDenied(TranscriptQError):
    """The caller may not queue work for this entity."""


class InvalidResource(TranscriptQError):
    """The resource reference is missing or cannot be read."""


class ResourceNotFound(InvalidResource):
    """The referenced resource does not exist in the resource store."""


class ResourceTooLarge(InvalidResource):
    """The resource exceeds the configured size limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Resource is {size} bytes, over the {limit} byte limit for queued transcription"
        )
        self.size = size
        self.limit = limit


class SubmissionError(TranscriptQError):
    """The transcription service did not accept a job."""


class TransientSubmissionError(SubmissionError):
    """Network error, timeout, rate limit or 5xx. Worth retrying."""


class PermanentSubmissionError(SubmissionError):
    """The service rejected the request in a way retrying will not fix."""


class StatusCheckError(TranscriptQError):
    """The status endpoint was unreachable or answered with an unknown state."""


class ExternalProcessingFailure(TranscriptQError):
    """The transcription service reported that the job failed."""

    def __init__(self, detail: str = ""):
        message = "Transcription service reported failure"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.detail = detail


class CompletionError(TranscriptQError):
    """Materializing a finished job failed."""


class EmptyResult(CompletionError):
    """The service result carried no transcript text."""


class ArtifactCreationFailure(CompletionError):
    """The transcript document could not be created."""


class LockAcquisitionTimeout(TranscriptQError):
    """A named lock was not acquired before its timeout."""

    def __init__(self, name: str, timeout: float):
        super().__init__(f"Could not acquire lock '{name}' within {timeout:g}s")
        self.name = name
        self.timeout = timeout


class NotificationDeliveryFailure(TranscriptQError):
    """A terminal notification could not be delivered."""
