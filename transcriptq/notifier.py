"""Best-effort messages to job owners when a job finishes."""

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Callable, List, Optional
from .errors import NotificationDeliveryFailure
from .models import Job, NotificationMessage
from .storage import Storage

logger = logging.getLogger(__name__)

OUTBOX_KEY = "outbox"


class Notifier(ABC):
    """Sends a terminal-state message to ``job.owner_ref``.

    Delivery problems are logged and reported through the return value; they
    never propagate to the caller or touch job state.
    """

    def __init__(self, link_for: Optional[Callable[[str], str]] = None):
        self.link_for = link_for

    def notify(self, job: Job, success: bool) -> bool:
        message = self.build_message(job, success)
        try:
            self.deliver(message)
        except Exception as e:
            failure = NotificationDeliveryFailure(f"Could not notify {job.owner_ref}: {e}")
            logger.warning(str(failure), extra={"job_id": job.id})
            return False
        logger.info("Notified %s about job %s", job.owner_ref, job.id, extra={"job_id": job.id})
        return True

    def build_message(self, job: Job, success: bool) -> NotificationMessage:
        if success:
            link = job.artifact_ref or ""
            if job.artifact_ref and self.link_for:
                link = self.link_for(job.artifact_ref)
            subject = "Your transcription is ready"
            body = (
                f"The transcription job {job.id} for {job.correlation_ref} has completed.\n\n"
                f"Transcript: {link}\n"
            )
        else:
            subject = "Your transcription could not be completed"
            body = (
                f"The transcription job {job.id} for {job.correlation_ref} failed.\n\n"
                f"Error: {job.last_error or 'unknown error'}\n\n"
                "You can retry using the manual transcription option.\n"
            )
        return NotificationMessage(
            recipient=job.owner_ref,
            subject=subject,
            body=body,
            job_id=job.id,
            success=success,
        )

    @abstractmethod
    def deliver(self, message: NotificationMessage) -> None:
        ...


class OutboxNotifier(Notifier):
    """Appends messages to the store's outbox instead of sending them."""

    def __init__(self, storage: Storage, link_for: Optional[Callable[[str], str]] = None):
        super().__init__(link_for)
        self.storage = storage

    def deliver(self, message: NotificationMessage) -> None:
        entry = message.model_dump(mode="json")
        self.storage.update(OUTBOX_KEY, lambda items: items + [entry], [])

    def messages(self) -> List[NotificationMessage]:
        return [NotificationMessage(**m) for m in self.storage.get(OUTBOX_KEY, [])]


class SmtpNotifier(Notifier):
    """Sends plain-text email through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        sender: str = "transcriptq@localhost",
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 30.0,
        link_for: Optional[Callable[[str], str]] = None,
    ):
        super().__init__(link_for)
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def deliver(self, message: NotificationMessage) -> None:
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = message.recipient
        email["Subject"] = message.subject
        email.set_content(message.body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(email)
