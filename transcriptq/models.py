"""Data models for transcription jobs and configuration."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Job lifecycle states."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STATUSES = (JobStatus.COMPLETE, JobStatus.FAILED)


class ResourceRef(BaseModel):
    """Reference to the media resource being transcribed."""
    id: str
    size: int = Field(ge=0)
    mime_type: str = "audio/mpeg"


class Job(BaseModel):
    """One queued transcription of a single resource."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    owner_ref: str
    correlation_ref: str
    resource: ResourceRef
    request_payload: str
    status: JobStatus = JobStatus.PENDING
    external_handle: Optional[str] = None
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    artifact_ref: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Artifact(BaseModel):
    """Transcript document created for a completed job."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    job_id: str
    correlation_ref: str
    uri: str
    created_at: datetime = Field(default_factory=utcnow)
    component_tags: Dict[str, List[str]] = Field(default_factory=dict)


class Config(BaseModel):
    """Operational tunables, persisted alongside the jobs."""
    max_attempts: int = Field(default=3, ge=1)
    batch_size: int = Field(default=5, ge=1)  # pending submissions per tick
    time_budget_seconds: float = Field(default=300.0, gt=0)  # host ceiling is 360s
    max_resource_bytes: int = Field(default=37 * 1024 * 1024, ge=0)
    retention_days: int = Field(default=7, ge=0)
    lock_timeout_seconds: float = Field(default=30.0, gt=0)
    max_processing_hours: float = Field(default=24.0, ge=0)  # 0 disables
    expected_processing_minutes: int = Field(default=10, ge=0)


class NotificationMessage(BaseModel):
    recipient: str
    subject: str
    body: str
    job_id: str
    success: bool
    created_at: datetime = Field(default_factory=utcnow)


class JobStatusView(BaseModel):
    """What collaborators see when they ask about a job."""
    status: JobStatus
    artifact_ref: Optional[str] = None
    last_error: Optional[str] = None


class CreatedJob(BaseModel):
    job_id: str
    estimated_wait_minutes: int


class TickReport(BaseModel):
    """Summary of one drainer tick."""
    polled: int = 0
    submitted: int = 0
    repaired: int = 0
    errors: int = 0
    stopped_early: bool = False
