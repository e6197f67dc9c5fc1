"""Shared fixtures and fakes for the transcriptq test suite."""

import shutil
import tempfile
from typing import Dict, List, Optional

import pytest

from transcriptq.client import ServiceState, ServiceStatus, TranscriptionClient
from transcriptq.errors import ResourceNotFound
from transcriptq.models import ResourceRef
from transcriptq.resources import ResourceStore
from transcriptq.service import TranscriptionService
from transcriptq.storage import Storage

MB = 1024 * 1024


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeTranscriptionClient(TranscriptionClient):
    """Records calls; raises queued errors; answers status checks from a dict."""

    def __init__(self, clock: Optional[FakeClock] = None, latency: float = 0.0):
        self.clock = clock
        self.latency = latency
        self.submissions: List[dict] = []
        self.submit_errors: List[Exception] = []
        self.statuses: Dict[str, object] = {}
        self.status_calls: List[str] = []

    def _tick(self):
        if self.clock is not None:
            self.clock.advance(self.latency)

    def submit(self, payload, resource, data, idempotency_key=None):
        self._tick()
        self.submissions.append({
            "payload": payload,
            "resource_id": resource.id,
            "data": data,
            "idempotency_key": idempotency_key,
        })
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        return f"handle-{len(self.submissions)}"

    def get_status(self, handle):
        self._tick()
        self.status_calls.append(handle)
        status = self.statuses.get(handle, ServiceStatus(state=ServiceState.RUNNING))
        if isinstance(status, Exception):
            raise status
        return status

    def succeed(self, handle, text):
        self.statuses[handle] = ServiceStatus(
            state=ServiceState.SUCCEEDED,
            result={"candidates": [{"content": {"parts": [{"text": text}]}}]},
        )


class MemoryResourceStore(ResourceStore):
    """Resources held in a dict; declared size need not match the bytes."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}

    def add(self, resource_id: str, size: int, mime_type: str = "audio/mpeg", data: bytes = b"ID3audio") -> ResourceRef:
        self.blobs[resource_id] = data
        return ResourceRef(id=resource_id, size=size, mime_type=mime_type)

    def exists(self, resource):
        return resource.id in self.blobs

    def read(self, resource):
        try:
            return self.blobs[resource.id]
        except KeyError:
            raise ResourceNotFound(f"Resource {resource.id} not found")

    def describe(self, resource_id):
        if resource_id not in self.blobs:
            raise ResourceNotFound(f"Resource {resource_id} not found")
        return ResourceRef(id=resource_id, size=len(self.blobs[resource_id]))


@pytest.fixture
def data_dir():
    path = tempfile.mkdtemp(prefix="transcriptq_test_")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def storage(data_dir):
    return Storage(data_dir)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(clock):
    return FakeTranscriptionClient(clock=clock)


@pytest.fixture
def resources():
    return MemoryResourceStore()


@pytest.fixture
def service(storage, resources, client, clock):
    return TranscriptionService(storage, resources, client, clock=clock)


@pytest.fixture
def make_job(service, resources):
    """Create a queued job for a fresh resource of the given size."""
    counter = {"n": 0}

    def _make(size: int = 10 * MB, owner: str = "observer@example.org", correlation: str = "OBS-1") -> str:
        counter["n"] += 1
        resource = resources.add(f"uploads/recording-{counter['n']}.mp3", size)
        return service.queue.create_job(owner, correlation, resource, "Transcribe with speaker labels.")

    return _make
