"""Persistent key-value storage for jobs and the queue index."""

import json
import os
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional
from urllib.parse import quote, unquote
from .errors import JobNotFound, LockAcquisitionTimeout
from .models import Config, Job, JobStatus

# Handle platform-specific locking
if sys.platform == "win32":
    import msvcrt
else:
    import fcntl


QUEUE_KEY = "queue"
CONFIG_KEY = "config"
JOB_PREFIX = "job:"


class Storage:
    """File-based key-value store with cross-process locking.

    Every key is one JSON file under ``<data_dir>/kv``. Single-key writes are
    atomic (temp file + rename). Read-modify-write of a key goes through
    :meth:`update`, which holds an exclusive lock on the whole store.
    """

    def __init__(self, data_dir: str = ".transcriptq"):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.kv_dir = self.data_dir / "kv"
        self.kv_dir.mkdir(exist_ok=True)
        self.locks_dir = self.data_dir / "locks"
        self.locks_dir.mkdir(exist_ok=True)

        if not self._key_path(CONFIG_KEY).exists():
            self.set_config(Config())

    def _key_path(self, key: str) -> Path:
        return self.kv_dir / f"{quote(key, safe='')}.json"

    def _write_json(self, file_path: Path, data: Any) -> None:
        """Write data to JSON file with atomic write."""
        temp_file = file_path.with_name(f".{file_path.name}.{uuid.uuid4().hex}.tmp")
        with open(temp_file, "w") as f:
            json.dump(data, f, indent=2, default=str)
        temp_file.replace(file_path)

    def _read_json(self, file_path: Path, default: Any = None) -> Any:
        """Read JSON file safely."""
        if not file_path.exists():
            return default
        with open(file_path, "r") as f:
            return json.load(f)

    # Generic key-value operations

    def get(self, key: str, default: Any = None) -> Any:
        return self._read_json(self._key_path(key), default)

    def put(self, key: str, value: Any) -> None:
        self._write_json(self._key_path(key), value)

    def delete(self, key: str) -> bool:
        try:
            self._key_path(key).unlink()
        except FileNotFoundError:
            return False
        return True

    def exists(self, key: str) -> bool:
        return self._key_path(key).exists()

    def keys(self, prefix: str = "") -> List[str]:
        """List stored keys starting with ``prefix``, sorted."""
        found = []
        for path in self.kv_dir.glob("*.json"):
            if path.name.startswith("."):
                continue
            key = unquote(path.name[: -len(".json")])
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)

    def update(self, key: str, fn: Callable[[Any], Any], default: Any = None) -> Any:
        """Atomically replace the value at ``key`` with ``fn(current)``."""
        with self._store_lock():
            value = fn(self.get(key, default))
            self.put(key, value)
            return value

    # Job records

    def add_job(self, job: Job) -> None:
        """Persist a new job record."""
        key = JOB_PREFIX + job.id
        if self.exists(key):
            raise ValueError(f"Job {job.id} already exists")
        self.put(key, job.model_dump(mode="json"))

    def get_job(self, job_id: str) -> Job:
        """Get a job by ID."""
        data = self.get(JOB_PREFIX + job_id)
        if data is None:
            raise JobNotFound(job_id)
        return Job(**data)

    def update_job(self, job: Job) -> None:
        """Replace an existing job record. Last writer wins."""
        key = JOB_PREFIX + job.id
        if not self.exists(key):
            raise JobNotFound(job.id)
        self.put(key, job.model_dump(mode="json"))

    def delete_job(self, job_id: str) -> bool:
        return self.delete(JOB_PREFIX + job_id)

    def iter_jobs(self) -> Iterator[Job]:
        for key in self.keys(JOB_PREFIX):
            data = self.get(key)
            if data is not None:
                yield Job(**data)

    def get_jobs_by_status(self, status: JobStatus) -> List[Job]:
        """Get all jobs in a specific status, oldest first."""
        jobs = [job for job in self.iter_jobs() if job.status == status]
        return sorted(jobs, key=lambda job: job.created_at)

    def get_all_jobs(self) -> List[Job]:
        return sorted(self.iter_jobs(), key=lambda job: job.created_at)

    # Queue index

    def queue_snapshot(self) -> List[str]:
        """Ordered ids of non-terminal jobs. Read-only."""
        return list(self.get(QUEUE_KEY, []))

    def enqueue(self, job_id: str) -> None:
        """Append a job id to the queue index. No-op if already queued."""
        def append(ids):
            if job_id not in ids:
                ids.append(job_id)
            return ids
        self.update(QUEUE_KEY, append, [])

    def remove_from_queue(self, job_id: str) -> bool:
        removed = []

        def drop(ids):
            if job_id in ids:
                removed.append(job_id)
            return [i for i in ids if i != job_id]
        self.update(QUEUE_KEY, drop, [])
        return bool(removed)

    # Locking

    def _lock_path(self, name: str) -> Path:
        return self.locks_dir / f"{quote(name, safe='')}.lock"

    def acquire_lock(self, name: str) -> Optional[int]:
        """Acquire a named lock. Returns lock file descriptor or None if held elsewhere."""
        fd = os.open(str(self._lock_path(name)), os.O_CREAT | os.O_WRONLY, 0o644)
        try:
            if sys.platform == "win32":
                msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
            else:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            os.close(fd)
            return None
        return fd

    def release_lock(self, fd: int) -> None:
        """Release a lock."""
        try:
            if sys.platform == "win32":
                os.lseek(fd, 0, os.SEEK_SET)
                msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    @contextmanager
    def lock(self, name: str, timeout: float, poll_interval: float = 0.05) -> Iterator[None]:
        """Hold the named lock for the duration of the block.

        Raises LockAcquisitionTimeout if it cannot be acquired within ``timeout``
        seconds. The lock is released on every exit path.
        """
        deadline = time.monotonic() + timeout
        fd = self.acquire_lock(name)
        while fd is None:
            if time.monotonic() >= deadline:
                raise LockAcquisitionTimeout(name, timeout)
            time.sleep(poll_interval)
            fd = self.acquire_lock(name)
        try:
            yield
        finally:
            self.release_lock(fd)

    @contextmanager
    def _store_lock(self) -> Iterator[None]:
        fd = os.open(str(self._lock_path("_store")), os.O_CREAT | os.O_WRONLY, 0o644)
        try:
            if sys.platform == "win32":
                msvcrt.locking(fd, msvcrt.LK_LOCK, 1)
            else:
                fcntl.flock(fd, fcntl.LOCK_EX)
        except OSError:
            os.close(fd)
            raise
        try:
            yield
        finally:
            self.release_lock(fd)

    # Configuration

    def get_config(self) -> Config:
        """Get current configuration."""
        return Config(**self.get(CONFIG_KEY, {}))

    def set_config(self, config: Config) -> None:
        """Update configuration."""
        self.put(CONFIG_KEY, config.model_dump())

    def get_stats(self) -> Dict[str, int]:
        """Get job statistics."""
        stats = {status.value: 0 for status in JobStatus}
        total = 0
        for job in self.iter_jobs():
            stats[job.status.value] += 1
            total += 1
        stats["total"] = total
        stats["queued"] = len(self.queue_snapshot())
        return stats
