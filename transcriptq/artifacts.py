"""Transcript documents created for completed jobs."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote
from .errors import ArtifactCreationFailure
from .models import Artifact, Job
from .storage import Storage
from .transcript import clean_transcript, extract_component_tags

ARTIFACT_PREFIX = "artifact:"
LINKS_PREFIX = "links:"


class ArtifactStore(ABC):

    @abstractmethod
    def create(self, job: Job, text: str) -> Artifact:
        """Persist a transcript document linked to ``job.correlation_ref``.

        Raises ArtifactCreationFailure.
        """
        ...

    @abstractmethod
    def get(self, artifact_id: str) -> Optional[Artifact]:
        ...

    def link_for(self, artifact_id: str) -> str:
        artifact = self.get(artifact_id)
        return artifact.uri if artifact else artifact_id


class LocalArtifactStore(ArtifactStore):
    """Markdown documents under ``<data_dir>/artifacts/<correlation_ref>/``.

    Artifact metadata is kept in the job store, and ``links:<correlation_ref>``
    lists every artifact created for that entity.
    """

    def __init__(self, storage: Storage, base_url: Optional[str] = None):
        self.storage = storage
        self.root = storage.data_dir / "artifacts"
        self.base_url = base_url.rstrip("/") if base_url else None

    def create(self, job: Job, text: str) -> Artifact:
        existing = self.find_for_job(job)
        if existing is not None:
            return existing
        artifact = Artifact(
            job_id=job.id,
            correlation_ref=job.correlation_ref,
            uri="",
            component_tags=extract_component_tags(text),
        )
        folder = self.root / quote(job.correlation_ref, safe="")
        path = folder / f"{artifact.id}.md"
        artifact.uri = self._uri(job.correlation_ref, path, artifact.id)
        try:
            folder.mkdir(parents=True, exist_ok=True)
            path.write_text(self._render(job, artifact, text), encoding="utf-8")
            self.storage.put(ARTIFACT_PREFIX + artifact.id, artifact.model_dump(mode="json"))
            self.storage.update(
                LINKS_PREFIX + job.correlation_ref,
                lambda ids: ids + [artifact.id] if artifact.id not in ids else ids,
                [],
            )
        except OSError as e:
            raise ArtifactCreationFailure(f"Could not write transcript document: {e}") from e
        return artifact

    def get(self, artifact_id: str) -> Optional[Artifact]:
        data = self.storage.get(ARTIFACT_PREFIX + artifact_id)
        return Artifact(**data) if data else None

    def artifacts_for(self, correlation_ref: str) -> List[Artifact]:
        ids = self.storage.get(LINKS_PREFIX + correlation_ref, [])
        return [a for a in (self.get(i) for i in ids) if a is not None]

    def find_for_job(self, job: Job) -> Optional[Artifact]:
        """Artifact already written for this job, if an earlier finalize got that far."""
        for artifact in self.artifacts_for(job.correlation_ref):
            if artifact.job_id == job.id:
                return artifact
        return None

    def _uri(self, correlation_ref: str, path: Path, artifact_id: str) -> str:
        if self.base_url:
            return f"{self.base_url}/{quote(correlation_ref, safe='')}/{artifact_id}"
        return path.resolve().as_uri()

    def _render(self, job: Job, artifact: Artifact, text: str) -> str:
        lines = [
            f"# Transcript for {job.correlation_ref}",
            "",
            f"- Job: {job.id}",
            f"- Resource: {job.resource.id} ({job.resource.mime_type})",
            f"- Created: {artifact.created_at.isoformat()}",
            "",
            clean_transcript(text),
            "",
        ]
        if artifact.component_tags:
            lines += ["## Components", ""]
            for component in sorted(artifact.component_tags):
                lines.append(f"### {component}")
                lines += [f"- {segment}" for segment in artifact.component_tags[component]]
                lines.append("")
        return "\n".join(lines)
