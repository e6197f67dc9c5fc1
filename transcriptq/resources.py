"""Access to the media resources being transcribed.

Getting the bytes into storage is someone else's job; this module only looks
resources up by id and reads them back.
"""

import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path
from .errors import InvalidResource, ResourceNotFound
from .models import ResourceRef


class ResourceStore(ABC):
    """Where uploaded media lives."""

    @abstractmethod
    def exists(self, resource: ResourceRef) -> bool:
        ...

    @abstractmethod
    def read(self, resource: ResourceRef) -> bytes:
        """Return the resource bytes. Raises ResourceNotFound."""
        ...

    @abstractmethod
    def describe(self, resource_id: str) -> ResourceRef:
        """Build a reference (id, size, mime type) for a stored resource."""
        ...


class LocalResourceStore(ResourceStore):
    """Resources stored as files below a root directory, addressed by relative path."""

    def __init__(self, root: str = "."):
        self.root = Path(root).resolve()

    def _path(self, resource_id: str) -> Path:
        if not resource_id:
            raise InvalidResource("Resource reference has no id")
        path = (self.root / resource_id).resolve()
        if path != self.root and self.root not in path.parents:
            raise InvalidResource(f"Resource {resource_id} is outside the resource directory")
        return path

    def exists(self, resource: ResourceRef) -> bool:
        try:
            return self._path(resource.id).is_file()
        except InvalidResource:
            return False

    def read(self, resource: ResourceRef) -> bytes:
        path = self._path(resource.id)
        try:
            return path.read_bytes()
        except OSError as e:
            raise ResourceNotFound(f"Resource {resource.id} could not be read: {e}") from e

    def describe(self, resource_id: str) -> ResourceRef:
        path = self._path(resource_id)
        if not path.is_file():
            raise ResourceNotFound(f"Resource {resource_id} not found")
        mime_type, _ = mimetypes.guess_type(path.name)
        return ResourceRef(
            id=resource_id,
            size=path.stat().st_size,
            mime_type=mime_type or "application/octet-stream",
        )
