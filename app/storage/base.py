from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class StoredObject:
    """Public handle for an uploaded file."""
    file_url: str
    file_public_id: str
    resource_type: str = "image"


class ObjectStore(ABC):
    @abstractmethod
    def upload(
        self,
        content: bytes,
        folder: str,
        resource_type: str = "auto",
        filename: str | None = None,
    ) -> StoredObject:
        """Store bytes under `folder`; returns a publicly readable URL and the id to delete it by."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, public_id: str, resource_type: str = "image") -> bool:
        """Remove an object. False if it did not exist."""
        raise NotImplementedError
