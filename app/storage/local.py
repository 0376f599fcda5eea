"""Filesystem object store for development and single-host deployments."""
import mimetypes
import os
from uuid import uuid4

from app.storage.base import ObjectStore, StoredObject


class LocalObjectStore(ObjectStore):
    def __init__(self, base_path: str, public_base_url: str):
        self.base_path = base_path
        self.public_base_url = public_base_url.rstrip("/")

    def upload(
        self,
        content: bytes,
        folder: str,
        resource_type: str = "auto",
        filename: str | None = None,
    ) -> StoredObject:
        ext = os.path.splitext(filename or "")[1] or ".bin"
        public_id = f"{folder.strip('/')}/{uuid4().hex}{ext}"
        path = self._path(public_id)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
        if resource_type == "auto":
            mime = mimetypes.guess_type(filename or public_id)[0] or ""
            resource_type = "video" if mime.startswith("video/") else "image"
        return StoredObject(
            file_url=f"{self.public_base_url}/{public_id}",
            file_public_id=public_id,
            resource_type=resource_type,
        )

    def delete(self, public_id: str, resource_type: str = "image") -> bool:
        path = self._path(public_id)
        if not os.path.exists(path):
            return False
        os.remove(path)
        return True

    def _path(self, public_id: str) -> str:
        base = os.path.abspath(self.base_path)
        path = os.path.abspath(os.path.join(base, public_id))
        if not path.startswith(base + os.sep):
            raise ValueError(f"Invalid object id: {public_id}")
        return path
