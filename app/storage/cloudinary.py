"""
Cloudinary object store on the Cloudinary SDK.
Credentials are passed per call, so several stores can coexist without touching
the SDK's global config.
"""
import io
import logging
from typing import Any

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from app.core.errors import ObjectStoreError
from app.storage.base import ObjectStore, StoredObject

logger = logging.getLogger(__name__)


class CloudinaryObjectStore(ObjectStore):
    def __init__(self, config: dict):
        self.cloud_name = config.get("cloud_name")
        self.api_key = config.get("api_key")
        self.api_secret = config.get("api_secret")
        self.timeout = config.get("timeout", 60.0)

    def is_available(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def upload(
        self,
        content: bytes,
        folder: str,
        resource_type: str = "auto",
        filename: str | None = None,
    ) -> StoredObject:
        stream = io.BytesIO(content)
        stream.name = filename or "upload"
        try:
            result = cloudinary.uploader.upload(
                stream,
                folder=folder,
                resource_type=resource_type,
                filename=stream.name,
                **self._options(),
            )
        except (CloudinaryError, OSError) as e:
            raise ObjectStoreError(f"Cloudinary upload failed: {e}") from e
        url = result.get("secure_url") or result.get("url")
        public_id = result.get("public_id")
        if not url or not public_id:
            raise ObjectStoreError("Cloudinary upload returned no url/public_id")
        logger.info("object_uploaded", extra={"public_id": public_id})
        return StoredObject(
            file_url=url,
            file_public_id=public_id,
            resource_type=result.get("resource_type") or (resource_type if resource_type != "auto" else "image"),
        )

    def delete(self, public_id: str, resource_type: str = "image") -> bool:
        try:
            result = cloudinary.uploader.destroy(public_id, resource_type=resource_type, **self._options())
        except (CloudinaryError, OSError) as e:
            raise ObjectStoreError(f"Cloudinary destroy failed: {e}") from e
        return result.get("result") == "ok"

    def _options(self) -> dict[str, Any]:
        if not self.is_available():
            raise ObjectStoreError("Cloudinary is not configured")
        return {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self.api_secret,
            "timeout": self.timeout,
        }
