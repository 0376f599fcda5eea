"""Builds the configured object store."""
from app.storage.base import ObjectStore
from app.storage.cloudinary import CloudinaryObjectStore
from app.storage.local import LocalObjectStore


def create_object_store(settings) -> ObjectStore:
    backend = settings.object_store_backend
    if backend == "cloudinary":
        return CloudinaryObjectStore(
            {
                "cloud_name": settings.cloudinary_cloud_name,
                "api_key": settings.cloudinary_api_key,
                "api_secret": settings.cloudinary_api_secret,
                "timeout": settings.cloudinary_timeout,
            }
        )
    if backend == "local":
        return LocalObjectStore(settings.storage_base_path, settings.storage_public_base_url)
    raise ValueError(f"Unknown object store backend: {backend}. Available backends: cloudinary, local")
