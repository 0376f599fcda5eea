"""
Value types exchanged with inference backends.
"""
import base64
import binascii
import json
import re
from dataclasses import dataclass
from typing import Any

from app.core.errors import InferenceError, JobValidationError


_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+/-]*)?(?P<params>(;[\w-]+=[^;,]*)*)(?P<b64>;base64)?,(?P<data>.*)$", re.S)


@dataclass
class FileBlob:
    """In-memory file (image, video, JSON) to send to a backend."""
    content: bytes
    mime_type: str = "application/octet-stream"
    filename: str | None = None

    @classmethod
    def from_payload(cls, value: dict[str, Any], default_name: str = "file") -> "FileBlob":
        """Build from a job payload entry: {"content_b64", "mime_type"?, "filename"?}."""
        if not isinstance(value, dict) or not value.get("content_b64"):
            raise JobValidationError(f"{default_name}: expected an object with content_b64")
        try:
            content = base64.b64decode(value["content_b64"], validate=True)
        except (binascii.Error, ValueError) as e:
            raise JobValidationError(f"{default_name}: content_b64 is not valid base64") from e
        return cls(
            content=content,
            mime_type=value.get("mime_type") or "application/octet-stream",
            filename=value.get("filename") or default_name,
        )

    @classmethod
    def from_json(cls, data: Any, filename: str = "data.json") -> "FileBlob":
        return cls(json.dumps(data).encode("utf-8"), "application/json", filename)

    def to_payload(self) -> dict[str, Any]:
        return {
            "content_b64": base64.b64encode(self.content).decode("ascii"),
            "mime_type": self.mime_type,
            "filename": self.filename,
        }


@dataclass
class RemoteFile:
    """A file returned by a backend, fetched separately."""
    path: str
    url: str | None = None
    orig_name: str | None = None
    mime_type: str | None = None

    @classmethod
    def from_output(cls, value: Any) -> "RemoteFile | None":
        if isinstance(value, dict) and (value.get("path") or value.get("url")):
            return cls(
                path=value.get("path") or "",
                url=value.get("url"),
                orig_name=value.get("orig_name"),
                mime_type=value.get("mime_type"),
            )
        return None


def decode_data_url(value: str) -> tuple[bytes, str]:
    """Decode a data URL or bare base64 string. Returns (bytes, mime type)."""
    if not isinstance(value, str) or not value:
        raise InferenceError("Expected base64 image output, got nothing")
    match = _DATA_URL_RE.match(value.strip())
    mime = "image/png"
    data = value.strip()
    if match:
        mime = match.group("mime") or mime
        data = match.group("data")
    try:
        return base64.b64decode(data, validate=False), mime
    except (binascii.Error, ValueError) as e:
        raise InferenceError("Backend returned malformed base64 output") from e


def extension_for(mime_type: str | None) -> str:
    return {
        "image/png": ".png",
        "image/jpeg": ".jpg",
        "image/webp": ".webp",
        "video/mp4": ".mp4",
        "application/json": ".json",
        "model/gltf-binary": ".glb",
    }.get(mime_type or "", "")
