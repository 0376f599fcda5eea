"""
Remote inference over Gradio apps (Hugging Face Spaces).
"""
from .adapter import InferenceAdapter
from .base import FileBlob, RemoteFile, decode_data_url, extension_for
from .gradio import GradioSession

__all__ = [
    "InferenceAdapter",
    "FileBlob",
    "RemoteFile",
    "GradioSession",
    "decode_data_url",
    "extension_for",
]
