import base64


def file_payload(content: bytes = b"\x89PNG fake", mime_type: str = "image/png", filename: str = "front.png") -> dict:
    return {
        "content_b64": base64.b64encode(content).decode("ascii"),
        "mime_type": mime_type,
        "filename": filename,
    }
