"""Content sniffing for evidence files.

Declared MIME types are only trusted when the leading bytes agree with them.
"""

from typing import Optional

IMAGE_MIME_TYPES = {"image/jpeg", "image/png", "image/webp"}
DOCUMENT_MIME_TYPES = IMAGE_MIME_TYPES | {"application/pdf"}

_SIGNATURES = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"%PDF-", "application/pdf"),
)

EXTENSION_TO_MIME = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
}

MIME_TO_EXTENSION = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}


def sniff_mime_type(content: bytes) -> Optional[str]:
    """Return the MIME type implied by the file signature, or None."""
    for signature, mime_type in _SIGNATURES:
        if content.startswith(signature):
            return mime_type
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    return None
