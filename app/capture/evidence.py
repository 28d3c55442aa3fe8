"""In-memory evidence held by the agent app between capture and submission."""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class PreviewHandle:
    """Display handle for a captured image. Released once the evidence is sent or discarded."""

    content: Optional[bytes]
    mime_type: str = "image/jpeg"

    @property
    def released(self) -> bool:
        return self.content is None

    def release(self) -> None:
        self.content = None


@dataclass
class EvidenceFile:
    file_name: str
    content: bytes
    mime_type: str
    size: int = -1
    preview: Optional[PreviewHandle] = None
    # Only meaningful for supporting documents, e.g. "TITLE_DEED"
    document_type: Optional[str] = None

    def __post_init__(self):
        if self.size < 0:
            self.size = len(self.content)

    @classmethod
    def from_path(cls, path, mime_type: Optional[str] = None, document_type: Optional[str] = None) -> "EvidenceFile":
        path = Path(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            file_name=path.name,
            content=path.read_bytes(),
            mime_type=mime_type or guessed or "application/octet-stream",
            document_type=document_type,
        )

    def release_preview(self) -> None:
        if self.preview is not None:
            self.preview.release()
