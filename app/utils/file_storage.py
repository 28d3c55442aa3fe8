"""
utils/file_storage.py

Handles saving uploaded evidence (property photos and supporting documents)
to local disk. Swap out `_write` internals later for S3 / Cloudinary / etc.
without touching any router code.
"""

import uuid
from dataclasses import dataclass
from pathlib import Path
import aiofiles
from fastapi import UploadFile, HTTPException, status
from app.core.config import settings
from app.core.logging import get_logger
from app.utils.mime import (
    IMAGE_MIME_TYPES, DOCUMENT_MIME_TYPES, EXTENSION_TO_MIME, MIME_TO_EXTENSION, sniff_mime_type
)

logger = get_logger(__name__)

# Sub-folders of MEDIA_ROOT, also the URL segment after /media/
IMAGE_FOLDER = "properties"
DOCUMENT_FOLDER = "documents"


@dataclass(frozen=True)
class StoredFile:
    file_path: str      # public URL
    file_name: str      # original client-side name
    file_size: int
    mime_type: str


def _media_root() -> Path:
    return Path(settings.MEDIA_ROOT)


def _max_bytes() -> int:
    return settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024


def _resolve_content_type(file: UploadFile, allowed: set[str]) -> str:
    """
    Return the declared content type for the uploaded file.

    iOS / some Android clients send 'application/octet-stream' instead of the
    real MIME type, so we fall back to inspecting the filename extension.
    """
    content_type = (file.content_type or "").lower()
    if content_type in allowed:
        return content_type

    filename = file.filename or ""
    resolved = EXTENSION_TO_MIME.get(Path(filename).suffix.lower())
    if resolved in allowed:
        return resolved

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=(
            f"Cannot determine file type for '{filename}' "
            f"(content-type: '{content_type}'). "
            f"Allowed types: {', '.join(sorted(allowed))}."
        ),
    )


async def _save(file: UploadFile, folder: str, allowed: set[str]) -> StoredFile:
    declared_type = _resolve_content_type(file, allowed)

    contents = await file.read()
    if not contents:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File '{file.filename}' is empty.",
        )
    if len(contents) > _max_bytes():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File '{file.filename}' exceeds {settings.MAX_UPLOAD_SIZE_MB}MB limit.",
        )

    # Declared type must match the bytes
    actual_type = sniff_mime_type(contents)
    if actual_type != declared_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"File '{file.filename}' is declared as '{declared_type}' "
                f"but its content is '{actual_type or 'unrecognised'}'."
            ),
        )

    target_dir = _media_root() / folder
    target_dir.mkdir(parents=True, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}{MIME_TO_EXTENSION[actual_type]}"

    async with aiofiles.open(target_dir / stored_name, "wb") as out:
        await out.write(contents)

    logger.debug("Stored %s (%d bytes) as %s/%s", file.filename, len(contents), folder, stored_name)
    return StoredFile(
        file_path=f"{settings.BASE_URL}/media/{folder}/{stored_name}",
        file_name=file.filename or stored_name,
        file_size=len(contents),
        mime_type=actual_type,
    )


async def _save_all(files: list[UploadFile], folder: str, allowed: set[str]) -> list[StoredFile]:
    """Save every file in order; if one is rejected, the ones already written are deleted."""
    stored: list[StoredFile] = []
    try:
        for f in files:
            stored.append(await _save(f, folder, allowed))
    except Exception:
        for saved in stored:
            delete_stored_file(saved.file_path)
        raise
    return stored


async def save_property_images(files: list[UploadFile]) -> list[StoredFile]:
    """Save multiple images and return them in upload order."""
    return await _save_all(files, IMAGE_FOLDER, IMAGE_MIME_TYPES)


async def save_property_documents(files: list[UploadFile]) -> list[StoredFile]:
    """Save multiple supporting documents and return them in upload order."""
    return await _save_all(files, DOCUMENT_FOLDER, DOCUMENT_MIME_TYPES)


def delete_stored_file(file_url: str):
    """
    Delete a stored file from disk given its public URL.
    Used to roll back uploads when the database write fails.
    """
    relative = file_url.split("/media/", 1)[-1]
    file_path = _media_root() / relative
    try:
        file_path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not delete %s: %s", file_path, exc)
