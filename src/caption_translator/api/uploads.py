"""Saving uploaded or remote videos to local storage with type and size checks."""

import logging
from pathlib import Path

import httpx
from fastapi import UploadFile

from caption_translator.errors import UnsupportedMediaError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".mp4", ".mov", ".avi", ".webm"}
ALLOWED_CONTENT_TYPES = {
    "video/mp4",
    "video/quicktime",
    "video/x-msvideo",
    "video/webm",
    "application/octet-stream",
}
CHUNK_SIZE = 1024 * 1024


def video_extension(filename: str | None, content_type: str | None) -> str:
    """Validate an upload's type and return the file extension to store it under.

    Raises:
        UnsupportedMediaError: If neither the extension nor the content type is a supported video
    """
    suffix = Path(filename or "").suffix.lower()
    if suffix in ALLOWED_EXTENSIONS:
        return suffix
    if content_type and content_type.split(";")[0].strip() in ALLOWED_CONTENT_TYPES - {"application/octet-stream"}:
        return ".mp4"
    raise UnsupportedMediaError("Invalid file type. Allowed: MP4, MOV, AVI, WEBM")


async def save_upload(upload: UploadFile, dest: Path, max_bytes: int) -> Path:
    """Stream an uploaded file to ``dest``, enforcing the size limit.

    Raises:
        UnsupportedMediaError: If the file exceeds ``max_bytes``
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    try:
        with dest.open("wb") as out:
            while chunk := await upload.read(CHUNK_SIZE):
                written += len(chunk)
                if written > max_bytes:
                    raise UnsupportedMediaError(f"File too large. Maximum size: {max_bytes // (1024 * 1024)}MB")
                out.write(chunk)
    except UnsupportedMediaError:
        dest.unlink(missing_ok=True)
        raise
    logger.info(f"Saved upload {upload.filename} ({written} bytes) to {dest}")
    return dest


async def download_video(url: str, dest: Path, max_bytes: int, timeout: float = 120.0) -> Path:
    """Download a remote video to ``dest``.

    Raises:
        UnsupportedMediaError: On HTTP errors, non-video responses or oversize files
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                content_type = response.headers.get("content-type", "").split(";")[0].strip()
                if content_type and not (content_type.startswith("video/") or content_type in ALLOWED_CONTENT_TYPES):
                    raise UnsupportedMediaError(f"URL does not point to a video (content-type {content_type})")
                with dest.open("wb") as out:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        written += len(chunk)
                        if written > max_bytes:
                            raise UnsupportedMediaError(
                                f"Video too large. Maximum size: {max_bytes // (1024 * 1024)}MB"
                            )
                        out.write(chunk)
    except httpx.HTTPError as e:
        dest.unlink(missing_ok=True)
        raise UnsupportedMediaError(f"Failed to download video: {e}") from e
    except UnsupportedMediaError:
        dest.unlink(missing_ok=True)
        raise
    logger.info(f"Downloaded {written} bytes from {url} to {dest}")
    return dest
