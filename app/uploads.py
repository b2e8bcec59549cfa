"""Disk storage for user uploads served under ``/uploads``."""

from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from app.settings import settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

DOCUMENT_MIME_TYPES = frozenset({"application/pdf", "image/jpeg", "image/png"})
MEDIA_MIME_PREFIXES = ("image/", "video/")

_WS_RE = re.compile(r"\s+")
_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]")


class UploadRejected(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class StoredFile:
    filename: str
    original_name: str
    content_type: str
    size: int
    path: Path
    url: str


def uploads_root() -> Path:
    return Path(settings.UPLOADS_DIR).resolve()


def unique_name(original: str | None) -> str:
    base = Path(original or "upload").name
    base = _UNSAFE_RE.sub("", _WS_RE.sub("_", base)) or "upload"
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}-{base}"


def public_url(base_url: str, subdir: str, filename: str) -> str:
    return f"{base_url.rstrip('/')}/uploads/{subdir}/{filename}"


async def save_upload(
    file: UploadFile,
    subdir: str,
    *,
    base_url: str,
    allowed_types: frozenset[str] | None = None,
    allowed_prefixes: tuple[str, ...] = (),
    max_bytes: int | None = None,
) -> StoredFile:
    """Stream ``file`` to ``UPLOADS_DIR/subdir/<unique-name>``.

    Raises UploadRejected for a disallowed MIME type or an oversize file;
    a partially written file is removed first.
    """
    content_type = (file.content_type or "").lower()
    if allowed_types is not None or allowed_prefixes:
        in_set = allowed_types is not None and content_type in allowed_types
        by_prefix = bool(allowed_prefixes) and content_type.startswith(allowed_prefixes)
        if not (in_set or by_prefix):
            raise UploadRejected("Invalid file type")

    limit = settings.MAX_UPLOAD_BYTES if max_bytes is None else max_bytes
    target_dir = uploads_root() / subdir
    target_dir.mkdir(parents=True, exist_ok=True)
    filename = unique_name(file.filename)
    dest = target_dir / filename

    size = 0
    try:
        async with aiofiles.open(dest, "wb") as out:
            while chunk := await file.read(CHUNK_SIZE):
                size += len(chunk)
                if size > limit:
                    raise UploadRejected(
                        f"File too large (max {limit // (1024 * 1024)} MB)", 413
                    )
                await out.write(chunk)
    except BaseException:
        await delete_stored(dest)
        raise

    logger.info(
        "📁 UPLOAD_STORED",
        extra={"meta": {"subdir": subdir, "filename": filename, "size": size}},
    )
    return StoredFile(
        filename=filename,
        original_name=file.filename or filename,
        content_type=content_type,
        size=size,
        path=dest,
        url=public_url(base_url, subdir, filename),
    )


async def delete_stored(path: Path | str) -> bool:
    """Remove a stored file. Missing files are not an error."""
    try:
        await aiofiles.os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(
            "📁 UPLOAD_DELETE_FAILED", extra={"meta": {"path": str(path), "error": str(e)}}
        )
        return False


def stored_path(subdir: str, filename: str) -> Path:
    return uploads_root() / subdir / Path(filename).name
