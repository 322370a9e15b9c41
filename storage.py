"""
File uploads and audio streaming.

Public assets (profile pictures, wallpapers) are written to
``config.PUBLIC_DIR`` and served by the static mount at ``/public``; song
files go to ``config.MUSIC_DIR`` and are played through the byte-range
``/stream/{filename}`` endpoint.
"""

import logging
import random
import time
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional, Tuple

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import StreamingResponse

import config
from errors import CatalogError, NotFoundError, ServerError
from responses import CREATED, envelope

logger = logging.getLogger(__name__)

router = APIRouter(tags=["storage"])

CHUNK_SIZE = 65536

CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".flac": "audio/flac",
    ".ogg": "audio/ogg",
    ".opus": "audio/opus",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
}


def stored_filename(original: Optional[str], content_type: Optional[str] = None) -> str:
    """``<stem>-<epoch ms>-<random>.<ext>``; the extension falls back to the mime subtype."""
    name = PurePosixPath(original or "file")
    stem = name.stem or "file"
    extension = name.suffix.lstrip(".")
    if not extension and content_type and "/" in content_type:
        extension = content_type.split("/")[1]
    unique = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{stem}-{unique}.{extension}" if extension else f"{stem}-{unique}"


def save_upload(upload: UploadFile, directory: Path) -> str:
    directory.mkdir(parents=True, exist_ok=True)
    filename = stored_filename(upload.filename, upload.content_type)
    with open(directory / filename, "wb") as out:
        while True:
            chunk = upload.file.read(CHUNK_SIZE)
            if not chunk:
                break
            out.write(chunk)
    logger.info("Stored upload %r as %s", upload.filename, directory / filename)
    return filename


def _local_file(url: Optional[str], directory: Path) -> Optional[Path]:
    if not url:
        return None
    name = PurePosixPath(url.split("?", 1)[0]).name
    if not name:
        return None
    path = directory / name
    return path if path.is_file() else None


def resolve_music_file(url: Optional[str]) -> Optional[Path]:
    return _local_file(url, config.MUSIC_DIR)


def delete_public_file(url: Optional[str]) -> None:
    path = _local_file(url, config.PUBLIC_DIR)
    if path is None:
        return
    try:
        path.unlink()
        logger.info("Deleted public file %s", path)
    except OSError as e:
        logger.error("Could not delete %s: %s", path, e)


def parse_range_header(range_header: str, file_size: int) -> Tuple[int, int]:
    """``bytes=start-end`` -> clamped (start, end); anything unparseable means the whole file."""
    try:
        if not range_header.startswith("bytes="):
            return 0, file_size - 1
        range_spec = range_header[6:]

        if range_spec.startswith("-"):
            suffix_len = int(range_spec[1:])
            return max(0, file_size - suffix_len), file_size - 1

        parts = range_spec.split("-")
        start = int(parts[0]) if parts[0] else 0
        end = int(parts[1]) if len(parts) > 1 and parts[1] else file_size - 1

        start = max(0, min(start, file_size - 1))
        end = max(start, min(end, file_size - 1))
        return start, end
    except (ValueError, IndexError):
        return 0, file_size - 1


def _read_range(path: Path, start: int, length: int) -> Iterator[bytes]:
    with open(path, "rb") as f:
        f.seek(start)
        remaining = length
        while remaining > 0:
            chunk = f.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


# ---------- UPLOADS ----------

@router.post("/upload-as-public", status_code=201)
def upload_as_public(file: UploadFile = File(...)):
    try:
        logger.info("Uploading public file %r", file.filename)
        filename = save_upload(file, config.PUBLIC_DIR)
        return envelope(CREATED, fileUrl=f"{config.PUBLIC_URL_PREFIX}/{filename}")
    except CatalogError:
        raise
    except Exception as e:
        logger.exception("Public upload failed: %s", e)
        raise ServerError() from e


@router.post("/upload-song", status_code=201)
def upload_song(file: UploadFile = File(...)):
    try:
        logger.info("Uploading song file %r", file.filename)
        filename = save_upload(file, config.MUSIC_DIR)
        return envelope(CREATED, fileUrl=f"{config.MUSIC_URL_PREFIX}/{filename}")
    except CatalogError:
        raise
    except Exception as e:
        logger.exception("Song upload failed: %s", e)
        raise ServerError() from e


# ---------- STREAMING ----------

@router.get("/stream/{filename}")
def stream_song(filename: str, request: Request):
    path = _local_file(filename, config.MUSIC_DIR)
    if path is None:
        raise NotFoundError("Song file not found")

    file_size = path.stat().st_size
    content_type = CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")

    range_header = request.headers.get("range")
    if range_header and file_size > 0:
        start, end = parse_range_header(range_header, file_size)
        content_length = end - start + 1
        return StreamingResponse(
            _read_range(path, start, content_length),
            status_code=206,
            media_type=content_type,
            headers={
                "Content-Range": f"bytes {start}-{end}/{file_size}",
                "Content-Length": str(content_length),
                "Accept-Ranges": "bytes",
            },
        )
    return StreamingResponse(
        _read_range(path, 0, file_size),
        media_type=content_type,
        headers={"Content-Length": str(file_size), "Accept-Ranges": "bytes"},
    )
