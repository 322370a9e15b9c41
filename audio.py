"""
Audio duration probing with mutagen.
"""

import io
import logging
from typing import Optional

import mutagen
from mutagen import MutagenError

import storage

logger = logging.getLogger(__name__)


def probe_duration(data: bytes) -> float:
    """Duration in seconds of an in-memory audio file, 0.0 when it cannot be read."""
    try:
        audio = mutagen.File(io.BytesIO(data))
    except MutagenError as e:
        logger.warning("Could not parse audio: %s", e)
        return 0.0
    if audio is None or getattr(audio, "info", None) is None:
        return 0.0
    return round(float(audio.info.length or 0.0), 3)


def song_duration(url: Optional[str]) -> float:
    """Probe the stored music file behind a song url such as ``/api/storage/stream/x.mp3``."""
    path = storage.resolve_music_file(url)
    if path is None:
        logger.warning("No local audio file for %r, duration left at 0", url)
        return 0.0
    return probe_duration(path.read_bytes())
