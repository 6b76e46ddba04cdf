# src/library/ingest.py
from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from typing import Optional

from mutagen import File as MutagenFile
from mutagen import MutagenError

from core.errors import InvalidArgument
from core.models import UNKNOWN_ARTIST, Track
from core.utils import new_id, title_from_filename

logger = logging.getLogger(__name__)

AUDIO_EXTS = {".mp3", ".m4a", ".flac", ".ogg", ".opus", ".wav"}


@dataclass(frozen=True)
class FileTags:
    title: Optional[str]
    artist: Optional[str]
    duration: float


def iter_audio_paths(directories: list[str]) -> list[str]:
    paths: list[str] = []
    for root in directories:
        if not root or not os.path.isdir(root):
            continue
        for dirpath, _, filenames in os.walk(root):
            for fn in sorted(filenames):
                if is_audio_name(fn):
                    paths.append(os.path.join(dirpath, fn))
    return paths


def is_audio_name(name: str) -> bool:
    return os.path.splitext(name)[1].lower() in AUDIO_EXTS


def _first(easy, key: str) -> str | None:
    v = easy.get(key) if easy is not None else None
    if not v:
        return None
    if isinstance(v, list):
        return (str(v[0]).strip() if v else None) or None
    s = str(v).strip()
    return s or None


def read_tags(path: str) -> Optional[FileTags]:
    """
    Best-effort tag/duration read. Returns None when mutagen cannot make
    sense of the file; the engine fills in the duration later in that case.
    """
    try:
        audio = MutagenFile(path, easy=True)
    except (MutagenError, OSError) as e:
        logger.debug("Cannot read tags from %s: %s", path, e)
        return None
    if audio is None:
        return None

    info = getattr(audio, "info", None)
    length = getattr(info, "length", 0.0) or 0.0
    return FileTags(
        title=_first(audio, "title"),
        artist=_first(audio, "artist"),
        duration=max(0.0, float(length)),
    )


def _build_track(path: str, display_name: str) -> Track:
    tags = read_tags(path)
    return Track(
        id=new_id(),
        title=(tags.title if tags and tags.title else title_from_filename(display_name)),
        artist=(tags.artist if tags and tags.artist else UNKNOWN_ARTIST),
        source_locator=os.path.abspath(path),
        duration_seconds=tags.duration if tags else 0.0,
    )


def track_from_file(path: str) -> Track:
    name = os.path.basename(path)
    if not is_audio_name(name):
        raise InvalidArgument(f"Not an audio file: {name}")
    if not os.path.isfile(path):
        raise InvalidArgument(f"File not found: {path}")
    return _build_track(path, name)


def track_from_bytes(data: bytes, filename: str, blob_dir: str) -> Track:
    """
    Store uploaded bytes as a content-addressed blob (<sha256><ext>) under
    blob_dir and return a Track pointing at it. Same bytes, same blob.
    """
    if not is_audio_name(filename):
        raise InvalidArgument(f"Not an audio file: {filename}")
    if not data:
        raise InvalidArgument(f"Empty file: {filename}")

    ext = os.path.splitext(filename)[1].lower()
    digest = hashlib.sha256(data).hexdigest()
    os.makedirs(blob_dir, exist_ok=True)
    blob_path = os.path.join(blob_dir, digest + ext)

    if not os.path.exists(blob_path):
        tmp_path = blob_path + ".part"
        with open(tmp_path, "wb") as f:
            f.write(data)
        os.replace(tmp_path, blob_path)
        logger.debug("Stored %s as %s", filename, blob_path)

    return _build_track(blob_path, filename)
