# core/search.py
from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Iterable, Optional, Protocol
from urllib.parse import unquote, urlparse

from core.errors import InvalidArgument
from core.models import UNKNOWN_ARTIST, Playlist, SearchResult, Track
from core.utils import new_id, title_from_filename

logger = logging.getLogger(__name__)

AUDIO_URL_RE = re.compile(r"\.(mp3|wav|flac|ogg|m4a)$", re.IGNORECASE)
YOUTUBE_HOSTS = ("youtube.com", "youtu.be")


class SearchType(Enum):
    LOCAL = "local"
    REMOTE = "remote"
    URL = "url"


def search_local(playlists: Iterable[Playlist], query: str) -> list[SearchResult]:
    """
    Case-insensitive substring match on "<title> <artist>" over every track of
    every playlist, in playlist order then track order. An empty query matches
    everything; rejecting it is up to the caller.
    """
    needle = query.casefold()
    results: list[SearchResult] = []
    for playlist in playlists:
        for track in playlist.tracks:
            haystack = f"{track.title} {track.artist}".casefold()
            if needle in haystack:
                results.append(
                    SearchResult(track=track, playlist_id=playlist.id, playlist_name=playlist.name)
                )
    return results


def track_from_url(url: str) -> Optional[Track]:
    """
    Resolve a pasted link into a Track.

    Returns None for links we recognise but cannot resolve yet (YouTube).
    Raises InvalidArgument for anything that is not a direct audio file link.
    """
    url = url.strip()
    if any(host in url for host in YOUTUBE_HOSTS):
        logger.info("YouTube links are not supported yet: %s", url)
        return None

    path = urlparse(url).path or url
    if not AUDIO_URL_RE.search(path):
        raise InvalidArgument(f"Unsupported URL format: {url}")

    filename = unquote(path.rstrip("/").rsplit("/", 1)[-1])
    return Track(
        id=new_id(),
        title=title_from_filename(filename),
        artist=UNKNOWN_ARTIST,
        source_locator=url,
    )


class SearchProvider(Protocol):
    def search(self, query: str) -> list[SearchResult]: ...


class NullSearchProvider:
    """Remote search placeholder: always an empty result set, never an error."""

    def search(self, query: str) -> list[SearchResult]:
        logger.debug("Remote search is not implemented; %r returns nothing", query)
        return []


class SearchEngine:
    def __init__(self, store, remote_provider: SearchProvider | None = None):
        self.store = store
        self.remote_provider = remote_provider or NullSearchProvider()

    def search(self, query: str, search_type: SearchType = SearchType.LOCAL) -> list[SearchResult]:
        if search_type is SearchType.LOCAL:
            return search_local(self.store.all(), query)

        if search_type is SearchType.REMOTE:
            return list(self.remote_provider.search(query))

        if search_type is SearchType.URL:
            track = track_from_url(query)
            return [SearchResult(track=track)] if track else []

        raise InvalidArgument(f"Unknown search type: {search_type!r}")
