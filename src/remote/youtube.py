"""Playlist items from the YouTube Data API (v3)."""
import logging

import requests

from typing import List, Optional

from utils.dataModels import Video
from utils.errors import RemoteFetchError

logger = logging.getLogger(__name__)

PLAYLIST_ITEMS_URL = "https://www.googleapis.com/youtube/v3/playlistItems"
PAGE_SIZE = 50
REQUEST_TIMEOUT = 30


def _parse_item(item: dict) -> Optional[Video]:
    details = item.get("contentDetails") or {}
    snippet = item.get("snippet") or {}
    vid = details.get("videoId")
    if not vid:
        return None
    thumbs = snippet.get("thumbnails") or {}
    return Video(
        id=vid,
        title=snippet.get("title") or "",
        published_at=details.get("videoPublishedAt") or "",
        thumbnail=(thumbs.get("default") or {}).get("url") or "",
    )


def fetch_playlist_videos(playlist_id: str, api_key: str, session=None) -> List[Video]:
    http = session or requests.Session()
    videos: List[Video] = []
    page_token: Optional[str] = None

    while True:
        params = {
            "part": "contentDetails,snippet",
            "maxResults": str(PAGE_SIZE),
            "playlistId": playlist_id,
            "key": api_key,
        }
        if page_token:
            params["pageToken"] = page_token
        try:
            resp = http.get(PLAYLIST_ITEMS_URL, params=params, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise RemoteFetchError(f"Playlist request failed: {e}") from e
        if resp.status_code != 200:
            raise RemoteFetchError(f"YouTube HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteFetchError("YouTube returned invalid JSON") from e

        for item in data.get("items") or []:
            video = _parse_item(item)
            if video is not None:
                videos.append(video)

        page_token = data.get("nextPageToken")
        if not page_token:
            break

    logger.debug("Fetched %d videos from playlist %s", len(videos), playlist_id)
    return videos
