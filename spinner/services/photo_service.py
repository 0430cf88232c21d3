# spinner/services/photo_service.py
"""
Provides the photo source client used by every part of the server that needs
photos: the album cache, the content handlers, the max-index refresher and the
tape timeline.

All public methods return plain lists and never raise. HTTP failures, invalid
JSON and unexpected response shapes are logged here and downgraded to an empty
result, so a flaky PhotoPrism instance can never take a device command down
with it.
"""
import logging
import requests
from typing import Any, Dict, List, Optional

from .. import photoprism_api
from ..exceptions import PhotoSourceError, PhotoSourceHTTPError, PhotoSourceResponseError
from ..models import PhotoRef, AlbumId

logger = logging.getLogger(__name__)


class PhotoSourceClient:
    def __init__(self, base_url: str, timeout_seconds: float = 15,
                 album_page_size: int = 1000, query_page_size: int = 500,
                 thumbnail_size: str = 'fit_1920', session: Optional[requests.Session] = None):
        self.base_url = photoprism_api.normalize_host(base_url)
        self.timeout_seconds = timeout_seconds
        self.album_page_size = album_page_size
        self.query_page_size = query_page_size
        self.thumbnail_size = thumbnail_size
        self._session = session or requests.Session()
        self._session.headers.setdefault('Accept', 'application/json')

    def photo_url(self, photo_id: Optional[str]) -> str:
        """Display URL for a photo hash (or a URL passed through as-is)."""
        return photoprism_api.thumbnail_url(self.base_url, photo_id, self.thumbnail_size)

    def _get_json(self, url: str) -> Any:
        """
        Performs a GET request and decodes the JSON body.

        Raises:
            PhotoSourceHTTPError: On connection errors and non-success status codes.
            PhotoSourceResponseError: If the body is not valid JSON.
        """
        try:
            response = self._session.get(url, timeout=self.timeout_seconds)
        except requests.exceptions.RequestException as e:
            raise PhotoSourceHTTPError(f"Request to {url} failed: {e}") from e

        if not response.ok:
            raise PhotoSourceHTTPError(f"HTTP {response.status_code} from {url}")

        try:
            return response.json()
        except ValueError as e:
            raise PhotoSourceResponseError(f"Invalid JSON from {url}: {e}") from e

    def _search(self, label: str, **params: Any) -> List[PhotoRef]:
        url = photoprism_api.photos_url(self.base_url, **params)
        logger.debug(f"[{label}] GET {url}")
        try:
            records = photoprism_api.extract_photo_list(self._get_json(url))
        except PhotoSourceError as e:
            logger.error(f"[{label}] photo search failed: {e}")
            return []
        photos = photoprism_api.to_photo_refs(records)
        logger.debug(f"[{label}] {len(photos)} usable photos out of {len(records)} records")
        return photos

    def fetch_album(self, album_id: AlbumId, count: Optional[int] = None) -> List[PhotoRef]:
        """
        Fetches an album's photos, oldest first with undated photos last.

        Args:
            album_id: The PhotoPrism album UID.
            count: Maximum number of photos, defaults to the album page size.

        Returns:
            The sorted photo list, or an empty list if the fetch failed.
        """
        photos = self._search(f"album {album_id}", count=count or self.album_page_size, album=album_id)
        return photoprism_api.sort_by_capture(photos)

    def search_person(self, name: str) -> List[PhotoRef]:
        return self._search(f"person {name}", count=self.query_page_size, person=name)

    def search_month(self, year: Any, month: Any) -> List[PhotoRef]:
        return self._search(f"date {year}-{month}", count=self.query_page_size, year=year, month=month)

    def search_query(self, query: str, count: Optional[int] = None) -> List[PhotoRef]:
        """Free-text search using PhotoPrism's `q` filter syntax (e.g. `taken:2025-09-19`)."""
        return self._search(f"q {query}", count=count or self.album_page_size, q=query)

    def fetch_albums(self, count: int = 100) -> List[Dict[str, Any]]:
        """Lists albums as raw API records. Used to discover tape albums."""
        url = photoprism_api.albums_url(self.base_url, count)
        try:
            body = self._get_json(url)
        except PhotoSourceError as e:
            logger.error(f"Album listing failed: {e}")
            return []
        if not isinstance(body, list):
            logger.error(f"Unexpected album listing response: {type(body).__name__}")
            return []
        return [a for a in body if isinstance(a, dict)]

    def close(self) -> None:
        self._session.close()
