# spinner/services/manifest.py
"""Builds the full album listing sent in answer to a `get` command."""
import logging
from typing import Optional

from ..formatting import AgeFormatter, iso_date
from ..models import AlbumId, DeviceId, ManifestEntry, ManifestMessage, PublishResult

logger = logging.getLogger(__name__)


class ManifestBuilder:
    def __init__(self, cache, publisher, ages: AgeFormatter):
        self._cache = cache
        self._publisher = publisher
        self._ages = ages

    def build(self, album_id: AlbumId) -> ManifestMessage:
        """
        Snapshots the album as it is cached right now.

        The album is loaded if it has no photos yet; an otherwise fresh list is
        used as-is even if its TTL is about to run out.
        """
        record = self._cache.ensure_loaded(album_id)
        entries = tuple(
            ManifestEntry(
                index=i,
                photo_id=photo.id,
                date=iso_date(photo.captured_at),
                age=self._ages.label(photo.captured_at),
            )
            for i, photo in enumerate(record.photos)
        )
        return ManifestMessage(entries=entries)

    def publish(self, album_id: AlbumId, device_id: Optional[DeviceId] = None) -> PublishResult:
        manifest = self.build(album_id)
        result = self._publisher.publish_manifest(album_id, manifest.to_payload(), device_id)
        if result.ok:
            logger.info(f"[album {album_id}] published manifest ({manifest.length} entries) -> {result.topic}")
        return result
