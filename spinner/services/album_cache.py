# spinner/services/album_cache.py
"""
Owns the in-memory album records: photo lists, load times and cursors.

Each album has its own re-entrant lock. Reloads happen while that lock is
held, so concurrent callers for the same album wait for the one fetch in
flight instead of issuing their own, and callers for other albums are never
blocked. The navigation engine takes the same lock around its
read-modify-write of a cursor.
"""
import logging
import threading
import time
from typing import Callable, Dict, Iterable, Optional

from ..models import AlbumRecord, AlbumId

logger = logging.getLogger(__name__)


class AlbumCache:
    def __init__(self, source, ttl_seconds: float = 1800, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            source: Anything with `fetch_album(album_id) -> list[PhotoRef]`
                that returns an empty list on failure.
            ttl_seconds: Maximum age of a photo list before the next access reloads it.
            clock: Monotonic time source, replaceable in tests.
        """
        self._source = source
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._records: Dict[AlbumId, AlbumRecord] = {}
        self._locks: Dict[AlbumId, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, album_id: AlbumId) -> threading.RLock:
        """Returns the lock that serializes all work on one album."""
        with self._registry_lock:
            lock = self._locks.get(album_id)
            if lock is None:
                lock = self._locks[album_id] = threading.RLock()
            return lock

    def peek(self, album_id: AlbumId) -> Optional[AlbumRecord]:
        """The current record, without loading or refreshing it."""
        with self._registry_lock:
            return self._records.get(album_id)

    def _record(self, album_id: AlbumId) -> AlbumRecord:
        with self._registry_lock:
            record = self._records.get(album_id)
            if record is None:
                record = self._records[album_id] = AlbumRecord(album_id=album_id)
            return record

    def is_stale(self, record: AlbumRecord) -> bool:
        if record.loaded_at is None:
            return True
        return self._clock() - record.loaded_at > self.ttl_seconds

    def ensure(self, album_id: AlbumId) -> AlbumRecord:
        """
        Returns the album record, loading it on first use or when the TTL has passed.

        An empty result is cached like any other, so a genuinely empty album is
        asked for again only after the TTL expires.
        """
        with self.lock_for(album_id):
            record = self._record(album_id)
            if self.is_stale(record):
                self._reload(record)
            return record

    def ensure_loaded(self, album_id: AlbumId) -> AlbumRecord:
        """Like `ensure`, but also retries right away if the cached list is empty."""
        with self.lock_for(album_id):
            record = self._record(album_id)
            if self.is_stale(record) or record.is_empty:
                self._reload(record)
            return record

    def reload(self, album_id: AlbumId) -> AlbumRecord:
        """Forces a reload regardless of the TTL."""
        with self.lock_for(album_id):
            record = self._record(album_id)
            self._reload(record)
            return record

    def _reload(self, record: AlbumRecord) -> None:
        # Fetch first, then swap: readers never see a half-built list.
        photos = tuple(self._source.fetch_album(record.album_id))
        record.photos = photos
        record.loaded_at = self._clock()
        logger.info(f"[album {record.album_id}] loaded {len(photos)} photos")

    def preload(self, album_ids: Iterable[AlbumId]) -> None:
        for album_id in album_ids:
            self.ensure(album_id)

    def album_ids(self) -> list[AlbumId]:
        with self._registry_lock:
            return list(self._records)
