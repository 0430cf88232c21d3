# spinner/services/navigation.py
"""
The album navigation engine.

Each album keeps an unbounded integer cursor (one per device when per-device
addressing is switched on). Commands move the cursor with plain integer
arithmetic; the cursor is only reduced modulo the album size when a photo is
picked, so `next` followed by `prev` always lands back where it started and a
cursor survives the album being temporarily empty.

All of the read-modify-write-publish sequence for an album runs under that
album's lock from the cache. `get` is answered after a fixed delay on a timer
thread so the requesting device has time to subscribe to its reply topics,
without holding up any other command.
"""
import logging
import threading
from typing import Callable, Optional, Set

from ..exceptions import UnknownCommandError
from ..models import AlbumId, AlbumRecord, DeviceId, NavigationCommand

logger = logging.getLogger(__name__)


def resolve_index(cursor: int, count: int) -> Optional[int]:
    """
    Reduces a cursor to a list index in `[0, count)`.

    Uses true modulo, so negative cursors wrap from the end. Returns None when
    there is nothing to pick from.
    """
    if count <= 0:
        return None
    return ((cursor % count) + count) % count


def apply_command(cursor: int, command: NavigationCommand) -> int:
    """
    Returns the cursor after a moving command.

    Raises:
        UnknownCommandError: For anything other than next, prev or goto.
    """
    if command.command == 'next':
        return cursor + command.steps
    if command.command == 'prev':
        return cursor - command.steps
    if command.command == 'goto':
        return command.index
    raise UnknownCommandError(f"unknown cmd: {command.command!r}")


class NavigationEngine:
    def __init__(self, cache, publisher, manifests, per_device: bool = False,
                 get_delay_seconds: float = 2.0,
                 timer_factory: Callable[..., threading.Timer] = threading.Timer):
        self._cache = cache
        self._publisher = publisher
        self._manifests = manifests
        self.per_device = per_device
        self.get_delay_seconds = get_delay_seconds
        self._timer_factory = timer_factory
        self._pending: Set[threading.Timer] = set()
        self._pending_lock = threading.Lock()

    def cursor_for(self, record: AlbumRecord, device_id: Optional[DeviceId]) -> int:
        """The cursor a command works on; a new device starts from the global cursor."""
        if self.per_device and device_id:
            return record.device_cursors.get(device_id, record.global_cursor)
        return record.global_cursor

    def _store_cursor(self, record: AlbumRecord, device_id: Optional[DeviceId], cursor: int) -> None:
        if self.per_device and device_id:
            record.device_cursors[device_id] = cursor
        else:
            record.global_cursor = cursor

    def handle(self, album_id: AlbumId, command: NavigationCommand) -> Optional[int]:
        """
        Applies one command to an album and publishes the resulting photo.

        Args:
            album_id: The album addressed by the nav topic.
            command: The parsed command.

        Returns:
            The new cursor for moving commands, None for `get` and unknown commands.
        """
        if command.command == 'get':
            logger.info(f"[album {album_id}] received GET, responding in {self.get_delay_seconds:g}s")
            self._schedule_get(album_id, command.device_id)
            return None

        lock = self._cache.lock_for(album_id)
        with lock:
            record = self._cache.ensure(album_id)
            current = self.cursor_for(record, command.device_id)
            try:
                cursor = apply_command(current, command)
            except UnknownCommandError as e:
                logger.warning(f"[album {album_id}] {e}")
                return None
            self._store_cursor(record, command.device_id, cursor)
            logger.debug(f"[album {album_id}] {command.command} {current} -> {cursor}")
            self._publisher.publish_photo(album_id, cursor, command.device_id)
            return cursor

    def _schedule_get(self, album_id: AlbumId, device_id: Optional[DeviceId]) -> threading.Timer:
        timer = self._timer_factory(self.get_delay_seconds, self._respond_to_get, args=(album_id, device_id))
        timer.daemon = True
        with self._pending_lock:
            self._pending.add(timer)
        timer.start()
        return timer

    def _respond_to_get(self, album_id: AlbumId, device_id: Optional[DeviceId]) -> None:
        try:
            with self._cache.lock_for(album_id):
                self._manifests.publish(album_id, device_id)
                record = self._cache.peek(album_id)
                self._publisher.publish_photo(album_id, self.cursor_for(record, device_id), device_id)
        except Exception:
            # Timer threads have no caller to report to.
            logger.error(f"[album {album_id}] failed to answer GET", exc_info=True)
        finally:
            with self._pending_lock:
                self._pending.discard(threading.current_thread())

    @property
    def pending_gets(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def cancel_pending(self) -> None:
        """Drops every GET reply that has not been sent yet."""
        with self._pending_lock:
            pending, self._pending = self._pending, set()
        for timer in pending:
            timer.cancel()
