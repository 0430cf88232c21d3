# spinner/services/max_index.py
"""
Keeps the retained `{topic}/max` values up to date.

Counter wheels need to know the highest index they can select. For every
configured `topic -> album` pair the album size minus one is published,
retained, at startup and then on a fixed interval, independent of any command
traffic.
"""
import logging
from typing import Dict, Mapping, Optional

from ..models import AlbumId, PublishResult
from .scheduling import RepeatingTask

logger = logging.getLogger(__name__)


class MaxIndexRefresher:
    def __init__(self, bus, source, albums: Mapping[str, AlbumId], refresh_seconds: float = 1800):
        self._bus = bus
        self._source = source
        self.albums: Dict[str, AlbumId] = dict(albums or {})
        self.refresh_seconds = refresh_seconds
        self._task: Optional[RepeatingTask] = None

    @staticmethod
    def max_topic(topic: str) -> str:
        return f"{topic}/max"

    def refresh_topic(self, topic: str, album_id: AlbumId) -> Optional[PublishResult]:
        """Publishes the highest valid index for one topic; nothing if the album came back empty."""
        photos = self._source.fetch_album(album_id)
        if not photos:
            logger.error(f"[refresh] no photos for {topic} (album {album_id}), leaving {self.max_topic(topic)} as is")
            return None
        max_index = len(photos) - 1
        result = self._bus.publish(self.max_topic(topic), str(max_index), qos=0, retain=True)
        if result.ok:
            logger.info(f"[refresh] published {result.topic} = {max_index}")
        else:
            logger.error(f"[refresh] publish max error on {result.topic}: {result.error}")
        return result

    def refresh_all(self) -> None:
        for topic, album_id in self.albums.items():
            self.refresh_topic(topic, album_id)

    def start(self) -> None:
        if not self.albums:
            logger.debug("No max-index albums configured")
            return
        self._task = RepeatingTask(self.refresh_seconds, self.refresh_all, name='max-index-refresh',
                                   run_immediately=True).start()
        logger.info(f"Max-index topics will refresh every {self.refresh_seconds:g}s")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
