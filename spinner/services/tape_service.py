# spinner/services/tape_service.py
"""
Maps positions on the LED tape to photos.

Tape albums are ordinary PhotoPrism albums whose description reads
`TAPE|<id>|<type>|<title>|<colour>|<startCM>|<endCM>`. Each album covers a
stretch of the tape; within that stretch the album's dated photos are laid out
in equal bins, oldest first. A position report picks the album and bin, sends
the photo to the tape display topic and lights the tape in the album colour.
"""
import json
import logging
import math
import threading
from typing import Dict, List, Optional, Tuple

from ..models import TapeAlbum, PhotoRef, PublishResult

logger = logging.getLogger(__name__)

COLORS: Dict[str, Dict[str, int]] = {
    'red':     {'r': 255, 'g': 0,   'b': 0},
    'green':   {'r': 0,   'g': 255, 'b': 0},
    'blue':    {'r': 0,   'g': 0,   'b': 255},
    'yellow':  {'r': 255, 'g': 255, 'b': 0},
    'magenta': {'r': 255, 'g': 0,   'b': 255},
    'cyan':    {'r': 0,   'g': 255, 'b': 255},
    'white':   {'r': 255, 'g': 255, 'b': 255},
    'orange':  {'r': 255, 'g': 165, 'b': 0},
    'black':   {'r': 0,   'g': 0,   'b': 0},
}


def color_to_rgb(name: Optional[str]) -> Dict[str, int]:
    return dict(COLORS.get((name or '').lower(), COLORS['white']))


def parse_tape_albums(albums: List[dict]) -> List[TapeAlbum]:
    """Tape albums from an album listing, ordered along the tape."""
    tape_albums = [a for a in (TapeAlbum.from_api_album(raw) for raw in albums) if a is not None]
    return sorted(tape_albums, key=lambda a: a.start_cm)


def pick_photo(album: TapeAlbum, position_mm: int) -> Optional[Tuple[int, PhotoRef]]:
    """The bin index and photo under `position_mm`, or None for an empty album."""
    count = len(album.photos)
    if count == 0:
        return None
    span = album.end_mm - album.start_mm
    if span <= 0:
        return 0, album.photos[0]
    bin_size = span / count
    index = min(count - 1, max(0, math.floor((position_mm - album.start_mm) / bin_size)))
    return index, album.photos[index]


class TapeTimeline:
    def __init__(self, bus, source, slide_topic: str = 'tape/slide', led_topic: str = 'tape/led',
                 album_count: int = 100, photo_count: int = 200):
        self._bus = bus
        self._source = source
        self.slide_topic = slide_topic
        self.led_topic = led_topic
        self.album_count = album_count
        self.photo_count = photo_count
        self._lock = threading.Lock()
        self._timeline: List[TapeAlbum] = []
        self._last_sent: Optional[str] = None

    @property
    def albums(self) -> List[TapeAlbum]:
        with self._lock:
            return list(self._timeline)

    def load(self) -> int:
        """Rebuilds the timeline from PhotoPrism. Returns the number of tape albums."""
        timeline = parse_tape_albums(self._source.fetch_albums(self.album_count))
        for album in timeline:
            photos = self._source.fetch_album(album.album_id, count=self.photo_count)
            # undated photos have no place on a timeline
            album.photos = [p for p in photos if p.captured_at is not None]
        with self._lock:
            self._timeline = timeline
        logger.info(f"Timeline loaded with {len(timeline)} albums")
        return len(timeline)

    def album_at(self, position_mm: int) -> Optional[TapeAlbum]:
        with self._lock:
            for album in self._timeline:
                if album.start_mm <= position_mm <= album.end_mm:
                    return album
        return None

    def handle_position(self, raw: str) -> List[PublishResult]:
        """
        Handles one `tape/position` report (an integer number of millimetres).

        The same photo is never sent twice in a row.
        """
        try:
            position_mm = int(raw.strip())
        except ValueError:
            logger.warning(f"Bad tape position: {raw!r}")
            return []

        album = self.album_at(position_mm)
        if album is None:
            logger.info(f"No album at {position_mm}mm")
            return []
        picked = pick_photo(album, position_mm)
        if picked is None:
            logger.info(f"No photos in album: {album.title}")
            return []
        _, photo = picked

        with self._lock:
            if photo.id == self._last_sent:
                return []
            self._last_sent = photo.id

        payload = {
            'type': 'image',
            'url': self._source.photo_url(photo.id),
            'albumTitle': album.title,
            'color': album.color,
            'mm': position_mm,
            'cm': position_mm // 10,
        }
        results = [
            self._bus.publish(self.slide_topic, json.dumps(payload), qos=0, retain=False),
            self._bus.publish(self.led_topic, json.dumps(color_to_rgb(album.color)), qos=0, retain=False),
        ]
        for result in results:
            if not result.ok:
                logger.error(f"Tape publish to {result.topic} failed: {result.error}")
        logger.info(f"Sent image: {album.title} -> {payload['url']}")
        return results
