# spinner/services/publisher.py
"""
Builds and emits the outbound photo messages.

Two shapes leave the server for every navigation event:

* a small status message on `{album_base}/{album}/photo[/{device}]`, retained
  and sent with QoS 1, sized for the ESP32 spinners;
* a full slide on the shared slideshow topic, retained so the frame display
  always has the latest image.

The status message always goes first, and the slide is only forwarded once
the status was handed to the bus.
"""
import logging
import threading
import time
from typing import Callable, List, Optional

from ..formatting import AgeFormatter, iso_date, readable_date
from ..models import (
    AlbumId, DeviceId, PhotoId, PhotoRef, PhotoStatusMessage, PublishResult, SlideMessage,
)
from .navigation import resolve_index

logger = logging.getLogger(__name__)

STATUS_QOS = 1
MANIFEST_QOS = 1


class SequenceCounter:
    """Process-wide slide sequence number; subscribers use it to drop stale slides."""

    def __init__(self, start: int = 0):
        self._value = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class SlidePublisher:
    def __init__(self, bus, cache, source, ages: AgeFormatter, counter: SequenceCounter,
                 album_base: str = 'spinner/album', slideshow_topic: str = 'spinner/slideshow',
                 per_device: bool = False, forward_to_slideshow: bool = True,
                 detail: bool = False, clock_ms: Callable[[], int] = _epoch_ms):
        self._bus = bus
        self._cache = cache
        self._source = source
        self.ages = ages
        self.counter = counter
        self.album_base = album_base.rstrip('/')
        self.slideshow_topic = slideshow_topic
        self.per_device = per_device
        self.forward_to_slideshow = forward_to_slideshow
        self.detail = detail
        self._clock_ms = clock_ms

    # topic helpers
    def photo_topic(self, album_id: AlbumId, device_id: Optional[DeviceId] = None) -> str:
        if self.per_device and device_id:
            return f"{self.album_base}/{album_id}/photo/{device_id}"
        return f"{self.album_base}/{album_id}/photo"

    def manifest_topic(self, album_id: AlbumId, device_id: Optional[DeviceId] = None) -> str:
        if self.per_device and device_id:
            return f"{self.album_base}/{album_id}/manifest/{device_id}"
        return f"{self.album_base}/{album_id}/manifest"

    def _publish(self, topic: str, payload: str, qos: int = 0, retain: bool = False) -> PublishResult:
        result = self._bus.publish(topic, payload, qos=qos, retain=retain)
        if not result.ok:
            logger.error(f"Publish to {topic} failed: {result.error}")
        return result

    def publish_photo(self, album_id: AlbumId, index: int, device_id: Optional[DeviceId] = None) -> List[PublishResult]:
        """
        Publishes the photo at `index` (any integer, reduced modulo the album size).

        An album with no photos gets an explicit empty status carrying the
        unreduced index and `photosCount: 0`.

        Returns:
            The publish results in emission order: the status, then the slide if
            one was forwarded. An empty list means the album was never loaded.
        """
        record = self._cache.peek(album_id)
        if record is None:
            logger.warning(f"[album {album_id}] publish requested before the album was loaded")
            return []

        photos = record.photos
        topic = self.photo_topic(album_id, device_id)
        resolved = resolve_index(index, len(photos))

        if resolved is None:
            status = PhotoStatusMessage(index=index, photos_count=0, detail=self.detail)
            result = self._publish(topic, status.to_payload(), qos=STATUS_QOS, retain=True)
            if result.ok:
                logger.warning(f"[album {album_id}] published empty photo -> {topic}")
            return [result]

        photo = photos[resolved]
        age = self.ages.label(photo.captured_at)
        url = self._source.photo_url(photo.id)
        status = PhotoStatusMessage(
            index=resolved,
            photos_count=len(photos),
            date=iso_date(photo.captured_at) if self.detail else readable_date(photo.captured_at),
            age=age,
            photo_hash=photo.id,
            url=url,
            age_days=self.ages.age_days(photo.captured_at),
            detail=self.detail,
        )
        status_result = self._publish(topic, status.to_payload(), qos=STATUS_QOS, retain=True)
        results = [status_result]
        if not status_result.ok:
            return results
        logger.info(f"[album {album_id}] published photo -> {topic} (idx {resolved}/{len(photos)})")

        if self.forward_to_slideshow and url:
            results.append(self._forward(album_id, resolved, device_id, photo, url, age))
        return results

    def _forward(self, album_id: AlbumId, index: int, device_id: Optional[DeviceId],
                 photo: PhotoRef, url: str, age: str) -> PublishResult:
        key_parts = [f"album:{album_id}", f"idx:{index}"]
        if device_id:
            key_parts.append(f"dev:{device_id}")
        slide = SlideMessage(
            url=url,
            key=':'.join(key_parts),
            seq=self.counter.next(),
            ts=self._clock_ms(),
            album=album_id,
            index=index,
            device=device_id,
            date=iso_date(photo.captured_at),
            age=age,
        )
        result = self._publish(self.slideshow_topic, slide.to_payload(), retain=True)
        if result.ok:
            logger.info(f"[album {album_id}] forwarded slide seq {slide.seq} -> {self.slideshow_topic}")
        return result

    def publish_slide(self, photo_id: PhotoId, key: str) -> PublishResult:
        """Publishes a single themed-slideshow image to the slideshow topic."""
        slide = SlideMessage(
            url=self._source.photo_url(photo_id),
            key=key,
            seq=self.counter.next(),
            ts=self._clock_ms(),
        )
        result = self._publish(self.slideshow_topic, slide.to_payload(), retain=True)
        if result.ok:
            logger.info(f"Slideshow slide published: {slide.key} (seq {slide.seq})")
        return result

    def publish_manifest(self, album_id: AlbumId, payload: str, device_id: Optional[DeviceId] = None) -> PublishResult:
        return self._publish(self.manifest_topic(album_id, device_id), payload, qos=MANIFEST_QOS, retain=False)
