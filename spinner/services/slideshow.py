# spinner/services/slideshow.py
"""
The themed slideshow: a timer-driven cycle through the photos a content
handler picked for a spinner wheel (a date, a person, a place...).

Only one cycle runs at a time. A new themed command replaces the running cycle,
and any album navigation command stops it, since the frame should follow the
device the user is turning. The running task and a generation counter sit
behind one lock: a tick that fires after the cycle was replaced or stopped sees
a newer generation and publishes nothing.
"""
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..models import HandlerResult, PhotoId
from .scheduling import RepeatingTask

logger = logging.getLogger(__name__)

ContentHandler = Callable[[Any, Any], Optional[HandlerResult]]


def parse_themed_payload(topic: str, raw: str) -> Any:
    """
    Decodes a themed command. `*/count` topics carry a bare integer; every
    other topic carries JSON.

    Raises:
        ValueError: If the payload cannot be decoded.
    """
    if topic.endswith('/count'):
        return int(raw.strip())
    return json.loads(raw)


class ThemedSlideshow:
    def __init__(self, handlers: Mapping[str, ContentHandler], publisher, context,
                 task_factory: Callable[..., RepeatingTask] = RepeatingTask):
        """
        Args:
            handlers: Topic to content handler mapping.
            publisher: The slide publisher used for every emitted slide.
            context: Passed to each handler as its second argument.
            task_factory: Builds the repeating task, replaceable in tests.
        """
        self._handlers: Dict[str, ContentHandler] = dict(handlers)
        self._publisher = publisher
        self._context = context
        self._task_factory = task_factory
        self._lock = threading.Lock()
        self._task: Optional[RepeatingTask] = None
        self._generation = 0
        self._last_key: Optional[str] = None
        self._photo_ids: List[PhotoId] = []
        self._position = 0
        self._key = ''

    @property
    def topics(self) -> List[str]:
        return list(self._handlers)

    def handles(self, topic: str) -> bool:
        return topic in self._handlers

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._task is not None

    def trigger(self, topic: str, raw: str) -> bool:
        """
        Runs the handler for a themed command and starts showing its photos.

        An exact repeat of the last accepted command (same topic, same raw
        payload) is ignored. When the handler finds nothing, whatever is
        currently showing keeps running.

        Returns:
            True if a new slide was published.
        """
        handler = self._handlers.get(topic)
        if handler is None:
            logger.warning(f"No handler for topic: {topic}")
            return False

        try:
            payload = parse_themed_payload(topic, raw)
        except ValueError as e:
            logger.error(f"Payload parse error on {topic}: {e}")
            return False

        key = f"{topic}:{raw}"
        with self._lock:
            if key == self._last_key:
                logger.info(f"Duplicate command on {topic}, ignoring")
                return False
            self._last_key = key
            generation = self._generation

        try:
            result = handler(payload, self._context)
        except Exception:
            logger.error(f"Handler error [{topic}]", exc_info=True)
            result = None

        with self._lock:
            if result is None or result.is_empty:
                logger.warning(f"No photos returned for {topic} {payload!r}")
                self._release_key(key)
                return False
            if generation != self._generation:
                # stopped or replaced while the handler was fetching
                logger.info(f"Dropping result for {topic}: superseded while loading")
                self._release_key(key)
                return False
            return self._start(result, key)

    def _release_key(self, key: str) -> None:
        if self._last_key == key:
            self._last_key = None

    def _start(self, result: HandlerResult, key: str) -> bool:
        # Caller holds self._lock.
        self._cancel_task()
        self._generation += 1
        generation = self._generation

        self._photo_ids = list(result.photo_ids)
        self._key = key
        count = len(self._photo_ids)
        start = min(max(0, result.start_index), count - 1)
        self._position = start + 1

        published = self._publisher.publish_slide(self._photo_ids[start], key).ok

        if result.interval_ms > 0:
            self._task = self._task_factory(
                result.interval_ms / 1000.0,
                lambda: self._advance(generation),
                name='themed-slideshow',
            ).start()
            logger.info(f"Slideshow started for {key}: {count} photos every {result.interval_ms}ms")
        return published

    def _advance(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or not self._photo_ids:
                return
            index = self._position % len(self._photo_ids)
            self._position += 1
            self._publisher.publish_slide(self._photo_ids[index], self._key)

    def _cancel_task(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def stop(self, reason: str = '') -> bool:
        """
        Stops the running cycle and forgets the last command, so the same
        themed command can start it again later.

        Returns:
            True if a cycle was running.
        """
        with self._lock:
            was_running = self._task is not None
            self._cancel_task()
            self._generation += 1
            self._last_key = None
        if was_running:
            logger.info(f"Stopped slideshow{' for ' + reason if reason else ''}")
        return was_running
