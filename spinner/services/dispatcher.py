# spinner/services/dispatcher.py
"""
Routes inbound MQTT messages to the component that owns them.

Messages arrive on paho's network thread, which must never block, so every
message is handed to an executor:

* album navigation gets one single-worker queue per album: commands for an
  album run one at a time in arrival order, and a slow PhotoPrism fetch for
  one album never holds up commands for another;
* themed commands run on a single worker, one at a time in arrival order,
  because they all drive the same slideshow;
* tape positions also get a single worker of their own.
"""
import json
import logging
import re
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from ..exceptions import MalformedPayloadError
from ..models import NAVIGATION_COMMANDS, AlbumId, NavigationCommand

logger = logging.getLogger(__name__)


def _album_executor(album_id: AlbumId) -> Executor:
    return ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"nav-{album_id}")


class CommandDispatcher:
    def __init__(self, navigator, slideshow, album_base: str = 'spinner/album',
                 observed_topics: Optional[List[str]] = None, tape=None,
                 tape_topic: str = 'tape/position',
                 nav_executor_factory: Optional[Callable[[AlbumId], Executor]] = None,
                 themed_executor: Optional[Executor] = None,
                 tape_executor: Optional[Executor] = None):
        self._navigator = navigator
        self._slideshow = slideshow
        self._tape = tape
        self.tape_topic = tape_topic
        self.album_base = album_base.rstrip('/')
        self.observed_topics = list(observed_topics or [])
        self._nav_pattern = re.compile(rf'^{re.escape(self.album_base)}/([^/]+)/nav$')
        self._nav_executor_factory = nav_executor_factory or _album_executor
        self._nav_executors: Dict[AlbumId, Executor] = {}
        self._nav_lock = threading.Lock()
        self._themed_executor = themed_executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='themed')
        self._tape_executor = tape_executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='tape')

    @property
    def nav_wildcard(self) -> str:
        return f"{self.album_base}/+/nav"

    def subscriptions(self) -> List[str]:
        topics = list(self._slideshow.topics) + [self.nav_wildcard] + self.observed_topics
        if self._tape is not None:
            topics.append(self.tape_topic)
        return topics

    def match_album(self, topic: str) -> Optional[str]:
        match = self._nav_pattern.match(topic)
        return match.group(1) if match else None

    def _executor_for(self, album_id: AlbumId) -> Executor:
        with self._nav_lock:
            executor = self._nav_executors.get(album_id)
            if executor is None:
                executor = self._nav_executors[album_id] = self._nav_executor_factory(album_id)
            return executor

    @staticmethod
    def _run_safely(label: str, fn: Callable, *args) -> None:
        try:
            fn(*args)
        except Exception:
            logger.error(f"{label} failed", exc_info=True)

    def handle_message(self, topic: str, payload: bytes) -> Optional[Future]:
        """
        Entry point for every inbound message.

        Returns:
            The future of the scheduled work, or None if the message was dropped
            or handled inline.
        """
        message = payload.decode('utf-8', errors='replace').strip()

        album_id = self.match_album(topic)
        if album_id is not None:
            return self._dispatch_navigation(album_id, message)

        if topic.endswith('/max'):
            logger.info(f"MQTT [{topic}]: {message}")
            return None

        if self._tape is not None and topic == self.tape_topic:
            return self._tape_executor.submit(self._run_safely, 'Tape position', self._tape.handle_position, message)

        if self._slideshow.handles(topic):
            logger.info(f"MQTT [{topic}]: {message}")
            return self._themed_executor.submit(
                self._run_safely, f"Themed command on {topic}", self._slideshow.trigger, topic, message
            )

        logger.warning(f"No handler for topic: {topic}")
        return None

    def _dispatch_navigation(self, album_id: str, message: str) -> Optional[Future]:
        try:
            command = NavigationCommand.from_dict(json.loads(message))
        except ValueError:
            logger.warning(f"Bad nav JSON for album {album_id}: {message!r}")
            return None
        except MalformedPayloadError as e:
            logger.warning(f"[album {album_id}] dropped nav command: {e}")
            return None

        if command.command not in NAVIGATION_COMMANDS:
            logger.warning(f"[album {album_id}] unknown cmd: {command.command!r}")
            return None

        # the frame follows whoever is navigating an album
        self._slideshow.stop('album navigation')
        return self._executor_for(album_id).submit(
            self._run_safely, f"[album {album_id}] {command.command}", self._navigator.handle, album_id, command
        )

    def shutdown(self, wait: bool = True) -> None:
        with self._nav_lock:
            nav_executors = list(self._nav_executors.values())
        for executor in nav_executors + [self._themed_executor, self._tape_executor]:
            executor.shutdown(wait=wait)
