#!/usr/bin/env python3
# spinner/main.py
"""
Long-running entry point for the spinner server.

Builds every component once from the configuration, wires them together,
connects to the MQTT broker and then waits for SIGINT/SIGTERM. There are no
subcommands; everything is driven by `config.yaml`, `.env` and the
environment variables documented there.
"""
import sys

# Reaching PhotoPrism is the one capability the server cannot run without.
try:
    import requests  # noqa: F401
except ImportError:
    print("FATAL: the 'requests' package is not installed; cannot reach the photo library.", file=sys.stderr)
    sys.exit(1)

from spinner.exceptions import ConfigurationError, MessagingError

# The config_service MUST be imported before the other services so logging
# is configured before any other module attempts to log.
try:
    from spinner.services import config
except ConfigurationError as e:
    print(f"FATAL: {e}", file=sys.stderr)
    sys.exit(1)

import argparse
import logging
import signal
import threading
from typing import Optional

from spinner.formatting import AgeFormatter
from spinner.handlers import HandlerContext, build_handler_registry
from spinner.services import (
    AlbumCache, CommandDispatcher, ManifestBuilder, MaxIndexRefresher, MqttBus, NavigationEngine,
    PhotoSourceClient, SequenceCounter, SlidePublisher, TapeTimeline, ThemedSlideshow,
)

logger = logging.getLogger(__name__)


class SpinnerServer:
    """Owns every long-lived component and their start/stop order."""

    def __init__(self, bus: Optional[MqttBus] = None, source: Optional[PhotoSourceClient] = None):
        self.source = source or PhotoSourceClient(
            config.photoprism_url,
            timeout_seconds=config.get('photoprism.api_timeout_seconds', 15),
            album_page_size=config.get('photoprism.album_page_size', 1000),
            query_page_size=config.get('photoprism.query_page_size', 500),
            thumbnail_size=config.get('photoprism.thumbnail_size', 'fit_1920'),
        )
        self.bus = bus or MqttBus(
            config.mqtt_url,
            client_id=config.get('mqtt.client_id', 'photo-spinner'),
            keepalive=config.get('mqtt.keepalive', 60),
            reconnect_seconds=config.get('mqtt.reconnect_seconds', 2),
        )

        per_device = bool(config.get('albums.per_device', False))
        ages = AgeFormatter.from_settings(config.get('display.age_mode', 'relative'), config.get('display.birth_date'))

        self.cache = AlbumCache(self.source, ttl_seconds=config.get('albums.ttl_seconds', 1800))
        self.publisher = SlidePublisher(
            self.bus, self.cache, self.source, ages, SequenceCounter(),
            album_base=config.get('topics.album_base', 'spinner/album'),
            slideshow_topic=config.get('topics.slideshow', 'spinner/slideshow'),
            per_device=per_device,
            forward_to_slideshow=bool(config.get('albums.forward_to_slideshow', True)),
            detail=config.get('albums.status_detail', 'compact') == 'full',
        )
        self.manifests = ManifestBuilder(self.cache, self.publisher, ages)
        self.navigator = NavigationEngine(
            self.cache, self.publisher, self.manifests,
            per_device=per_device,
            get_delay_seconds=config.get('albums.get_response_delay_ms', 2000) / 1000.0,
        )

        context = HandlerContext(
            source=self.source,
            base_url=self.source.base_url,
            slide_interval_ms=config.get('handlers.slide_interval_ms', 5000),
        )
        self.slideshow = ThemedSlideshow(build_handler_registry(config.get('handlers', {})), self.publisher, context)

        self.refresher = MaxIndexRefresher(
            self.bus, self.source, config.get('max_index.albums', {}),
            refresh_seconds=config.get('max_index.refresh_seconds', 1800),
        )

        self.tape = None
        if config.get('tape.enabled', False):
            self.tape = TapeTimeline(
                self.bus, self.source,
                slide_topic=config.get('tape.slide_topic', 'tape/slide'),
                led_topic=config.get('tape.led_topic', 'tape/led'),
                album_count=config.get('tape.album_count', 100),
                photo_count=config.get('tape.photo_count', 200),
            )

        self.dispatcher = CommandDispatcher(
            self.navigator, self.slideshow,
            album_base=config.get('topics.album_base', 'spinner/album'),
            observed_topics=[MaxIndexRefresher.max_topic(t) for t in self.refresher.albums],
            tape=self.tape,
            tape_topic=config.get('tape.position_topic', 'tape/position'),
        )

    def _warm_up(self) -> None:
        known = config.get('albums.known', [])
        if known:
            logger.info(f"Preloading {len(known)} known album(s)...")
            self.cache.preload(known)
            logger.info("All albums preloaded")
        if self.tape is not None:
            self.tape.load()

    def start(self) -> None:
        self.bus.set_message_handler(self.dispatcher.handle_message)
        self.bus.subscribe(self.dispatcher.subscriptions())
        self.bus.start()
        if not self.bus.wait_until_connected(timeout=5):
            logger.warning(f"MQTT broker {self.bus.host}:{self.bus.port} not reachable yet, retrying in the background")
        threading.Thread(target=self._warm_up, name='warm-up', daemon=True).start()
        self.refresher.start()
        logger.info("Spinner server running (slideshow + album controller)")

    def stop(self) -> None:
        logger.info("Shutting down spinner server")
        self.refresher.stop()
        self.slideshow.stop('shutdown')
        self.navigator.cancel_pending()
        self.dispatcher.shutdown(wait=False)
        self.bus.stop()
        self.source.close()


def main(argv=None) -> int:
    """
    Main entry point.

    Runs until SIGINT or SIGTERM. Returns the process exit code.
    """
    parser = argparse.ArgumentParser(description="MQTT photo spinner server")
    parser.add_argument('--log-level', type=str, help="Override the configured log level (e.g. DEBUG).")
    args = parser.parse_args(argv)
    if args.log_level:
        config.set_log_level(args.log_level)

    try:
        server = SpinnerServer()
    except (MessagingError, ValueError) as e:
        # a bad broker URL or display setting
        print(f"FATAL: {e}", file=sys.stderr)
        return 1

    stop_event = threading.Event()

    def _request_stop(signum, frame):
        logger.info(f"Received signal {signum}")
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    server.start()
    try:
        while not stop_event.wait(1.0):
            pass
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
