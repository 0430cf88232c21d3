# spinner/services/__init__.py
"""
Initializes the services package.

The configuration singleton is created on import so logging is configured
before any other module logs. Everything else is a class: `spinner.main`
builds one instance of each at startup and passes them to each other, so
nothing but the configuration is global.
"""
# config_service must be first.
from .config_service import config
from .photo_service import PhotoSourceClient
from .album_cache import AlbumCache
from .navigation import NavigationEngine, resolve_index, apply_command
from .publisher import SlidePublisher, SequenceCounter
from .manifest import ManifestBuilder
from .scheduling import RepeatingTask
from .slideshow import ThemedSlideshow
from .max_index import MaxIndexRefresher
from .tape_service import TapeTimeline
from .mqtt_service import MqttBus
from .dispatcher import CommandDispatcher

__all__ = [
    "config",
    "PhotoSourceClient",
    "AlbumCache",
    "NavigationEngine",
    "resolve_index",
    "apply_command",
    "SlidePublisher",
    "SequenceCounter",
    "ManifestBuilder",
    "RepeatingTask",
    "ThemedSlideshow",
    "MaxIndexRefresher",
    "TapeTimeline",
    "MqttBus",
    "CommandDispatcher",
]
