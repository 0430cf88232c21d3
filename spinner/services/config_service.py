# spinner/services/config_service.py
"""
Provides a singleton configuration service for the entire application.

This service is responsible for:
1. Loading the `config.yaml` file (or the file named by `SPINNER_CONFIG`).
2. Loading environment variables from a `.env` file.
3. Setting up a centralized logging system for both console and file output.

Using a singleton pattern ensures that configuration is loaded once and is
consistent across all modules that import it.
"""
import yaml
import os
import copy
import logging
import sys
from pathlib import Path
import dotenv
import threading
from typing import Any, Dict, Optional

from ..exceptions import ConfigurationError

# Used when no config.yaml can be found. Mirrors the shipped config.yaml.
DEFAULT_CONFIG: Dict[str, Any] = {
    'photoprism': {
        'url': 'http://localhost:2342',
        'api_timeout_seconds': 15,
        'album_page_size': 1000,
        'query_page_size': 500,
        'thumbnail_size': 'fit_1920',
    },
    'mqtt': {
        'url': 'mqtt://localhost:1883',
        'client_id': 'photo-spinner',
        'keepalive': 60,
        'reconnect_seconds': 2,
    },
    'topics': {
        'album_base': 'spinner/album',
        'slideshow': 'spinner/slideshow',
    },
    'albums': {
        'ttl_seconds': 1800,
        'per_device': False,
        'forward_to_slideshow': True,
        'status_detail': 'compact',
        'get_response_delay_ms': 2000,
        'known': [],
    },
    'display': {
        'age_mode': 'relative',
        'birth_date': '2019-04-25',
    },
    'handlers': {
        'slide_interval_ms': 5000,
        'count_album': None,
        'friend_albums': {},
        'birthfam_albums': {},
        'cousins_albums': {},
        'afamily_albums': {},
        'theme_albums': {},
        'places': [],
        'place_albums': {},
        'distance_tolerance_km': 3,
    },
    'max_index': {
        'refresh_seconds': 1800,
        'albums': {},
    },
    'tape': {
        'enabled': False,
        'position_topic': 'tape/position',
        'led_topic': 'tape/led',
        'slide_topic': 'tape/slide',
        'album_count': 100,
        'photo_count': 200,
    },
    'logging': {
        'level': 'INFO',
        'directory': None,
        'filename': 'spinner.log',
    },
}


class AppConfig:
    _instance: Optional['AppConfig'] = None
    _loaded: bool = False
    _lock: threading.Lock = threading.Lock()

    def __new__(cls, *args, **kwargs) -> 'AppConfig':
        if cls._instance is None:
            with cls._lock:
                # Double-check pattern to prevent race conditions
                if cls._instance is None:
                    cls._instance = super(AppConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        # The __init__ might be called multiple times, but the loading logic
        # is protected by the `_loaded` flag and thread lock.
        if not self._loaded:
            with self._lock:
                if not self._loaded:
                    # Load environment variables first, as they can point at the config file.
                    dotenv.load_dotenv()
                    self.project_root = Path(__file__).resolve().parents[2]

                    self._load_yaml_config()
                    self._load_env_vars()
                    self._setup_logging()

                    self._loaded = True
                    logging.getLogger(__name__).info(f"Configuration loaded from {self.config_source}")

    def _load_yaml_config(self) -> None:
        """Loads the YAML config file on top of the built-in defaults."""
        config_path = Path(os.getenv('SPINNER_CONFIG') or self.project_root / 'config.yaml')
        self.yaml = copy.deepcopy(DEFAULT_CONFIG)
        try:
            with open(config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
        except FileNotFoundError:
            # Devices keep working against a default local setup.
            print(f"WARNING: Configuration file not found at {config_path}, using defaults", file=sys.stderr)
            self.config_source = 'built-in defaults'
            return
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Error parsing YAML configuration file {config_path}: {e}") from e

        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Configuration file {config_path} must contain a mapping at the top level")
        _deep_merge(self.yaml, loaded)
        self.config_source = str(config_path)

    def _load_env_vars(self) -> None:
        """Environment variables win over the YAML file."""
        self.photoprism_url = os.getenv("PHOTOPRISM_URL") or self.get('photoprism.url')
        self.mqtt_url = os.getenv("MQTT_URL") or self.get('mqtt.url')
        self.log_level = os.getenv("SPINNER_LOG_LEVEL") or self.get('logging.level', 'INFO')

    def _setup_logging(self) -> None:
        """Configures the root logger for consistent logging across the app."""
        log_level = getattr(logging, str(self.log_level).upper(), logging.INFO)

        handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
        log_dir_name = self.get('logging.directory')
        if log_dir_name:
            log_dir = self.project_root / log_dir_name
            log_dir.mkdir(exist_ok=True)
            handlers.append(logging.FileHandler(log_dir / self.get('logging.filename', 'spinner.log')))

        # Configure the root logger so every child logger inherits the same settings.
        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - [%(levelname)s] - %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
            handlers=handlers,
            force=True
        )

        # Silence overly verbose libraries
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("requests").setLevel(logging.WARNING)
        logging.getLogger("paho").setLevel(logging.WARNING)

    def set_log_level(self, level: str) -> None:
        """Overrides the root log level, e.g. from the command line."""
        self.log_level = level
        logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Safely retrieves a value from the nested YAML configuration.

        Args:
            key_path (str): A dot-separated path to the desired key (e.g., 'albums.ttl_seconds').
            default: The value to return if the key is not found or is null.

        Returns:
            The configuration value or the default.
        """
        value = self.yaml
        try:
            for key in key_path.split('.'):
                value = value[key]
        except (KeyError, TypeError):
            return default
        return default if value is None else value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


# Create the singleton instance that will be imported by other modules.
config = AppConfig()
