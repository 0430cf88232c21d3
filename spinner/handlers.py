# spinner/handlers.py
"""
Content handlers for the themed spinner wheels.

A handler turns the payload of one wheel's topic into a list of photo ids and a
slide interval. Handlers never raise for missing content: no photos, an
unknown name or a failed search all come back as None, and the slideshow
leaves the frame as it is.

Most wheels follow the same recipe: look the name up in a configured
name-to-album map, fall back to a PhotoPrism person search, then shuffle.
"""
import logging
import random
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .models import HandlerResult, PhotoRef

logger = logging.getLogger(__name__)

DEFAULT_SLIDE_INTERVAL_MS = 5000


@dataclass
class HandlerContext:
    """What every handler gets next to its payload."""
    source: Any
    base_url: str
    slide_interval_ms: int = DEFAULT_SLIDE_INTERVAL_MS
    rng: Optional[random.Random] = None

    def __post_init__(self):
        if self.rng is None:
            self.rng = random.Random()


def _ids(photos: Sequence[PhotoRef]) -> List[str]:
    return [p.id for p in photos]


def _shuffled(photos: Sequence[PhotoRef], context: HandlerContext) -> List[str]:
    ids = _ids(photos)
    context.rng.shuffle(ids)
    return ids


def _name_from(payload: Any, allow_raw_string: bool = False) -> Optional[str]:
    if allow_raw_string and isinstance(payload, str):
        return payload.strip() or None
    if isinstance(payload, dict) and payload.get('name'):
        return str(payload['name']).strip() or None
    return None


def date_handler(payload: Any, context: HandlerContext) -> Optional[HandlerResult]:
    """Date wheel: `{"month": 4, "year": 2021}` shows that month in order of the search."""
    if not isinstance(payload, dict) or payload.get('year') is None or payload.get('month') is None:
        logger.warning(f"[dateHandler] expected month and year, got {payload!r}")
        return None
    photos = context.source.search_month(payload['year'], payload['month'])
    if not photos:
        return None
    return HandlerResult(photo_ids=_ids(photos), interval_ms=context.slide_interval_ms)


def people_handler(payload: Any, context: HandlerContext) -> Optional[HandlerResult]:
    name = _name_from(payload)
    if not name:
        logger.warning("[peopleHandler] missing payload.name")
        return None
    photos = context.source.search_person(name)
    if not photos:
        return None
    return HandlerResult(photo_ids=_ids(photos), interval_ms=context.slide_interval_ms)


class AlbumIndexHandler:
    """
    Counter wheel: the whole album, oldest first, and the payload is the index
    of the single photo to show.
    """

    def __init__(self, album_id: str):
        self.album_id = album_id

    def __call__(self, payload: Any, context: HandlerContext) -> Optional[HandlerResult]:
        if isinstance(payload, bool) or not isinstance(payload, int):
            logger.warning(f"[photoHandler] expected an integer index, got {payload!r}")
            return None
        photos = context.source.fetch_album(self.album_id)
        logger.info(f"[photoHandler] prepared {len(photos)} hashes for indexing")
        if not photos:
            return None
        index = min(max(0, payload), len(photos) - 1)
        return HandlerResult(photo_ids=_ids(photos), interval_ms=0, start_index=index)


class NamedAlbumHandler:
    """
    Name wheels (friends, family, themes): a configured album per name, or a
    person search for names without one. Results are shuffled.
    """

    def __init__(self, label: str, albums: Mapping[str, str], case_insensitive: bool = False,
                 allow_raw_string: bool = False):
        self.label = label
        self.case_insensitive = case_insensitive
        self.allow_raw_string = allow_raw_string
        if case_insensitive:
            self.albums = {str(k).lower(): v for k, v in (albums or {}).items()}
        else:
            self.albums = dict(albums or {})

    def album_for(self, name: str) -> Optional[str]:
        return self.albums.get(name.lower() if self.case_insensitive else name)

    def photos_for(self, name: str, context: HandlerContext) -> List[PhotoRef]:
        album_id = self.album_for(name)
        if album_id:
            return context.source.fetch_album(album_id)
        return context.source.search_person(name)

    def __call__(self, payload: Any, context: HandlerContext) -> Optional[HandlerResult]:
        name = _name_from(payload, self.allow_raw_string)
        if not name:
            logger.warning(f"[{self.label}] missing payload.name")
            return None
        logger.info(f"[{self.label}] got name: {name}")

        photos = self.photos_for(name, context)
        if not photos:
            logger.warning(f"[{self.label}] no photos found for {name} (albumUID={self.album_for(name) or 'N/A'})")
            return None
        return HandlerResult(photo_ids=_shuffled(photos, context), interval_ms=context.slide_interval_ms)


def days_query(payload: Any, today: Optional[date] = None) -> Optional[str]:
    """
    Builds a PhotoPrism `q` filter from a days-wheel payload.

    Accepts `{"photoprism_q": ...}` (used verbatim), `{"date": "YYYY-MM-DD"}`,
    `{"days_ago": N}` (0 is today) or a bare date string.
    """
    if isinstance(payload, str):
        return f"taken:{payload.strip()}" if len(payload.strip()) >= 8 else None
    if not isinstance(payload, dict):
        return None
    if payload.get('photoprism_q'):
        return str(payload['photoprism_q']).strip()
    if payload.get('date'):
        return f"taken:{str(payload['date']).strip()}"
    if payload.get('days_ago') is not None:
        try:
            days_ago = int(payload['days_ago'])
        except (TypeError, ValueError):
            days_ago = 0
        day = (today or date.today()) - timedelta(days=days_ago)
        return f"taken:{day.isoformat()}"
    return None


class DaysHandler:
    """On-this-day wheel."""

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    def __call__(self, payload: Any, context: HandlerContext) -> Optional[HandlerResult]:
        query = days_query(payload, self._today())
        if not query:
            logger.warning(f"[daysHandler] no photoprism_q/date/days_ago provided in payload: {payload!r}")
            return None
        logger.info(f"[daysHandler] query -> {query}")
        photos = context.source.search_query(query)
        if not photos:
            logger.warning(f"[daysHandler] no photos found for query: {query}")
            return None
        return HandlerResult(photo_ids=_shuffled(photos, context), interval_ms=context.slide_interval_ms)


class DistanceHandler:
    """
    Distance wheel: a distance in km picks the configured place at that
    distance (or the nearest one within the tolerance), and the place name is
    then looked up like any other named album.
    """

    def __init__(self, places: Sequence[Mapping[str, Any]], albums: Mapping[str, str], tolerance_km: float = 3):
        self.places = [(float(p['d']), str(p['name'])) for p in places or []]
        self.tolerance_km = tolerance_km
        self._albums = NamedAlbumHandler('distanceHandler', albums)

    def place_for(self, distance: float) -> Optional[str]:
        for d, name in self.places:
            if d == distance:
                return name
        best = None
        best_diff = float('inf')
        for d, name in self.places:
            diff = abs(d - distance)
            if diff < best_diff:
                best, best_diff = name, diff
        if best is not None and best_diff <= self.tolerance_km:
            return best
        return None

    def _resolve(self, payload: Any) -> Optional[str]:
        distance = None
        name = None
        if isinstance(payload, (int, float)) and not isinstance(payload, bool):
            distance = payload
        elif isinstance(payload, str) and payload.strip():
            try:
                distance = float(payload)
            except ValueError:
                name = payload.strip()
        elif isinstance(payload, dict):
            if isinstance(payload.get('distance'), (int, float)) and not isinstance(payload['distance'], bool):
                distance = payload['distance']
            elif payload.get('name'):
                name = str(payload['name']).strip()

        if distance is not None and name is None:
            name = self.place_for(distance)
            logger.info(f"[distanceHandler] distance={distance} -> place={name or 'NONE'}")
        return name

    def __call__(self, payload: Any, context: HandlerContext) -> Optional[HandlerResult]:
        name = self._resolve(payload)
        if not name:
            logger.warning("[distanceHandler] no place mapping for payload; ignoring")
            return None
        return self._albums({'name': name}, context)


def build_handler_registry(settings: Mapping[str, Any]) -> Dict[str, Callable[[Any, HandlerContext], Optional[HandlerResult]]]:
    """
    Maps each themed topic to its handler.

    Args:
        settings: The `handlers` section of the configuration.
    """
    registry: Dict[str, Callable] = {
        'spinner/date': date_handler,
        'spinner/people': people_handler,
        'spinner/friend': NamedAlbumHandler('friendHandler', settings.get('friend_albums')),
        'spinner/birthfam': NamedAlbumHandler('birthFamHandler', settings.get('birthfam_albums')),
        'spinner/cousins': NamedAlbumHandler('cousinsHandler', settings.get('cousins_albums')),
        'spinner/afamily': NamedAlbumHandler('afamilyHandler', settings.get('afamily_albums')),
        'spinner/themeA': NamedAlbumHandler('themeAHandler', settings.get('theme_albums'),
                                            case_insensitive=True, allow_raw_string=True),
        'spinner/days': DaysHandler(),
        'spinner/distance': DistanceHandler(settings.get('places'), settings.get('place_albums'),
                                            settings.get('distance_tolerance_km', 3)),
    }
    if settings.get('count_album'):
        registry['spinner/date/count'] = AlbumIndexHandler(settings['count_album'])
    return registry
