# spinner/models/dto.py
"""
Data Transfer Objects (DTOs) for the spinner server.

Inbound commands are parsed into these classes as soon as they leave the
dispatcher, and outbound messages are built as DTOs and serialised in one
place (`to_payload`) so the wire format for the ESP32 devices and the frame
display lives next to the type that produces it.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
import json
import logging

from ..exceptions import MalformedPayloadError

logger = logging.getLogger(__name__)

# Type aliases for better readability
PhotoId = str
AlbumId = str
DeviceId = str

NAVIGATION_COMMANDS = ('next', 'prev', 'goto', 'get')


@dataclass(frozen=True)
class PhotoRef:
    """A single photo as seen by the navigation engine."""
    id: PhotoId
    captured_at: Optional[datetime] = None


@dataclass
class AlbumRecord:
    """Cached photo list and navigation cursors for one album."""
    album_id: AlbumId
    photos: Tuple[PhotoRef, ...] = ()
    loaded_at: Optional[float] = None
    global_cursor: int = 0
    device_cursors: Dict[DeviceId, int] = field(default_factory=dict)

    @property
    def photos_count(self) -> int:
        return len(self.photos)

    @property
    def is_empty(self) -> bool:
        return not self.photos


@dataclass(frozen=True)
class NavigationCommand:
    """A parsed command from a `spinner/album/{album}/nav` topic."""
    command: str
    steps: int = 1
    index: Optional[int] = None
    device_id: Optional[DeviceId] = None

    @classmethod
    def from_dict(cls, data: Any) -> NavigationCommand:
        """
        Builds a command from a decoded JSON payload.

        `cmd` is the field the devices send; `command` is accepted as an alias.
        Steps below one, or steps that are not numeric, count as a single step.

        Raises:
            MalformedPayloadError: If the payload is not an object, or a goto
                carries no integer index.
        """
        if not isinstance(data, dict):
            raise MalformedPayloadError(f"Navigation payload must be a JSON object, got {type(data).__name__}")

        command = str(data.get('cmd', data.get('command', '')) or '').strip()
        steps = _coerce_steps(data.get('steps'))

        index = data.get('index')
        if command == 'goto':
            index = _coerce_index(index)
            if index is None:
                raise MalformedPayloadError(f"goto requires an integer index, got {data.get('index')!r}")
        else:
            index = None

        device = data.get('device', data.get('deviceId'))
        device_id = str(device) if device not in (None, '') else None

        return cls(command=command, steps=steps, index=index, device_id=device_id)


def _coerce_steps(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 1
    try:
        steps = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 1
    return steps if steps >= 1 else 1


def _coerce_index(value: Any) -> Optional[int]:
    # bool is an int subclass but never a meaningful index
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


@dataclass(frozen=True)
class PhotoStatusMessage:
    """Compact status for the spinner devices; `detail` adds the full fields."""
    index: int
    photos_count: int
    date: str = ""
    age: str = ""
    photo_hash: Optional[PhotoId] = None
    url: Optional[str] = None
    age_days: Optional[int] = None
    detail: bool = False

    def to_payload(self) -> str:
        payload: Dict[str, Any] = {
            'index': self.index,
            'photosCount': self.photos_count,
            'date': self.date,
            'age': self.age,
        }
        if self.detail:
            if self.photos_count:
                payload['hash'] = self.photo_hash
                payload['age_days'] = self.age_days
            payload['url'] = self.url or ""
        return json.dumps(payload)


@dataclass(frozen=True)
class SlideMessage:
    """An image for the frame display on the shared slideshow topic."""
    url: str
    key: str
    seq: int
    ts: int
    album: Optional[AlbumId] = None
    index: Optional[int] = None
    device: Optional[DeviceId] = None
    date: str = ""
    age: str = ""
    kind: str = "image"

    def to_payload(self) -> str:
        payload: Dict[str, Any] = {
            'type': self.kind,
            'url': self.url,
            'key': self.key,
            'seq': self.seq,
            'ts': self.ts,
        }
        if self.album is not None:
            payload.update({
                'album': self.album,
                'index': self.index,
                'device': self.device,
                'date': self.date,
                'age': self.age,
            })
        return json.dumps(payload)


@dataclass(frozen=True)
class ManifestEntry:
    index: int
    photo_id: PhotoId
    date: str = ""
    age: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {'index': self.index, 'hash': self.photo_id, 'date': self.date, 'age': self.age}


@dataclass(frozen=True)
class ManifestMessage:
    """Full ordered listing of an album, sent in response to `get`."""
    entries: Tuple[ManifestEntry, ...] = ()

    @property
    def length(self) -> int:
        return len(self.entries)

    def to_payload(self) -> str:
        return json.dumps({'length': self.length, 'entries': [e.to_dict() for e in self.entries]})


@dataclass
class HandlerResult:
    """What a content handler hands back to the themed slideshow."""
    photo_ids: List[PhotoId] = field(default_factory=list)
    interval_ms: int = 0
    start_index: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.photo_ids


@dataclass(frozen=True)
class PublishResult:
    """Outcome of handing one message to the bus."""
    topic: str
    ok: bool = True
    error: Optional[str] = None


@dataclass
class TapeAlbum:
    """An album mapped onto a stretch of the LED tape."""
    tape_id: str
    kind: str
    title: str
    color: str
    start_cm: int
    end_cm: int
    album_id: AlbumId
    photos: List[PhotoRef] = field(default_factory=list)

    @property
    def start_mm(self) -> int:
        return self.start_cm * 10

    @property
    def end_mm(self) -> int:
        return self.end_cm * 10

    @classmethod
    def from_api_album(cls, data: Dict[str, Any]) -> Optional[TapeAlbum]:
        """Parses a `TAPE|id|type|title|color|startCM|endCM` album description."""
        description = data.get('Description') or ''
        if not description.startswith('TAPE|'):
            return None
        parts = description.split('|')
        if len(parts) < 7:
            logger.warning(f"Ignoring tape album with short description: {description!r}")
            return None
        _, tape_id, kind, title, color, start, end = parts[:7]
        try:
            start_cm, end_cm = int(start), int(end)
        except ValueError:
            logger.warning(f"Ignoring tape album with non-numeric range: {description!r}")
            return None
        return cls(
            tape_id=tape_id, kind=kind, title=title, color=color,
            start_cm=start_cm, end_cm=end_cm, album_id=data.get('UID', ''),
        )
