# spinner/photoprism_api.py
"""
Low-level helpers for the PhotoPrism REST API: URL construction and the
normalisation of photo search results into `PhotoRef` objects.

PhotoPrism has changed its JSON shape across versions (bare arrays versus a
`{"Photos": [...]}` wrapper, `Hash` versus `UID` identifiers, several names for
the capture time), so every field is read through an explicit, ordered list of
candidate keys. The first key holding a non-empty value wins.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence
from urllib.parse import urlencode

from .exceptions import PhotoSourceResponseError
from .formatting import parse_timestamp
from .models import PhotoRef

logger = logging.getLogger(__name__)

# Priority order for the stable photo identifier.
ID_FIELDS: Sequence[str] = ('Hash', 'UID', 'ID', 'Id', 'id')

# Priority order for the capture timestamp.
TAKEN_FIELDS: Sequence[str] = (
    'TakenAt', 'TakenAtLocal', 'Taken', 'CreatedAt', 'Date', 'CreateDate', 'date', 'taken',
)

WRAPPED_LIST_KEYS: Sequence[str] = ('Photos', 'photos')


def normalize_host(host: str) -> str:
    """
    Ensure the PhotoPrism host is the root (no trailing '/api/v1'), no trailing slash.
    """
    if not host:
        return host
    h = host.strip().rstrip('/')
    for suffix in ('/api/v1', '/api'):
        if h.lower().endswith(suffix):
            h = h[:-len(suffix)].rstrip('/')
            break
    return h


def build_api_base(host: str) -> str:
    """Returns the API base URL (root + '/api/v1'), exactly once."""
    return f"{normalize_host(host)}/api/v1"


def photos_url(host: str, **params: Any) -> str:
    """Builds a `/photos` search URL; None-valued parameters are left out."""
    query = {'public': 'true'}
    query.update({k: v for k, v in params.items() if v is not None})
    return f"{build_api_base(host)}/photos?{urlencode(query)}"


def albums_url(host: str, count: int) -> str:
    return f"{build_api_base(host)}/albums?{urlencode({'count': count})}"


def thumbnail_url(host: str, photo_id: Optional[str], size: str = 'fit_1920') -> str:
    """
    Returns the public thumbnail URL for a photo hash.

    Values that are already absolute URLs are passed through untouched, so
    handlers may hand out either hashes or ready-made links.
    """
    if not photo_id or not isinstance(photo_id, str):
        return ""
    if photo_id.startswith('http://') or photo_id.startswith('https://'):
        return photo_id
    return f"{build_api_base(host)}/t/{photo_id}/public/{size}"


def first_present(record: Dict[str, Any], fields: Iterable[str]) -> Any:
    """Returns the value of the first field that is present and non-empty."""
    for name in fields:
        value = record.get(name)
        if value is not None and value != "":
            return value
    return None


def extract_photo_id(record: Dict[str, Any]) -> Optional[str]:
    value = first_present(record, ID_FIELDS)
    return str(value) if value is not None else None


def extract_taken(record: Dict[str, Any]):
    return parse_timestamp(first_present(record, TAKEN_FIELDS))


def extract_photo_list(body: Any) -> List[Dict[str, Any]]:
    """
    Unwraps a search response into a list of photo records.

    Raises:
        PhotoSourceResponseError: If the body is neither a list nor a wrapper
            object holding one.
    """
    if isinstance(body, list):
        records = body
    elif isinstance(body, dict):
        records = None
        for key in WRAPPED_LIST_KEYS:
            if isinstance(body.get(key), list):
                records = body[key]
                break
        if records is None:
            # a wrapper without photos is an empty result, not a malformed one
            records = []
    else:
        raise PhotoSourceResponseError(f"Expected a photo list, got {type(body).__name__}")
    return [r for r in records if isinstance(r, dict)]


def to_photo_refs(records: Iterable[Dict[str, Any]]) -> List[PhotoRef]:
    """Converts raw records, dropping any that carry no usable identifier."""
    photos = []
    for record in records:
        photo_id = extract_photo_id(record)
        if not photo_id:
            continue
        photos.append(PhotoRef(id=photo_id, captured_at=extract_taken(record)))
    return photos


def sort_by_capture(photos: Iterable[PhotoRef]) -> List[PhotoRef]:
    """Oldest first; undated photos keep their relative order at the end."""
    photos = list(photos)
    dated = [p for p in photos if p.captured_at is not None]
    undated = [p for p in photos if p.captured_at is None]
    return sorted(dated, key=lambda p: p.captured_at) + undated
