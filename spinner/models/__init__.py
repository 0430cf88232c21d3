# spinner/models/__init__.py
"""
Models package for the spinner server.

This package contains the data model definitions and DTOs shared by the
navigation engine, the publishers and the content handlers.
"""

from .dto import (
    # Core DTOs
    PhotoRef,
    AlbumRecord,
    NavigationCommand,
    PhotoStatusMessage,
    SlideMessage,
    ManifestEntry,
    ManifestMessage,
    HandlerResult,
    PublishResult,
    TapeAlbum,

    # Type aliases
    PhotoId,
    AlbumId,
    DeviceId,

    # Constants
    NAVIGATION_COMMANDS,
)

__all__ = [
    # Core DTOs
    'PhotoRef',
    'AlbumRecord',
    'NavigationCommand',
    'PhotoStatusMessage',
    'SlideMessage',
    'ManifestEntry',
    'ManifestMessage',
    'HandlerResult',
    'PublishResult',
    'TapeAlbum',

    # Type aliases
    'PhotoId',
    'AlbumId',
    'DeviceId',

    # Constants
    'NAVIGATION_COMMANDS',
]
