# spinner/__init__.py
"""MQTT photo spinner server: album navigation and themed slideshows on PhotoPrism."""

__version__ = "1.0.0"
