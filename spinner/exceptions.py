# spinner/exceptions.py
"""
Defines custom, application-specific exceptions for clear error handling.

Only a few of these ever cross a module boundary: the photo source client
downgrades its own errors to empty results, and the dispatcher logs and drops
malformed commands. The hierarchy exists so that each of those boundaries can
catch exactly the class of failure it is responsible for.
"""

class SpinnerError(Exception):
    """Base exception for all errors raised by the spinner server."""
    pass

# --- Photo Source Exceptions ---
class PhotoSourceError(SpinnerError):
    """Base exception for failures talking to the PhotoPrism API."""
    pass

class PhotoSourceHTTPError(PhotoSourceError):
    """Raised for connection failures and non-success HTTP status codes."""
    pass

class PhotoSourceResponseError(PhotoSourceError):
    """Raised when the API returns a body that is not JSON or not a photo list."""
    pass

# --- Messaging Exceptions ---
class MessagingError(SpinnerError):
    """Raised for MQTT bus configuration problems, such as an unusable broker URL."""
    pass

# --- Command Exceptions ---
class CommandError(SpinnerError):
    """Base exception for problems with inbound command messages."""
    pass

class MalformedPayloadError(CommandError):
    """Raised when an inbound payload is not valid JSON or misses a required field."""
    pass

class UnknownCommandError(CommandError):
    """Raised when a navigation command name is not recognised."""
    pass

# --- Configuration Exceptions ---
class ConfigurationError(SpinnerError):
    """Raised when the configuration file exists but cannot be used."""
    pass
