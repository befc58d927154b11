"""
Exception types raised by webpgen.
"""


class WebpgenError(Exception):
    """Base class for webpgen errors."""
    pass


class ConfigError(WebpgenError):
    """Raised when the engine configuration is invalid."""
    pass


class LibraryError(WebpgenError):
    """Raised when the library index cannot be read or written."""
    pass


class StateStoreError(WebpgenError):
    """Raised when the persisted batch state cannot be read or written."""
    pass
