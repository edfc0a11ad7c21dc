"""Error types raised by callscope.

Core errors are fatal to the current resolve/classify call. Analysis runs
over a fixed snapshot, so nothing here is worth retrying.
"""


class CallscopeError(Exception):
    """Base class for all callscope errors."""


class ConfigError(CallscopeError, ValueError):
    """Required query parameters (class name, method name) are missing."""


class NotFoundError(CallscopeError, LookupError):
    """No declaration matches the (class, method) query."""


class ProjectError(CallscopeError):
    """Host-layer failure: no tsconfig found, or it cannot be read."""
