"""Exception hierarchy for confwatch."""

from __future__ import annotations

from typing import Optional


class ConfigError(Exception):
    """Base class for all recoverable configuration errors."""


class InvalidConfigError(ConfigError):
    """Raised when a Config is used before it has been initialized."""


class LoadError(ConfigError):
    """A provider failed to load its configuration.

    Attributes:
        loader: Display name of the provider that failed.
    """

    def __init__(self, cause: BaseException, loader: Optional[str] = None):
        super().__init__(f"load configuration: {cause}")
        self.loader = loader


class WatchError(ConfigError):
    """A provider's watch loop terminated with an error."""

    def __init__(self, cause: BaseException, loader: Optional[str] = None):
        super().__init__(f"watch configuration change on error: {cause}")
        self.loader = loader


class DecodeError(ConfigError):
    """A resolved sub-tree could not be decoded into the requested target.

    Attributes:
        path: The path that was being decoded.
    """

    def __init__(self, path: str, cause: BaseException):
        super().__init__(f"decode {path!r}: {cause}")
        self.path = path


class ProviderError(ConfigError):
    """Raised by bundled providers when reading or decoding a source fails."""
