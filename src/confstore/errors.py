"""Exception hierarchy for confstore.

Every failure signal raised by the marshaller, the store and the locator
derives from :class:`ConfigError`. When a lower-level exception triggered the
failure it is chained (``raise ... from exc``) and also kept on ``.cause``.
"""

from __future__ import annotations


class ConfigError(Exception):
    """Base class for all confstore failures."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ResolutionError(ConfigError):
    """Descriptor metadata cannot be computed for a type."""


class SerializationError(ConfigError):
    """Writing a configuration object as XML failed."""


class DeserializationError(ConfigError):
    """Reading or populating a configuration object failed."""


class StoreError(ConfigError):
    """Filesystem problem: missing directory, not a directory, read-only."""


class ConfigNotFoundError(StoreError):
    """No stored configuration with the requested name."""

    def __init__(self, name: str, path: object) -> None:
        super().__init__(f"Configuration {path} does not exist")
        self.name = name
        self.path = path
