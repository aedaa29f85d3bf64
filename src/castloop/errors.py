"""Exceptions raised by castloop.

Fatal conditions (discovery, connect, exhausted load retries, an empty
catalog) propagate to the command line, which reports them and exits
non-zero. Recoverable conditions are handled inside the controller.
"""

from __future__ import annotations


class CastLoopError(Exception):
    """Base for all castloop exceptions."""


class DiscoveryError(CastLoopError):
    """Device discovery did not produce a device."""


class DiscoveryTimeout(DiscoveryError):
    """The discovery deadline expired."""


class DiscoveryNotFound(DiscoveryTimeout):
    """The discovery scan finished without seeing any device."""


class ConnectError(CastLoopError):
    """Opening a session to the device failed.

    :param message: Human-readable description.
    :param attempts: Number of connection attempts made.
    :param last_error: The last underlying error, if any.
    """

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        last_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ConnectFailed(ConnectError):
    """Every connection attempt failed."""


class ConnectTimeout(ConnectError):
    """The connect deadline expired before an attempt succeeded."""


class LoadFailed(CastLoopError):
    """The device did not accept a load-media command.

    :param message: Human-readable description.
    :param url: Content URL that failed to load.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class LoadRetriesExhausted(LoadFailed):
    """Loading the same URL failed on every allowed attempt."""

    def __init__(self, url: str, attempts: int) -> None:
        super().__init__(f"Failed to load {url} after {attempts} attempt(s)", url=url)
        self.attempts = attempts


class EmptyCatalog(CastLoopError):
    """There is nothing to play."""


__all__ = [
    "CastLoopError",
    "ConnectError",
    "ConnectFailed",
    "ConnectTimeout",
    "DiscoveryError",
    "DiscoveryNotFound",
    "DiscoveryTimeout",
    "EmptyCatalog",
    "LoadFailed",
    "LoadRetriesExhausted",
]
