"""Common data types and transport interfaces for castloop.

This module contains the core data structures shared by the locator,
session and controller, and the abstract seams the Chromecast adapter
implements.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import castloop.event as _event

DEFAULT_PORT = 8009
DEFAULT_CONTENT_TYPE = "audio/mpeg"
STREAM_TYPE_BUFFERED = "BUFFERED"


@dataclass(frozen=True)
class DeviceDescriptor:
    """A device found by discovery.

    :param address: IP address or hostname of the device.
    :param port: Control port of the device.
    :param identity: Stable unique identifier (the device UUID).
    :param display_name: Human-friendly device name.
    :param model: Optional model string reported by the device.
    :param status: Optional status summary available at discovery time.
    """

    address: str
    port: int
    identity: str
    display_name: str
    model: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class SessionConfig:
    """Connection settings for a DeviceSession.

    :param host: Device address.
    :param port: Device control port.
    :param connect_timeout: Overall deadline in seconds for one connect
        call, or None for no deadline.
    :param max_connect_attempts: Attempts before giving up.
    :param retry_backoff: Constant delay in seconds between attempts.
    :param identity: Optional device UUID, when known from discovery.
    :param name: Optional device name, used in log messages.
    """

    host: str
    port: int = DEFAULT_PORT
    connect_timeout: float | None = 30.0
    max_connect_attempts: int = 5
    retry_backoff: float = 1.0
    identity: str | None = None
    name: str | None = None

    @property
    def attempt_timeout(self) -> float | None:
        """Time budget in seconds for a single connection attempt.

        The overall deadline, less the backoff delays between attempts, is
        split evenly so that every attempt fits before the deadline. None
        when there is no overall deadline.
        """
        if self.connect_timeout is None:
            return None
        attempts = max(self.max_connect_attempts, 1)
        budget = self.connect_timeout - self.retry_backoff * (attempts - 1)
        if budget <= 0:
            budget = self.connect_timeout
        return budget / attempts

    @classmethod
    def from_descriptor(
        cls,
        descriptor: DeviceDescriptor,
        *,
        connect_timeout: float | None = 30.0,
        max_connect_attempts: int = 5,
        retry_backoff: float = 1.0,
    ) -> SessionConfig:
        """Build a SessionConfig for a discovered device.

        :param descriptor: The discovered device.
        :param connect_timeout: Overall connect deadline in seconds.
        :param max_connect_attempts: Attempts before giving up.
        :param retry_backoff: Delay in seconds between attempts.
        :returns: SessionConfig targeting the device.
        """
        return cls(
            host=descriptor.address,
            port=descriptor.port,
            connect_timeout=connect_timeout,
            max_connect_attempts=max_connect_attempts,
            retry_backoff=retry_backoff,
            identity=descriptor.identity,
            name=descriptor.display_name,
        )


@dataclass(frozen=True)
class PlaybackRequest:
    """A single load-media command.

    :param content_url: URL the device fetches the media from.
    :param content_type: MIME type of the media.
    :param stream_type: Cast stream type.
    :param start_position: Start offset in seconds.
    :param autoplay: Start playing as soon as the media is loaded.
    """

    content_url: str
    content_type: str = DEFAULT_CONTENT_TYPE
    stream_type: str = STREAM_TYPE_BUFFERED
    start_position: float = 0.0
    autoplay: bool = True


class ConnectionState(enum.Enum):
    """Lifecycle of a device session's connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# Callback handed to transports; may be invoked from any thread.
EventSink = Callable[[_event.StatusEvent], None]
FoundCallback = Callable[[DeviceDescriptor], None]


class DeviceScanner(ABC):
    """Abstract discovery scan that reports devices to a callback."""

    @abstractmethod
    def start(self) -> None:
        """Start scanning.

        :returns: None
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop scanning and release network resources.

        :returns: None
        """
        ...


class DeviceConnection(ABC):
    """Abstract live control connection to a device."""

    @abstractmethod
    async def load_media(self, request: PlaybackRequest) -> None:
        """Send a load-media command.

        :param request: What to load.
        :returns: None
        :raises castloop.errors.LoadFailed: If the command is rejected.
        """
        ...

    @abstractmethod
    async def request_status(self) -> None:
        """Ask the device to report its media status.

        :returns: None
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection.

        :returns: None
        """
        ...


Connector = Callable[[SessionConfig, EventSink], Awaitable[DeviceConnection]]
ScannerFactory = Callable[[FoundCallback], DeviceScanner]


__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "DEFAULT_PORT",
    "STREAM_TYPE_BUFFERED",
    "ConnectionState",
    "Connector",
    "DeviceConnection",
    "DeviceDescriptor",
    "DeviceScanner",
    "EventSink",
    "FoundCallback",
    "PlaybackRequest",
    "ScannerFactory",
    "SessionConfig",
]
