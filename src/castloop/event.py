"""Status events emitted by a device session.

StatusEvent is a closed union: every message the device sends is turned
into exactly one of these variants, with Unknown carrying anything the
session does not recognise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

# Player states reported in MediaStatus.player_state
PLAYER_STATE_PLAYING = "PLAYING"
PLAYER_STATE_PAUSED = "PAUSED"
PLAYER_STATE_IDLE = "IDLE"
PLAYER_STATE_BUFFERING = "BUFFERING"


@dataclass(frozen=True)
class Connected:
    """The control connection to the device is up."""


@dataclass(frozen=True)
class AppStarted:
    """A receiver application started on the device.

    :param display_name: Human-friendly application name.
    :param app_id: Cast application identifier.
    """

    display_name: str | None
    app_id: str


@dataclass(frozen=True)
class AppStopped:
    """A receiver application stopped on the device.

    :param display_name: Human-friendly application name.
    :param app_id: Cast application identifier.
    """

    display_name: str | None
    app_id: str


@dataclass(frozen=True)
class StatusUpdated:
    """Receiver status changed.

    :param volume_level: Current volume level (0.0 to 1.0).
    :param muted: True if the device is muted.
    """

    volume_level: float
    muted: bool


@dataclass(frozen=True)
class Disconnected:
    """The control connection ended. Always the last event of a session.

    :param reason: Why the connection ended.
    """

    reason: str


@dataclass(frozen=True)
class MediaStatus:
    """Media playback status.

    :param player_state: Player state, e.g. 'PLAYING', 'PAUSED', 'IDLE'.
    :param current_time: Playback position in seconds.
    :param content_id: URL of the media the status refers to, when known.
    """

    player_state: str
    current_time: float
    content_id: str | None = None


@dataclass(frozen=True)
class Unknown:
    """A message the session could not map to another variant.

    :param raw: The original message or a description of it.
    """

    raw: Any


StatusEvent = Union[
    Connected,
    AppStarted,
    AppStopped,
    StatusUpdated,
    Disconnected,
    MediaStatus,
    Unknown,
]


__all__ = [
    "PLAYER_STATE_BUFFERING",
    "PLAYER_STATE_IDLE",
    "PLAYER_STATE_PAUSED",
    "PLAYER_STATE_PLAYING",
    "AppStarted",
    "AppStopped",
    "Connected",
    "Disconnected",
    "MediaStatus",
    "StatusEvent",
    "StatusUpdated",
    "Unknown",
]
