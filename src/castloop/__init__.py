"""castloop public API.

castloop finds a Cast device on the local network, serves a directory of
media files to it and keeps playing random tracks, reconnecting whenever
the device drops the connection.
"""

from __future__ import annotations

import castloop.catalog as _catalog
import castloop.controller as _controller
import castloop.errors as _errors
import castloop.event as _event
import castloop.locator as _locator
import castloop.server as _server
import castloop.session as _session
import castloop.types as _types

# Re-export components for public API
DeviceLocator = _locator.DeviceLocator
DeviceSession = _session.DeviceSession
MediaCatalog = _catalog.MediaCatalog
MediaOrigin = _server.MediaOrigin
PlaybackController = _controller.PlaybackController
PlaybackState = _controller.PlaybackState
content_url = _server.content_url

# Re-export types for public API
ConnectionState = _types.ConnectionState
DeviceDescriptor = _types.DeviceDescriptor
PlaybackRequest = _types.PlaybackRequest
SessionConfig = _types.SessionConfig

# Re-export events for public API
AppStarted = _event.AppStarted
AppStopped = _event.AppStopped
Connected = _event.Connected
Disconnected = _event.Disconnected
MediaStatus = _event.MediaStatus
StatusEvent = _event.StatusEvent
StatusUpdated = _event.StatusUpdated
Unknown = _event.Unknown

# Re-export errors for public API
CastLoopError = _errors.CastLoopError
ConnectFailed = _errors.ConnectFailed
ConnectTimeout = _errors.ConnectTimeout
DiscoveryNotFound = _errors.DiscoveryNotFound
DiscoveryTimeout = _errors.DiscoveryTimeout
EmptyCatalog = _errors.EmptyCatalog
LoadFailed = _errors.LoadFailed
LoadRetriesExhausted = _errors.LoadRetriesExhausted


__all__ = [
    "AppStarted",
    "AppStopped",
    "CastLoopError",
    "ConnectFailed",
    "ConnectTimeout",
    "Connected",
    "ConnectionState",
    "DeviceDescriptor",
    "DeviceLocator",
    "DeviceSession",
    "Disconnected",
    "DiscoveryNotFound",
    "DiscoveryTimeout",
    "EmptyCatalog",
    "LoadFailed",
    "LoadRetriesExhausted",
    "MediaCatalog",
    "MediaOrigin",
    "MediaStatus",
    "PlaybackController",
    "PlaybackRequest",
    "PlaybackState",
    "SessionConfig",
    "StatusEvent",
    "StatusUpdated",
    "Unknown",
    "content_url",
]
