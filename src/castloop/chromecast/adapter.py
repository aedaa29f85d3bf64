"""Chromecast transport for castloop.

This module implements the discovery scanner and the device connection on
top of the pychromecast library. pychromecast invokes its listeners from
its own worker threads; the callbacks here only translate and forward, the
receiving side is responsible for marshalling onto the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

import pychromecast  # type: ignore
import zeroconf
from pychromecast.error import PyChromecastError  # type: ignore
from pychromecast.socket_client import (  # type: ignore
    CONNECTION_STATUS_CONNECTED,
    CONNECTION_STATUS_CONNECTING,
    CONNECTION_STATUS_DISCONNECTED,
    CONNECTION_STATUS_FAILED,
    CONNECTION_STATUS_FAILED_RESOLVE,
    CONNECTION_STATUS_LOST,
)

import castloop.errors as _errors
import castloop.event as _event
import castloop.types as _types

_LOGGER = logging.getLogger(__name__)

_DISCONNECT_STATUSES = frozenset(
    {
        CONNECTION_STATUS_DISCONNECTED,
        CONNECTION_STATUS_LOST,
        CONNECTION_STATUS_FAILED,
        CONNECTION_STATUS_FAILED_RESOLVE,
    }
)

# Used when the session config carries no overall deadline
_DEFAULT_WAIT_TIMEOUT = 10.0


class ChromecastScanner(_types.DeviceScanner):
    """mDNS scan for Cast devices."""

    def __init__(self, on_found: _types.FoundCallback) -> None:
        """Initialize the scanner.

        :param on_found: Called with a DeviceDescriptor for every device
            announcement, from the zeroconf thread.
        """
        self._on_found = on_found
        self._zconf: Any | None = None
        self._browser: Any | None = None

    def start(self) -> None:
        """Start Chromecast discovery.

        :returns: None
        """
        if self._browser is not None:
            return

        _LOGGER.debug("Starting Chromecast discovery")
        self._zconf = zeroconf.Zeroconf()
        self._browser = pychromecast.CastBrowser(
            pychromecast.SimpleCastListener(self._on_device_found),
            self._zconf,
        )
        self._browser.start_discovery()

    def stop(self) -> None:
        """Stop Chromecast discovery.

        :returns: None
        """
        if self._browser:
            self._browser.stop_discovery()
            self._browser = None
        if self._zconf:
            self._zconf.close()
            self._zconf = None

    def _on_device_found(self, uuid_val: uuid.UUID, service: str) -> None:
        """Handle a device announced by the browser.

        :param uuid_val: Unique identifier of the device.
        :param service: The mDNS service that announced it.
        """
        if not self._browser:
            return
        cast_info = self._browser.devices.get(uuid_val)
        if cast_info is None:
            return
        self._on_found(
            _types.DeviceDescriptor(
                address=str(cast_info.host),
                port=int(cast_info.port),
                identity=str(uuid_val),
                display_name=cast_info.friendly_name or str(uuid_val),
                model=cast_info.model_name,
                status=cast_info.cast_type,
            )
        )


class CastEventListener:
    """Translate pychromecast listener callbacks into StatusEvents.

    One instance is registered as connection, receiver status and media
    status listener of a single Chromecast.
    """

    def __init__(self, emit: _types.EventSink) -> None:
        """Initialize the listener.

        :param emit: Sink receiving translated events.
        """
        self._emit = emit
        self._app_id: str | None = None
        self._app_name: str | None = None

    def new_connection_status(self, status: Any) -> None:
        """Handle a socket connection status change.

        :param status: pychromecast ConnectionStatus.
        """
        if status.status == CONNECTION_STATUS_CONNECTED:
            self._emit(_event.Connected())
        elif status.status in _DISCONNECT_STATUSES:
            self._emit(_event.Disconnected(reason=str(status.status)))
        elif status.status == CONNECTION_STATUS_CONNECTING:
            _LOGGER.debug("Connecting to %s", status.address)
        else:
            self._emit(_event.Unknown(raw=status))

    def new_cast_status(self, status: Any) -> None:
        """Handle a receiver status update.

        :param status: pychromecast CastStatus.
        """
        app_id = status.app_id
        if app_id != self._app_id:
            if self._app_id is not None:
                self._emit(
                    _event.AppStopped(display_name=self._app_name, app_id=self._app_id)
                )
            if app_id is not None:
                self._emit(
                    _event.AppStarted(display_name=status.display_name, app_id=app_id)
                )
            self._app_id = app_id
            self._app_name = status.display_name
        self._emit(
            _event.StatusUpdated(
                volume_level=float(status.volume_level or 0.0),
                muted=bool(status.volume_muted),
            )
        )

    def new_media_status(self, status: Any) -> None:
        """Handle a media status update.

        :param status: pychromecast MediaStatus.
        """
        self._emit(
            _event.MediaStatus(
                player_state=str(status.player_state),
                current_time=float(status.current_time or 0.0),
                content_id=status.content_id,
            )
        )

    def load_media_failed(self, queue_item_id: int, error_code: int) -> None:
        """Handle an asynchronous load failure reported by the device.

        :param queue_item_id: Queue item that failed.
        :param error_code: Cast error code.
        """
        self._emit(
            _event.Unknown(
                raw={
                    "type": "load_media_failed",
                    "queue_item_id": queue_item_id,
                    "error_code": error_code,
                }
            )
        )


class ChromecastConnection(_types.DeviceConnection):
    """Live control connection to one Chromecast."""

    def __init__(self, cast_device: Any) -> None:
        """Initialize the connection.

        :param cast_device: A connected pychromecast Chromecast object.
        """
        self._cast = cast_device
        self._media_controller: Any = cast_device.media_controller

    @classmethod
    async def open(
        cls, config: _types.SessionConfig, emit: _types.EventSink
    ) -> ChromecastConnection:
        """Make one attempt to connect to the device in config.

        :param config: Target device and timeouts.
        :param emit: Sink receiving the device's status events.
        :returns: The open connection.
        :raises ConnectionError: If the device could not be reached.
        """
        cast_device = await asyncio.to_thread(_connect_blocking, config, emit)
        return cls(cast_device)

    async def load_media(self, request: _types.PlaybackRequest) -> None:
        """Send a load-media command to the default media receiver.

        :param request: What to load.
        :returns: None
        :raises castloop.errors.LoadFailed: If pychromecast rejects the command.
        """
        try:
            await asyncio.to_thread(
                self._media_controller.play_media,
                request.content_url,
                request.content_type,
                current_time=request.start_position,
                autoplay=request.autoplay,
                stream_type=request.stream_type,
            )
        except PyChromecastError as e:
            raise _errors.LoadFailed(str(e), url=request.content_url) from e

    async def request_status(self) -> None:
        """Ask the device for its media status.

        :returns: None
        """
        try:
            await asyncio.to_thread(self._media_controller.update_status)
        except PyChromecastError as e:
            # No media application running yet
            _LOGGER.debug("Media status request failed: %s", e)

    async def close(self) -> None:
        """Disconnect from the device.

        :returns: None
        """
        await asyncio.to_thread(self._cast.disconnect, _DEFAULT_WAIT_TIMEOUT)


def _connect_blocking(config: _types.SessionConfig, emit: _types.EventSink) -> Any:
    """Connect to a Chromecast, blocking until it is ready.

    :param config: Target device and timeouts.
    :param emit: Sink for the listener registered on the device.
    :returns: The connected pychromecast Chromecast object.
    :raises ConnectionError: If the device could not be reached in time.
    """
    timeout = config.attempt_timeout or _DEFAULT_WAIT_TIMEOUT
    device_uuid = uuid.UUID(config.identity) if config.identity else None
    try:
        cast_device = pychromecast.get_chromecast_from_host(
            (config.host, config.port, device_uuid, None, config.name),
            tries=1,
            timeout=timeout,
        )
    except PyChromecastError as e:
        raise ConnectionError(f"Could not reach {config.host}:{config.port}: {e}") from e

    listener = CastEventListener(emit)
    cast_device.register_connection_listener(listener)
    cast_device.register_status_listener(listener)
    cast_device.media_controller.register_status_listener(listener)

    try:
        cast_device.wait(timeout=timeout)
    except PyChromecastError as e:
        cast_device.disconnect(timeout=timeout)
        raise ConnectionError(
            f"Timed out waiting for {config.host}:{config.port}: {e}"
        ) from e
    return cast_device


__all__ = ["CastEventListener", "ChromecastConnection", "ChromecastScanner"]
