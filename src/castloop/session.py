"""Device session for castloop.

A DeviceSession owns one connected lifetime to a device: it is created by
DeviceSession.connect (with bounded, constant-backoff retry), exposes the
device's status events as a single async iterator, and is discarded once
the device disconnects or the session is closed.
"""

from __future__ import annotations

import asyncio
import logging

import castloop.chromecast.adapter as _chromecast_adapter
import castloop.errors as _errors
import castloop.event as _event
import castloop.types as _types

_LOGGER = logging.getLogger(__name__)


class EventStream:
    """Async iterator over a session's status events.

    The stream is infinite until the session ends, ends right after
    yielding a Disconnected event, and cannot be restarted.
    """

    def __init__(self, queue: asyncio.Queue[_event.StatusEvent]) -> None:
        """Create a stream reading from queue.

        :param queue: Queue fed by the owning session.
        """
        self._queue = queue
        self._finished = False

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> _event.StatusEvent:
        if self._finished:
            raise StopAsyncIteration
        ev = await self._queue.get()
        if isinstance(ev, _event.Disconnected):
            self._finished = True
        return ev


class DeviceSession:
    """One logical connection to a device."""

    def __init__(self, config: _types.SessionConfig) -> None:
        """Create an unconnected session.

        Use DeviceSession.connect to obtain a connected one.

        :param config: Connection settings.
        """
        self._config = config
        self._connection: _types.DeviceConnection | None = None
        self._queue: asyncio.Queue[_event.StatusEvent] = asyncio.Queue()
        self._stream = EventStream(self._queue)
        self._terminated = False
        self._loop: asyncio.AbstractEventLoop | None = None
        # Attempt whose events reach the stream, and the one being tried
        self._live_attempt: int | None = None
        self._pending_attempt: int | None = None
        self._pending: list[_event.StatusEvent] = []
        self.state = _types.ConnectionState.DISCONNECTED
        self.last_error: BaseException | None = None

    @property
    def config(self) -> _types.SessionConfig:
        """The settings this session was created with."""
        return self._config

    @property
    def connected(self) -> bool:
        """True while the connection is up."""
        return self.state is _types.ConnectionState.CONNECTED

    @classmethod
    async def connect(
        cls,
        config: _types.SessionConfig,
        *,
        connector: _types.Connector = _chromecast_adapter.ChromecastConnection.open,
    ) -> DeviceSession:
        """Open a session, retrying failed attempts.

        Up to config.max_connect_attempts attempts are made, separated by a
        constant config.retry_backoff delay. The overall deadline
        (config.connect_timeout) is checked before each attempt. Events
        reported by attempts that fail never reach the session's stream.

        :param config: Connection settings.
        :param connector: Makes a single connection attempt.
        :returns: A connected DeviceSession.
        :raises castloop.errors.ConnectTimeout: If the deadline passes first.
        :raises castloop.errors.ConnectFailed: If every attempt fails.
        """
        session = cls(config)
        await session._open(connector)
        return session

    async def _open(self, connector: _types.Connector) -> None:
        self._loop = asyncio.get_running_loop()
        config = self._config
        deadline = (
            self._loop.time() + config.connect_timeout
            if config.connect_timeout is not None
            else None
        )
        self.state = _types.ConnectionState.CONNECTING
        attempts = 0

        while attempts < config.max_connect_attempts:
            if deadline is not None and self._loop.time() >= deadline:
                self.state = _types.ConnectionState.DISCONNECTED
                raise _errors.ConnectTimeout(
                    f"Timed out connecting to {config.host}:{config.port}",
                    attempts=attempts,
                    last_error=self.last_error,
                ) from self.last_error

            attempts += 1
            _LOGGER.info(
                "Connecting to %s:%d (attempt %d/%d)...",
                config.host,
                config.port,
                attempts,
                config.max_connect_attempts,
            )
            self._pending_attempt = attempts
            self._pending = []
            try:
                self._connection = await connector(config, self._sink_for(attempts))
            except (OSError, asyncio.TimeoutError) as e:
                # Whatever the failed attempt reported is discarded
                self._pending_attempt = None
                self._pending = []
                self.last_error = e
                _LOGGER.warning("Connection attempt %d failed: %s", attempts, e)
                if attempts < config.max_connect_attempts:
                    await asyncio.sleep(config.retry_backoff)
                continue

            self.state = _types.ConnectionState.CONNECTED
            _LOGGER.info("Connected to %s:%d", config.host, config.port)
            self._adopt(attempts)
            return

        self.state = _types.ConnectionState.DISCONNECTED
        raise _errors.ConnectFailed(
            f"Could not connect to {config.host}:{config.port} "
            f"after {attempts} attempt(s): {self.last_error}",
            attempts=attempts,
            last_error=self.last_error,
        ) from self.last_error

    def _sink_for(self, attempt: int) -> _types.EventSink:
        """Build the event sink handed to one connection attempt.

        :param attempt: Number of the attempt.
        :returns: A sink that may be called from any thread.
        """

        def _emit(ev: _event.StatusEvent) -> None:
            if self._loop is None or self._loop.is_closed():
                return
            self._loop.call_soon_threadsafe(self._deliver, attempt, ev)

        return _emit

    def _deliver(self, attempt: int, ev: _event.StatusEvent) -> None:
        """Route an event from a connection attempt; runs on the event loop.

        Events of the attempt in progress are held back until it succeeds.
        Events of any other attempt are dropped.

        :param attempt: Attempt that produced the event.
        :param ev: The event to deliver.
        """
        if attempt == self._live_attempt:
            self._enqueue(ev)
        elif attempt == self._pending_attempt:
            self._pending.append(ev)
        else:
            _LOGGER.debug("Dropping %r from connection attempt %d", ev, attempt)

    def _adopt(self, attempt: int) -> None:
        """Make attempt the live connection and release its held events.

        :param attempt: The attempt that succeeded.
        """
        pending, self._pending = self._pending, []
        self._pending_attempt = None
        self._live_attempt = attempt
        for ev in pending:
            self._enqueue(ev)

    def _enqueue(self, ev: _event.StatusEvent) -> None:
        """Queue an event for the consumer.

        :param ev: The event to deliver.
        """
        if self._terminated:
            return
        if isinstance(ev, _event.Disconnected):
            self._terminated = True
            self.state = _types.ConnectionState.DISCONNECTED
        self._queue.put_nowait(ev)

    def events(self) -> EventStream:
        """Return the session's event stream.

        Every call returns the same iterator; consumption resumes where it
        left off.

        :returns: Async iterator of StatusEvents.
        """
        return self._stream

    def discard_pending(self) -> int:
        """Drop events that are queued but not yet consumed.

        A queued Disconnected is kept so the stream still ends.

        :returns: Number of events dropped.
        """
        dropped = 0
        terminal: _event.StatusEvent | None = None
        while not self._queue.empty():
            ev = self._queue.get_nowait()
            if isinstance(ev, _event.Disconnected):
                terminal = ev
            else:
                dropped += 1
        if terminal is not None:
            self._queue.put_nowait(terminal)
        return dropped

    async def send_load_media(self, request: _types.PlaybackRequest) -> None:
        """Ask the device to load and play media.

        :param request: What to load.
        :returns: None
        :raises castloop.errors.LoadFailed: If not connected or rejected.
        """
        if self._connection is None or not self.connected:
            raise _errors.LoadFailed("Session is not connected", url=request.content_url)
        _LOGGER.info("Loading %s", request.content_url)
        try:
            await self._connection.load_media(request)
        except _errors.LoadFailed as e:
            self.last_error = e
            raise
        except OSError as e:
            self.last_error = e
            raise _errors.LoadFailed(str(e), url=request.content_url) from e

    async def request_status(self) -> None:
        """Ask the device for a fresh media status.

        :returns: None
        """
        if self._connection is not None and self.connected:
            await self._connection.request_status()

    async def close(self) -> None:
        """Close the connection and end the event stream.

        Safe to call more than once.

        :returns: None
        """
        connection, self._connection = self._connection, None
        if connection is not None:
            try:
                await connection.close()
            except OSError as e:
                _LOGGER.warning("Error closing connection: %s", e)
        self._enqueue(_event.Disconnected(reason="closed"))
        self.state = _types.ConnectionState.DISCONNECTED


__all__ = ["DeviceSession", "EventStream"]
