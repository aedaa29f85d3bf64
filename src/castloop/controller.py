"""Playback orchestration for castloop.

PlaybackController drives the device through an unattended cycle:

    IDLE -> CONNECTING -> LOADING -> WATCHING -> ADVANCING -> (select again)
                                        |
                                        +-> RECONNECTING -> WATCHING
                                        +-> STOPPED

Watching reacts to the session's status events. A paused player stops the
controller, an idle player or a track that is well underway advances to a
new selection, and a disconnect is recovered by opening a new session.
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
import random
from collections.abc import Awaitable, Callable, Sequence

import castloop.catalog as _catalog
import castloop.errors as _errors
import castloop.event as _event
import castloop.server as _server
import castloop.session as _session
import castloop.types as _types

_LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[_types.SessionConfig], Awaitable[_session.DeviceSession]]


class PlaybackState(enum.Enum):
    """States of the playback controller."""

    IDLE = "idle"
    CONNECTING = "connecting"
    LOADING = "loading"
    WATCHING = "watching"
    ADVANCING = "advancing"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class _Action(enum.Enum):
    CONTINUE = "continue"
    RECONNECT = "reconnect"
    ADVANCE = "advance"
    STOP = "stop"


class PlaybackController:
    """Select, load and watch media on one device until it is paused."""

    def __init__(  # noqa: PLR0913
        self,
        config: _types.SessionConfig,
        *,
        catalog: Sequence[str] = (),
        origin: _server.MediaOrigin | None = None,
        direct_url: str | None = None,
        rng: random.Random | None = None,
        connect: SessionFactory = _session.DeviceSession.connect,
        advance_delay: float = 2.0,
        underway_after: float = 10.0,
        max_load_attempts: int = 3,
    ) -> None:
        """Create a controller.

        Either direct_url, or catalog together with origin, selects what
        gets played.

        :param config: Connection settings for the device.
        :param catalog: Item names to pick from.
        :param origin: File server that turns item names into URLs.
        :param direct_url: Fixed URL played on every cycle instead.
        :param rng: Random source for selection; seeded from the OS when None.
        :param connect: Opens a DeviceSession for a config.
        :param advance_delay: Pause in seconds before selecting the next item.
        :param underway_after: Playback position in seconds after which a
            playing track counts as underway.
        :param max_load_attempts: Load attempts for one URL before giving up.
        :raises ValueError: If no media source is configured.
        """
        if direct_url is None and origin is None:
            raise ValueError("Either direct_url or origin is required")
        self._config = config
        self._catalog = list(catalog)
        self._origin = origin
        self._direct_url = direct_url
        self._rng = rng if rng is not None else random.Random()
        self._connect = connect
        self._advance_delay = advance_delay
        self._underway_after = underway_after
        self._max_load_attempts = max_load_attempts
        self._session: _session.DeviceSession | None = None
        self._current_url: str | None = None
        self.state = PlaybackState.IDLE

    @property
    def session(self) -> _session.DeviceSession | None:
        """The session currently held, if any."""
        return self._session

    def _set_state(self, state: PlaybackState) -> None:
        if state is not self.state:
            _LOGGER.debug("State %s -> %s", self.state.value, state.value)
            self.state = state

    def select(self) -> _types.PlaybackRequest:
        """Pick what to play next.

        :returns: A fresh PlaybackRequest for the selection.
        :raises castloop.errors.EmptyCatalog: If there is nothing to pick.
        """
        if self._direct_url is not None:
            return _types.PlaybackRequest(content_url=self._direct_url)
        if not self._catalog or self._origin is None:
            raise _errors.EmptyCatalog("No playable media in the catalog")
        item = self._rng.choice(self._catalog)
        return _types.PlaybackRequest(
            content_url=self._origin.url_for(item),
            content_type=_catalog.content_type_for(item),
        )

    async def run(self) -> None:
        """Play until the device is paused.

        :returns: None once the controller has stopped.
        :raises castloop.errors.CastLoopError: On a fatal error.
        """
        try:
            while True:
                request = self.select()
                if self._session is None:
                    self._set_state(PlaybackState.CONNECTING)
                    self._session = await self._connect(self._config)

                self._set_state(PlaybackState.LOADING)
                await self._load(request)

                self._set_state(PlaybackState.WATCHING)
                if await self._watch() is _Action.STOP:
                    self._set_state(PlaybackState.STOPPED)
                    _LOGGER.info("Playback paused, stopping")
                    return

                self._set_state(PlaybackState.ADVANCING)
                await asyncio.sleep(self._advance_delay)
        finally:
            await self._close_session()

    async def _load(self, request: _types.PlaybackRequest) -> None:
        """Load a request, retrying the same URL a bounded number of times.

        :param request: What to load.
        :raises castloop.errors.LoadRetriesExhausted: If every attempt fails.
        """
        self._current_url = request.content_url
        _LOGGER.info("url %s", request.content_url)
        last_error: _errors.LoadFailed | None = None
        for attempt in range(1, self._max_load_attempts + 1):
            session = self._session
            if session is None or not session.connected:
                session = await self._reconnect()
                self._set_state(PlaybackState.LOADING)
            # Reports queued so far describe the previous playback
            dropped = session.discard_pending()
            if dropped:
                _LOGGER.debug("Discarded %d stale event(s)", dropped)
            try:
                await session.send_load_media(dataclasses.replace(request))
                return
            except _errors.LoadFailed as e:
                _LOGGER.warning(
                    "Load attempt %d/%d failed: %s",
                    attempt,
                    self._max_load_attempts,
                    e,
                )
                last_error = e
        raise _errors.LoadRetriesExhausted(
            request.content_url, self._max_load_attempts
        ) from last_error

    async def _watch(self) -> _Action:
        """Consume status events until the track ends, stalls or is paused.

        Disconnects are handled here by reconnecting; they never end the
        watch.

        :returns: _Action.ADVANCE or _Action.STOP.
        """
        while True:
            session = self._session
            action = _Action.RECONNECT
            if session is not None:
                async for ev in session.events():
                    action = self._dispatch(ev)
                    if action is not _Action.CONTINUE:
                        break
            if action is _Action.RECONNECT:
                await self._reconnect()
                self._set_state(PlaybackState.WATCHING)
                continue
            return action

    def _dispatch(self, ev: _event.StatusEvent) -> _Action:
        """Decide what a single status event means for the watch loop.

        :param ev: The event to handle.
        :returns: What the watch loop should do next.
        """
        if isinstance(ev, _event.Connected):
            _LOGGER.debug("Connected")
        elif isinstance(ev, _event.AppStarted):
            _LOGGER.info("App started: %s [%s]", ev.display_name, ev.app_id)
        elif isinstance(ev, _event.AppStopped):
            _LOGGER.info("App stopped: %s [%s]", ev.display_name, ev.app_id)
        elif isinstance(ev, _event.StatusUpdated):
            _LOGGER.info("Status updated: volume %.2f [%s]", ev.volume_level, ev.muted)
        elif isinstance(ev, _event.Disconnected):
            _LOGGER.warning("Disconnected: %s", ev.reason)
            return _Action.RECONNECT
        elif isinstance(ev, _event.MediaStatus):
            return self._on_media_status(ev)
        else:
            _LOGGER.info("Unknown event: %r", ev)
        return _Action.CONTINUE

    def _on_media_status(self, ev: _event.MediaStatus) -> _Action:
        _LOGGER.info("Media Status: state: %s %.1fs", ev.player_state, ev.current_time)
        if (
            ev.content_id is not None
            and self._current_url is not None
            and ev.content_id != self._current_url
        ):
            _LOGGER.debug("Ignoring status for %s", ev.content_id)
            return _Action.CONTINUE

        if ev.player_state == _event.PLAYER_STATE_PAUSED:
            return _Action.STOP
        if ev.player_state == _event.PLAYER_STATE_IDLE:
            return _Action.ADVANCE
        if (
            ev.player_state == _event.PLAYER_STATE_PLAYING
            and ev.current_time > self._underway_after
        ):
            return _Action.ADVANCE
        return _Action.CONTINUE

    async def _reconnect(self) -> _session.DeviceSession:
        """Replace the current session with a new one, retrying forever.

        :returns: The new session.
        """
        self._set_state(PlaybackState.RECONNECTING)
        await self._close_session()
        _LOGGER.info("Reconnecting...")
        while True:
            try:
                session = await self._connect(self._config)
            except _errors.ConnectError as e:
                _LOGGER.warning("Reconnect failed: %s", e)
                await asyncio.sleep(self._config.retry_backoff)
                continue
            break
        self._session = session
        await session.request_status()
        return session

    async def _close_session(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()


__all__ = ["PlaybackController", "PlaybackState"]
