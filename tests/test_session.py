"""Tests for DeviceSession."""

import asyncio
import threading
from unittest.mock import AsyncMock, call, patch

import pytest

import castloop.errors as _errors
import castloop.event as _event
import castloop.session as _session
import castloop.types as _types


class FakeConnection(_types.DeviceConnection):
    """Connection that records the commands it receives."""

    def __init__(self, emit: _types.EventSink) -> None:
        self.emit = emit
        self.loads: list[_types.PlaybackRequest] = []
        self.load_error: BaseException | None = None
        self.status_requests = 0
        self.closed = 0

    async def load_media(self, request: _types.PlaybackRequest) -> None:
        self.loads.append(request)
        if self.load_error is not None:
            raise self.load_error

    async def request_status(self) -> None:
        self.status_requests += 1

    async def close(self) -> None:
        self.closed += 1


class FakeConnector:
    """Fails a fixed number of times, then connects."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0
        self.connection: FakeConnection | None = None

    async def __call__(
        self, config: _types.SessionConfig, emit: _types.EventSink
    ) -> FakeConnection:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"refused #{self.calls}")
        self.connection = FakeConnection(emit)
        return self.connection


@pytest.fixture
def config() -> _types.SessionConfig:
    """Session settings with no overall deadline.

    :returns: A SessionConfig.
    """
    return _types.SessionConfig(host="192.168.1.10", connect_timeout=None)


async def _connected(
    config: _types.SessionConfig,
) -> tuple[_session.DeviceSession, FakeConnection]:
    connector = FakeConnector(failures=0)
    session = await _session.DeviceSession.connect(config, connector=connector)
    assert connector.connection is not None
    return session, connector.connection


@pytest.mark.asyncio
async def test_connect_exhausts_attempts(config: _types.SessionConfig) -> None:
    """A target that always fails is tried exactly five times.

    :param config: The config fixture.
    :returns: None
    """
    connector = FakeConnector(failures=100)

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        with pytest.raises(_errors.ConnectFailed) as exc_info:
            await _session.DeviceSession.connect(config, connector=connector)

    assert connector.calls == 5
    assert exc_info.value.attempts == 5
    assert isinstance(exc_info.value.last_error, ConnectionError)
    assert "refused #5" in str(exc_info.value.last_error)
    # Constant backoff between attempts, none after the last one
    assert mock_sleep.await_args_list == [call(1.0)] * 4


@pytest.mark.asyncio
@pytest.mark.parametrize("succeed_on", [1, 2, 5])
async def test_connect_succeeds_on_attempt(
    config: _types.SessionConfig, succeed_on: int
) -> None:
    """A target that succeeds on attempt k is tried exactly k times.

    :param config: The config fixture.
    :param succeed_on: Attempt that succeeds.
    :returns: None
    """
    connector = FakeConnector(failures=succeed_on - 1)

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        session = await _session.DeviceSession.connect(config, connector=connector)

    assert connector.calls == succeed_on
    assert mock_sleep.await_count == succeed_on - 1
    assert session.connected
    assert session.state is _types.ConnectionState.CONNECTED


@pytest.mark.asyncio
async def test_connect_deadline() -> None:
    """Retrying stops with ConnectTimeout once the deadline has passed.

    :returns: None
    """
    config = _types.SessionConfig(
        host="192.168.1.10", connect_timeout=0.05, retry_backoff=0.1
    )
    connector = FakeConnector(failures=100)

    with pytest.raises(_errors.ConnectTimeout) as exc_info:
        await _session.DeviceSession.connect(config, connector=connector)

    assert connector.calls == 1
    assert exc_info.value.attempts == 1
    assert isinstance(exc_info.value.last_error, ConnectionError)


@pytest.mark.asyncio
async def test_connect_slow_attempts_fit_deadline() -> None:
    """Attempts that use their whole time budget are all made before the deadline.

    :returns: None
    """
    config = _types.SessionConfig(
        host="192.168.1.10", connect_timeout=1.0, retry_backoff=0.0
    )
    calls = 0

    async def _hanging(
        cfg: _types.SessionConfig, emit: _types.EventSink
    ) -> FakeConnection:
        nonlocal calls
        calls += 1
        assert cfg.attempt_timeout is not None
        await asyncio.sleep(cfg.attempt_timeout)
        raise ConnectionError("no answer")

    with pytest.raises(_errors.ConnectFailed) as exc_info:
        await _session.DeviceSession.connect(config, connector=_hanging)

    assert calls == 5
    assert exc_info.value.attempts == 5


@pytest.mark.asyncio
async def test_connect_drops_events_of_failed_attempts(
    config: _types.SessionConfig,
) -> None:
    """Events reported by a failed attempt never reach the new session.

    :param config: The config fixture.
    :returns: None
    """
    sinks: list[_types.EventSink] = []
    connection: FakeConnection | None = None

    async def _flaky(
        cfg: _types.SessionConfig, emit: _types.EventSink
    ) -> FakeConnection:
        nonlocal connection
        sinks.append(emit)
        if len(sinks) == 1:
            emit(_event.Disconnected(reason="FAILED"))
            raise ConnectionError("refused")
        emit(_event.Connected())
        connection = FakeConnection(emit)
        return connection

    with patch("asyncio.sleep", new_callable=AsyncMock):
        session = await _session.DeviceSession.connect(config, connector=_flaky)
    assert connection is not None

    # A late report from the failed attempt is ignored as well
    sinks[0](_event.Disconnected(reason="LOST"))
    connection.emit(_event.MediaStatus(player_state="PLAYING", current_time=1.0))
    connection.emit(_event.Disconnected(reason="DISCONNECTED"))

    received = await asyncio.wait_for(_collect(session.events()), timeout=1.0)

    assert received == [
        _event.Connected(),
        _event.MediaStatus(player_state="PLAYING", current_time=1.0),
        _event.Disconnected(reason="DISCONNECTED"),
    ]


@pytest.mark.asyncio
async def test_discard_pending(config: _types.SessionConfig) -> None:
    """Queued events are dropped, except a final Disconnected.

    :param config: The config fixture.
    :returns: None
    """
    session, connection = await _connected(config)
    connection.emit(_event.MediaStatus(player_state="PLAYING", current_time=11.0))
    connection.emit(_event.MediaStatus(player_state="IDLE", current_time=0.0))
    await asyncio.sleep(0)

    assert session.discard_pending() == 2

    connection.emit(_event.MediaStatus(player_state="IDLE", current_time=0.0))
    connection.emit(_event.Disconnected(reason="LOST"))
    await asyncio.sleep(0)

    assert session.discard_pending() == 1
    assert [ev async for ev in session.events()] == [_event.Disconnected(reason="LOST")]


@pytest.mark.asyncio
async def test_events_end_after_disconnect(config: _types.SessionConfig) -> None:
    """Events arrive in order and the stream ends with Disconnected.

    :param config: The config fixture.
    :returns: None
    """
    session, connection = await _connected(config)

    connection.emit(_event.Connected())
    connection.emit(_event.MediaStatus(player_state="PLAYING", current_time=1.0))
    connection.emit(_event.Disconnected(reason="LOST"))
    connection.emit(_event.MediaStatus(player_state="IDLE", current_time=0.0))

    received = [ev async for ev in session.events()]

    assert received == [
        _event.Connected(),
        _event.MediaStatus(player_state="PLAYING", current_time=1.0),
        _event.Disconnected(reason="LOST"),
    ]
    assert session.state is _types.ConnectionState.DISCONNECTED
    # Not restartable
    assert [ev async for ev in session.events()] == []


@pytest.mark.asyncio
async def test_events_from_another_thread(config: _types.SessionConfig) -> None:
    """Events emitted from a transport thread reach the consumer.

    :param config: The config fixture.
    :returns: None
    """
    session, connection = await _connected(config)

    def _produce() -> None:
        connection.emit(_event.StatusUpdated(volume_level=0.5, muted=False))
        connection.emit(_event.Disconnected(reason="DISCONNECTED"))

    thread = threading.Thread(target=_produce)
    thread.start()
    received = await asyncio.wait_for(
        _collect(session.events()), timeout=1.0
    )
    thread.join()

    assert received == [
        _event.StatusUpdated(volume_level=0.5, muted=False),
        _event.Disconnected(reason="DISCONNECTED"),
    ]


async def _collect(stream: _session.EventStream) -> list[_event.StatusEvent]:
    return [ev async for ev in stream]


@pytest.mark.asyncio
async def test_events_is_single_iterator(config: _types.SessionConfig) -> None:
    """Every call to events() returns the same stream.

    :param config: The config fixture.
    :returns: None
    """
    session, connection = await _connected(config)
    assert session.events() is session.events()

    connection.emit(_event.Connected())
    connection.emit(_event.Unknown(raw="x"))
    async for ev in session.events():
        assert ev == _event.Connected()
        break
    async for ev in session.events():
        assert ev == _event.Unknown(raw="x")
        break


@pytest.mark.asyncio
async def test_close(config: _types.SessionConfig) -> None:
    """Closing ends the stream and is idempotent.

    :param config: The config fixture.
    :returns: None
    """
    session, connection = await _connected(config)

    await session.close()
    await session.close()

    assert connection.closed == 1
    assert not session.connected
    assert [ev async for ev in session.events()] == [
        _event.Disconnected(reason="closed")
    ]


@pytest.mark.asyncio
async def test_send_load_media(config: _types.SessionConfig) -> None:
    """Load requests are passed to the connection.

    :param config: The config fixture.
    :returns: None
    """
    session, connection = await _connected(config)
    request = _types.PlaybackRequest(content_url="http://192.168.1.5:3099/a.mp3")

    await session.send_load_media(request)

    assert connection.loads == [request]


@pytest.mark.asyncio
async def test_send_load_media_rejected(config: _types.SessionConfig) -> None:
    """Transport errors surface as LoadFailed.

    :param config: The config fixture.
    :returns: None
    """
    session, connection = await _connected(config)
    connection.load_error = ConnectionError("socket closed")
    request = _types.PlaybackRequest(content_url="http://192.168.1.5:3099/a.mp3")

    with pytest.raises(_errors.LoadFailed) as exc_info:
        await session.send_load_media(request)

    assert exc_info.value.url == request.content_url
    assert session.last_error is connection.load_error


@pytest.mark.asyncio
async def test_send_load_media_after_close(config: _types.SessionConfig) -> None:
    """Loading on a closed session fails without touching the transport.

    :param config: The config fixture.
    :returns: None
    """
    session, connection = await _connected(config)
    await session.close()

    with pytest.raises(_errors.LoadFailed):
        await session.send_load_media(
            _types.PlaybackRequest(content_url="http://192.168.1.5:3099/a.mp3")
        )
    assert connection.loads == []


@pytest.mark.asyncio
async def test_request_status(config: _types.SessionConfig) -> None:
    """Status requests go to the connection while connected.

    :param config: The config fixture.
    :returns: None
    """
    session, connection = await _connected(config)

    await session.request_status()
    await session.close()
    await session.request_status()

    assert connection.status_requests == 1
