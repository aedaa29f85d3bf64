"""Device discovery for castloop.

DeviceLocator runs one bounded scan and returns the first distinct device
it hears about. The scan is stopped as soon as a device is accepted or the
timeout elapses.
"""

from __future__ import annotations

import asyncio
import logging

import castloop.chromecast.adapter as _chromecast_adapter
import castloop.errors as _errors
import castloop.types as _types

_LOGGER = logging.getLogger(__name__)


class DeviceLocator:
    """Find a single device on the local network."""

    def __init__(
        self,
        scanner_factory: _types.ScannerFactory = _chromecast_adapter.ChromecastScanner,
    ) -> None:
        """Create a locator.

        :param scanner_factory: Builds a scanner given a found-callback.
        """
        self._scanner_factory = scanner_factory

    async def locate(self, timeout: float) -> _types.DeviceDescriptor:
        """Scan for up to timeout seconds and return the first device found.

        :param timeout: Scan duration in seconds.
        :returns: Descriptor of the first distinct device announced.
        :raises castloop.errors.DiscoveryTimeout: If timeout is already spent.
        :raises castloop.errors.DiscoveryNotFound: If no device was announced.
        """
        if timeout <= 0:
            raise _errors.DiscoveryTimeout("Discovery deadline already expired")

        loop = asyncio.get_running_loop()
        found: asyncio.Future[_types.DeviceDescriptor] = loop.create_future()
        seen: set[str] = set()

        def _accept(descriptor: _types.DeviceDescriptor) -> None:
            if found.done():
                _LOGGER.debug("Ignoring %s, a device was already chosen", descriptor.identity)
                return
            if descriptor.identity in seen:
                return
            seen.add(descriptor.identity)
            _LOGGER.info(
                "Found: %s:%d '%s' (%s) %s",
                descriptor.address,
                descriptor.port,
                descriptor.display_name,
                descriptor.model or "unknown model",
                descriptor.status or "",
            )
            found.set_result(descriptor)

        def _on_found(descriptor: _types.DeviceDescriptor) -> None:
            # Called from the scanner's thread
            loop.call_soon_threadsafe(_accept, descriptor)

        scanner = self._scanner_factory(_on_found)
        _LOGGER.info("Running discovery for %.1fs...", timeout)
        await asyncio.to_thread(scanner.start)
        try:
            return await asyncio.wait_for(found, timeout)
        except asyncio.TimeoutError:
            raise _errors.DiscoveryNotFound(
                f"No device discovered within {timeout:.1f}s"
            ) from None
        finally:
            await asyncio.to_thread(scanner.stop)


__all__ = ["DeviceLocator"]
