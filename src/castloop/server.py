"""Embedded web server for serving media to the device.

This module provides a small static-file HTTP server using aiohttp. The
device fetches the selected media from it by URL, so it only serves
regular files by exact name from a single root directory.
"""

from __future__ import annotations

import logging
import socket
from pathlib import Path
from urllib.parse import quote

from aiohttp import web

_LOGGER = logging.getLogger(__name__)

DEFAULT_SERVE_PORT = 3099


def content_url(host: str, port: int | str, item: str) -> str:
    """Build the URL a device uses to fetch a served item.

    :param host: Network-reachable address of this machine.
    :param port: Port of the file server, as an int or ':3099' style string.
    :param item: File name relative to the served directory.
    :returns: Fully-qualified http URL.
    """
    port_str = str(port).lstrip(":")
    return f"http://{host}:{port_str}/{quote(item)}"


class MediaOrigin:
    """Static file server rooted at one directory."""

    def __init__(
        self,
        root: str | Path = ".",
        host: str = "0.0.0.0",
        port: int = DEFAULT_SERVE_PORT,
        public_host: str | None = None,
    ) -> None:
        """Initialize the MediaOrigin.

        :param root: Directory whose files are served.
        :param host: Host interface to bind to.
        :param port: Port to bind to (0 for a free port).
        :param public_host: Address the device should use; detected from the
            local network configuration when None.
        :returns: None
        """
        self._root = Path(root).resolve()
        self._host = host
        self._port = port
        self._public_host = public_host
        self._app = web.Application()
        self._app.add_routes([web.get("/{name}", self._handle_media)])
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    @property
    def port(self) -> int:
        """Port the server listens on (the bound port once started)."""
        return self._port

    @property
    def public_host(self) -> str:
        """Address of this machine as seen by the device."""
        if self._public_host is None:
            if self._host not in ("0.0.0.0", ""):
                self._public_host = self._host
            else:
                self._public_host = self._get_local_ip()
        return self._public_host

    @property
    def base_url(self) -> str:
        """URL prefix for served items."""
        return f"http://{self.public_host}:{self._port}"

    def url_for(self, item: str) -> str:
        """Return the URL of a served item.

        :param item: File name relative to the root.
        :returns: URL the device can fetch.
        """
        return content_url(self.public_host, self._port, item)

    async def start(self) -> None:
        """Start the HTTP server.

        :returns: None
        """
        if self._runner is not None:
            return

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()

        # Pick up the real port if 0 was requested
        if self._runner.addresses:
            addr = self._runner.addresses[0]
            if isinstance(addr, tuple):
                self._port = int(addr[1])

        _LOGGER.info("Serving %s at %s", self._root, self.base_url)

    async def stop(self) -> None:
        """Stop the HTTP server.

        :returns: None
        """
        if self._site:
            await self._site.stop()
            self._site = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def _handle_media(self, request: web.Request) -> web.StreamResponse:
        """Serve one file from the root directory.

        :param request: The aiohttp Request object.
        :returns: FileResponse, or 404 for anything that is not a file
            directly inside the root.
        """
        name = request.match_info["name"]
        path = (self._root / name).resolve()

        if path.parent != self._root or not path.is_file():
            return web.Response(status=404, text="File not found")

        _LOGGER.debug("Serving %s to %s", name, request.remote)
        return web.FileResponse(path, chunk_size=256 * 1024)

    def _get_local_ip(self) -> str:
        """Try to determine the local IP address reachable by the network.

        :returns: Local IP address as a string.
        """
        try:
            # This doesn't actually connect, just picks an interface
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
                s.connect(("8.8.8.8", 80))
                return str(s.getsockname()[0])
        except OSError:
            return "127.0.0.1"


__all__ = ["DEFAULT_SERVE_PORT", "MediaOrigin", "content_url"]
