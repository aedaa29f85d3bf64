"""Local media catalog for castloop."""

from __future__ import annotations

import logging
import mimetypes
from collections.abc import Iterable
from pathlib import Path

import castloop.types as _types

_LOGGER = logging.getLogger(__name__)

DEFAULT_SUFFIXES = (".mp3",)


class MediaCatalog:
    """Playable files found directly inside one directory."""

    def __init__(self, root: str | Path, suffixes: Iterable[str] = DEFAULT_SUFFIXES) -> None:
        """Initialize the catalog.

        :param root: Directory to scan.
        :param suffixes: Recognised file suffixes (case-insensitive).
        """
        self.root = Path(root)
        self.suffixes = frozenset(_normalize_suffix(s) for s in suffixes)

    def scan(self) -> list[str]:
        """List the playable file names in directory listing order.

        An unreadable directory yields an empty list.

        :returns: File names relative to the root.
        """
        try:
            entries = list(self.root.iterdir())
        except OSError as e:
            _LOGGER.warning("Cannot read %s: %s", self.root, e)
            return []

        items: list[str] = []
        for entry in entries:
            if entry.suffix.lower() not in self.suffixes or not entry.is_file():
                continue
            _LOGGER.info("Discovered %s", entry.name)
            items.append(entry.name)
        return items


def content_type_for(name: str) -> str:
    """Guess the MIME type of a catalog item.

    :param name: File name.
    :returns: The guessed type, or audio/mpeg when unknown.
    """
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or _types.DEFAULT_CONTENT_TYPE


def _normalize_suffix(suffix: str) -> str:
    suffix = suffix.lower()
    return suffix if suffix.startswith(".") else f".{suffix}"


__all__ = ["DEFAULT_SUFFIXES", "MediaCatalog", "content_type_for"]
