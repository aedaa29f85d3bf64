"""Chromecast transport for castloop."""

from __future__ import annotations

import castloop.chromecast.adapter as _adapter

CastEventListener = _adapter.CastEventListener
ChromecastConnection = _adapter.ChromecastConnection
ChromecastScanner = _adapter.ChromecastScanner

__all__ = ["CastEventListener", "ChromecastConnection", "ChromecastScanner"]
