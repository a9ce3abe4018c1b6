"""Watchdogs reacting to browser session events."""

from greenlight.browser.watchdogs.base import BaseWatchdog
from greenlight.browser.watchdogs.local_browser_watchdog import LocalBrowserWatchdog

__all__ = ["BaseWatchdog", "LocalBrowserWatchdog"]
