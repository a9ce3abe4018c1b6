"""Browser process and session management."""

from greenlight.browser.profile import BrowserProfile
from greenlight.browser.session import BrowserSession

__all__ = ["BrowserProfile", "BrowserSession"]
