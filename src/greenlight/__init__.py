"""greenlight - drive a Chromium page over the Chrome DevTools Protocol."""

__version__ = "0.1.0"

from greenlight.actor import Locator, Page
from greenlight.browser import BrowserProfile, BrowserSession
from greenlight.cdp import CDPTransport, PageTarget, Payload
from greenlight.exceptions import (
    BrowserLaunchError,
    CDPProtocolError,
    GreenlightError,
    JavaScriptError,
    LocatorTimeoutError,
    ResponseShapeError,
    TargetNotFoundError,
    TransportError,
)

# Browser alias for a shorter API
Browser = BrowserSession

__all__ = [
    "__version__",
    # Browser
    "Browser",
    "BrowserProfile",
    "BrowserSession",
    # Actions
    "Locator",
    "Page",
    # Transport
    "CDPTransport",
    "PageTarget",
    "Payload",
    # Errors
    "BrowserLaunchError",
    "CDPProtocolError",
    "GreenlightError",
    "JavaScriptError",
    "LocatorTimeoutError",
    "ResponseShapeError",
    "TargetNotFoundError",
    "TransportError",
]
