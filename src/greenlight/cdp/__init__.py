"""Chrome DevTools Protocol transport and target discovery."""

from greenlight.cdp.discovery import PageTarget, find_page_target, list_targets, wait_for_page_target
from greenlight.cdp.payload import Payload
from greenlight.cdp.transport import CDPTransport

__all__ = [
    "CDPTransport",
    "PageTarget",
    "Payload",
    "find_page_target",
    "list_targets",
    "wait_for_page_target",
]
