"""Actor module for page and element interactions."""

from greenlight.actor.locator import Locator
from greenlight.actor.page import Page

__all__ = [
    "Locator",
    "Page",
]
