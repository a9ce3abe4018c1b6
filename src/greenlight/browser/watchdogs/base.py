"""Base watchdog class for browser lifecycle components."""

import logging
from typing import Any

from bubus import EventBus
from pydantic import BaseModel, ConfigDict, Field


class BaseWatchdog(BaseModel):
    """Base class for components that react to session events.

    Subclasses register their handlers in ``attach_to_session``.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        extra='forbid',
        validate_assignment=False,
        revalidate_instances='never',
    )

    event_bus: EventBus = Field()
    browser_session: Any = Field()  # BrowserSession

    @property
    def logger(self) -> logging.Logger:
        return self.browser_session.logger

    def attach_to_session(self) -> None:
        """Register handlers on the event bus. Subclasses override this."""
        pass
