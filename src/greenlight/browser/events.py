"""Event definitions for the browser process lifecycle."""

import os
from typing import Any

from bubus import BaseEvent
from pydantic import BaseModel, Field


def _get_timeout(env_var: str, default: float) -> float | None:
    """Parse a timeout override from the environment, falling back to ``default``.

    Args:
        env_var: Environment variable name (e.g. 'TIMEOUT_BrowserLaunchEvent')
        default: Default timeout in seconds

    Returns:
        Parsed float value or the default if unset, negative or unparseable
    """
    env_value = os.getenv(env_var)
    if env_value:
        try:
            parsed = float(env_value)
            if parsed < 0:
                return default
            return parsed
        except (ValueError, TypeError):
            pass

    return default


class BrowserLaunchResult(BaseModel):
    """Result of launching a browser."""

    ws_url: str
    pid: int | None = None


class BrowserLaunchEvent(BaseEvent[BrowserLaunchResult]):
    """Launch a local browser process and wait for its first page target."""

    event_timeout: float | None = _get_timeout('TIMEOUT_BrowserLaunchEvent', 30.0)


class BrowserKillEvent(BaseEvent[None]):
    """Kill the local browser subprocess and remove its temporary profile."""

    event_timeout: float | None = _get_timeout('TIMEOUT_BrowserKillEvent', 30.0)


class BrowserStopEvent(BaseEvent[None]):
    """Stop the session. With ``force`` the local browser process is killed too."""

    force: bool = True

    event_timeout: float | None = _get_timeout('TIMEOUT_BrowserStopEvent', 45.0)


class BrowserStoppedEvent(BaseEvent[None]):
    """Browser has stopped/disconnected."""

    reason: str | None = None

    event_timeout: float | None = _get_timeout('TIMEOUT_BrowserStoppedEvent', 30.0)


class BrowserErrorEvent(BaseEvent[None]):
    """An error occurred in the browser layer."""

    error_type: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    event_timeout: float | None = _get_timeout('TIMEOUT_BrowserErrorEvent', 30.0)
