"""Browser session: one browser, one page target, one CDP transport.

The session launches (or attaches to) a Chromium-based browser, discovers its
first page target through the HTTP debugging endpoint and owns the
``CDPTransport`` connected to it. When the transport finds its socket closed,
it asks the session to rediscover the page and reconnects transparently.

Process management is event-driven: ``start()`` dispatches a
``BrowserLaunchEvent`` handled by ``LocalBrowserWatchdog``, and ``stop()``
dispatches ``BrowserStopEvent``, which kills the process and removes the
temporary profile directory.

Example:
    >>> async with BrowserSession(browser_profile=BrowserProfile(headless=True)) as session:
    ...     page = session.new_page()
    ...     await page.goto('https://example.com')
    ...     print(await page.locator('h1').inner_text())
"""

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Any

from bubus import EventBus
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from greenlight.browser.events import (
    BrowserErrorEvent,
    BrowserLaunchEvent,
    BrowserLaunchResult,
    BrowserStopEvent,
    BrowserStoppedEvent,
)
from greenlight.browser.profile import BrowserProfile
from greenlight.cdp.discovery import find_page_target
from greenlight.cdp.transport import CDPTransport, Connector
from greenlight.exceptions import BrowserLaunchError, GreenlightError, TransportError

if TYPE_CHECKING:
    from greenlight.actor.page import Page

logger = logging.getLogger(__name__)


class BrowserSession(BaseModel):
    """Owns the browser process handle, the page transport and the event bus.

    Attributes:
        event_bus: EventBus carrying lifecycle events to the watchdogs.
        browser_profile: Launch and locator configuration.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        validate_assignment=True,
        extra='forbid',
        revalidate_instances='never',
    )

    event_bus: EventBus = Field(default_factory=EventBus)
    browser_profile: BrowserProfile = Field(default_factory=BrowserProfile)

    _transport: CDPTransport | None = PrivateAttr(default=None)
    _connector: Connector | None = PrivateAttr(default=None)
    _process: asyncio.subprocess.Process | None = PrivateAttr(default=None)
    _owned_user_data_dir: str | None = PrivateAttr(default=None)
    _initial_ws_url: str | None = PrivateAttr(default=None)
    _logger: logging.Logger | None = PrivateAttr(default=None)
    _watchdogs_attached: bool = PrivateAttr(default=False)
    _local_browser_watchdog: Any = PrivateAttr(default=None)

    def __init__(
        self,
        browser_profile: BrowserProfile | None = None,
        connector: Connector | None = None,
        **kwargs: Any,
    ):
        """Create a session.

        Args:
            browser_profile: Launch configuration; defaults come from the environment.
            connector: Optional coroutine function opening the WebSocket for a
                URL. Defaults to the websockets client.
            **kwargs: Additional pydantic model arguments.
        """
        if browser_profile is not None:
            kwargs['browser_profile'] = browser_profile
        super().__init__(**kwargs)
        self._connector = connector

    @property
    def logger(self) -> logging.Logger:
        if self._logger is None:
            self._logger = logging.getLogger('greenlight.browser_session')
        return self._logger

    @property
    def transport(self) -> CDPTransport:
        """The transport for the attached page.

        Raises:
            TransportError: If the session was never started or has been stopped.
        """
        if self._transport is None:
            raise TransportError('WebSocket connection not established. Start or attach the session first.')
        return self._transport

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_connected

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    def attach_all_watchdogs(self) -> None:
        if self._watchdogs_attached:
            return

        from greenlight.browser.watchdogs.local_browser_watchdog import LocalBrowserWatchdog

        self._local_browser_watchdog = LocalBrowserWatchdog(event_bus=self.event_bus, browser_session=self)
        self._local_browser_watchdog.attach_to_session()
        self._watchdogs_attached = True

    async def start(self) -> None:
        """Launch a local browser and attach to its first page.

        If either step fails the session is stopped (browser killed, temporary
        profile removed) before the error propagates.

        Raises:
            BrowserLaunchError: If the browser cannot be launched.
            TransportError: If the page WebSocket cannot be opened.
        """
        if self._transport is not None:
            self.logger.debug('Session already started, skipping launch')
            return

        self.attach_all_watchdogs()

        launch_event = self.event_bus.dispatch(BrowserLaunchEvent())
        await launch_event
        try:
            launch_result: BrowserLaunchResult = await launch_event.event_result(raise_if_none=True, raise_if_any=True)
        except Exception as e:
            self.event_bus.dispatch(
                BrowserErrorEvent(
                    error_type='BrowserLaunchEventError',
                    message=f'Failed to launch browser: {type(e).__name__} {e}',
                )
            )
            await self.stop()
            if isinstance(e, GreenlightError):
                raise
            raise BrowserLaunchError('Failed to launch browser') from e

        try:
            await self.attach(ws_url=launch_result.ws_url)
        except BaseException:
            # __aexit__ does not run when __aenter__ raises
            self.logger.error('Failed to attach to the launched browser, shutting it down')
            await self.stop()
            raise

    async def attach(self, ws_url: str | None = None) -> None:
        """Connect to a page of an already running browser.

        Args:
            ws_url: Page WebSocket URL. When omitted the page is discovered
                through the profile's debugging host and port.

        Raises:
            TransportError: If discovery or the WebSocket connection fails.
        """
        if self._transport is not None and self._transport.is_connected:
            return

        self._initial_ws_url = ws_url
        self._transport = CDPTransport(target_provider=self._next_ws_url, connector=self._connector)
        try:
            await self._transport.connect()
        except TransportError:
            self._transport = None
            raise

    async def _next_ws_url(self) -> str:
        """Target provider for the transport: the launch URL first, then rediscovery."""
        if self._initial_ws_url:
            ws_url, self._initial_ws_url = self._initial_ws_url, None
            return ws_url
        profile = self.browser_profile
        target = await find_page_target(profile.resolved_host, profile.resolved_port)
        self.logger.info(f'Connected to page: {target.url}')
        assert target.web_socket_debugger_url is not None
        return target.web_socket_debugger_url

    def new_page(self, rng: random.Random | None = None) -> 'Page':
        """Return a ``Page`` bound to this session's transport.

        Args:
            rng: Random source for mistake typing; a fresh ``random.Random`` by default.

        Raises:
            TransportError: If the session is not connected.
        """
        if self._transport is None:
            raise TransportError('WebSocket connection not established. Cannot create a new page.')

        from greenlight.actor.page import Page

        return Page(
            self._transport,
            timeout=self.browser_profile.resolved_locator_timeout,
            poll_interval=self.browser_profile.resolved_poll_interval,
            rng=rng,
        )

    async def stop(self, force: bool = True) -> None:
        """Close the socket, kill the browser and remove its temporary profile.

        Each step is best-effort: a failing step is logged and the remaining
        steps still run.

        Args:
            force: Kill the locally launched browser. With False the process is
                left running (only the connection is closed).
        """
        if self._transport is not None:
            try:
                await self._transport.close()
            except Exception as e:
                self.logger.warning(f'Error closing WebSocket: {e}')
            self._transport = None

        if self._watchdogs_attached:
            try:
                stop_event = self.event_bus.dispatch(BrowserStopEvent(force=force))
                await stop_event
                await self.event_bus.dispatch(BrowserStoppedEvent(reason='Stopped by request'))
            except Exception as e:
                self.logger.warning(f'Error stopping browser: {e}')

        try:
            await self.event_bus.stop(clear=True, timeout=5)
        except Exception as e:
            self.logger.warning(f'Error stopping event bus: {e}')
        self.event_bus = EventBus()
        self._watchdogs_attached = False
        self._local_browser_watchdog = None

        self.logger.info('Browser closed successfully.')

    async def __aenter__(self) -> 'BrowserSession':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
