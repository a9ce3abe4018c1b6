"""Page-level operations over a CDP transport."""

import asyncio
import logging
import random

from greenlight.actor.locator import Locator
from greenlight.cdp.payload import Payload
from greenlight.cdp.transport import CDPTransport
from greenlight.config import get_config
from greenlight.exceptions import JavaScriptError

logger = logging.getLogger(__name__)


class Page:
    """The single page a session is attached to.

    Provides navigation, raw evaluation and ``Locator`` construction. Locators
    created here inherit the page's timeout and poll interval unless given
    their own.
    """

    def __init__(
        self,
        transport: CDPTransport,
        timeout: float | None = None,
        poll_interval: float | None = None,
        rng: random.Random | None = None,
    ):
        config = get_config()
        self._transport = transport
        self.timeout = config.GREENLIGHT_LOCATOR_TIMEOUT if timeout is None else timeout
        self.poll_interval = config.GREENLIGHT_POLL_INTERVAL if poll_interval is None else poll_interval
        self.rng = rng or random.Random()

    @property
    def transport(self) -> CDPTransport:
        return self._transport

    def locator(
        self,
        selector: str,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> Locator:
        """Create a lazy reference to ``selector``; nothing is sent until an action runs."""
        return Locator(self, selector, timeout=timeout, poll_interval=poll_interval)

    async def goto(self, url: str) -> None:
        """Navigate to ``url`` without waiting for the load to finish.

        Enables the Page and Network domains first (harmless to repeat). Use a
        locator action afterwards to wait for content.

        Raises:
            TransportError: If a command cannot be sent.
        """
        logger.info(f'Navigating to: {url}')
        await self._transport.send_without_response('Page.enable')
        await self._transport.send_without_response('Network.enable')
        await self._transport.send_without_response('Page.navigate', {'url': url})
        logger.debug(f'Navigation to {url} dispatched')

    async def wait(self, seconds: float) -> None:
        """Pause for a fixed time."""
        await asyncio.sleep(seconds)

    async def evaluate(self, expression: str, await_promise: bool = False, timeout: float | None = None) -> Payload:
        """Evaluate ``expression`` in the page and return its value.

        Returns:
            The by-value result; ``Payload(None)`` for ``undefined``.

        Raises:
            JavaScriptError: If the expression threw.
            ResponseShapeError: If the response has no ``result.result`` member.
            TransportError: On connection failure.
        """
        params = {'expression': expression, 'returnByValue': True}
        if await_promise:
            params['awaitPromise'] = True
        response = await self._transport.send_with_response('Runtime.evaluate', params, timeout=timeout)

        result = response.get('result')
        details = result.get_optional('exceptionDetails')
        if details is not None:
            description = details.value.get('text', 'Uncaught') if isinstance(details.value, dict) else 'Uncaught'
            exception = details.get_optional('exception')
            if exception is not None and isinstance(exception.value, dict):
                description = exception.value.get('description', description)
            raise JavaScriptError(f'JavaScript evaluation failed: {description}', details=details.as_dict())

        remote_object = result.get('result')
        value = remote_object.get_optional('value')
        return value if value is not None else Payload(None, f'{remote_object.path}.value')
