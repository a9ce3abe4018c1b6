"""Selector-scoped actions with wait-until-present polling.

A ``Locator`` is a lazy ``(page, selector)`` pair. Every action re-resolves the
selector against the live DOM: it polls ``document.querySelector`` until the
element exists or the deadline passes, then sends the action's commands once.
Errors during a poll are treated as transient and retried on the next tick;
only the deadline ends the wait, with ``LocatorTimeoutError``.

Example:
    >>> page = session.new_page()
    >>> await page.goto('https://example.com/login')
    >>> await page.locator('#user').fill('alice')
    >>> await page.locator('#password').type_with_mistakes('hunter2', delay=0.05)
    >>> await page.locator('button[type=submit]').click()
"""

import asyncio
import json
import logging
import random
import string
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from greenlight.actor.utils import calculate_modifier_bitmask, get_key_info
from greenlight.exceptions import GreenlightError, LocatorTimeoutError

if TYPE_CHECKING:
    from greenlight.actor.page import Page

logger = logging.getLogger(__name__)

DEFAULT_MISTAKE_RATE = 0.4


class Locator:
    """Lazy reference to the first element matching a CSS selector."""

    __slots__ = ('_page', '_selector', '_timeout', '_poll_interval')

    def __init__(
        self,
        page: 'Page',
        selector: str,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ):
        self._page = page
        self._selector = selector
        self._timeout = timeout
        self._poll_interval = poll_interval

    @property
    def page(self) -> 'Page':
        return self._page

    @property
    def selector(self) -> str:
        return self._selector

    @property
    def timeout(self) -> float:
        return self._page.timeout if self._timeout is None else self._timeout

    @property
    def poll_interval(self) -> float:
        return self._page.poll_interval if self._poll_interval is None else self._poll_interval

    def __repr__(self) -> str:
        return f'Locator({self._selector!r})'

    def _query(self) -> str:
        # JSON string literals are valid JavaScript string literals
        return f'document.querySelector({json.dumps(self._selector)})'

    @contextmanager
    def _for_selector(self) -> Iterator[None]:
        try:
            yield
        except GreenlightError as e:
            if e.selector is None:
                e.selector = self._selector
            raise

    async def _send(self, method: str, params: dict) -> None:
        await self._page.transport.send_without_response(method, params)

    async def _insert_text(self, text: str) -> None:
        await self._send('Input.insertText', {'text': text})

    async def _focus(self) -> None:
        await self._send('Runtime.evaluate', {'expression': f'{self._query()}.focus()'})

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def is_present(self, timeout: float | None = None) -> bool:
        """Check once, without polling, whether the selector matches an element.

        Raises:
            ResponseShapeError: If the evaluation did not yield a boolean.
            JavaScriptError: If the selector is not valid CSS.
            TransportError: On connection failure.
        """
        value = await self._page.evaluate(f'{self._query()} !== null', timeout=timeout)
        return value.as_bool()

    async def wait_for(self, timeout: float | None = None) -> int:
        """Poll until the selector matches an element.

        Args:
            timeout: Seconds before giving up; defaults to the locator's timeout.

        Returns:
            The number of polls it took.

        Raises:
            LocatorTimeoutError: If no element matched before the deadline.
        """
        return await self._wait_until_present('wait_for', timeout)

    async def _wait_until_present(self, operation: str, timeout: float | None = None) -> int:
        if timeout is None:
            timeout = self.timeout
        interval = self.poll_interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        attempt = 0

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(f'Timeout exceeded while waiting for selector: {self._selector}')
                raise LocatorTimeoutError(self._selector, timeout, method=operation)

            attempt += 1
            try:
                if await asyncio.wait_for(self.is_present(), timeout=remaining):
                    logger.debug(f'{operation}: {self._selector} found on poll {attempt}')
                    return attempt
            except asyncio.TimeoutError:
                logger.debug(f'{operation}: poll {attempt} for {self._selector} hit the deadline')
            except GreenlightError as e:
                logger.debug(f'{operation}: poll {attempt} for {self._selector} failed, retrying: {e}')

            if loop.time() >= deadline:
                continue
            await asyncio.sleep(interval)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def fill(self, value: str) -> None:
        """Replace the element's content with ``value``.

        Focuses, selects all, deletes, then inserts ``value`` in one command.
        """
        await self._wait_until_present('fill')
        with self._for_selector():
            await self._focus()
            await self._send(
                'Input.dispatchKeyEvent',
                {'type': 'keyDown', 'modifiers': calculate_modifier_bitmask(['Control']), 'key': 'a'},
            )
            await self._send('Input.dispatchKeyEvent', {'type': 'keyDown', 'key': 'Backspace'})
            await self._insert_text(value)
        logger.info(f'Filled selector {self._selector} with value: {value}')

    async def click(self) -> None:
        """Click the element via ``element.click()``, awaiting any returned promise."""
        await self._wait_until_present('click')
        with self._for_selector():
            await self._send(
                'Runtime.evaluate',
                {'expression': f'{self._query()}.click()', 'awaitPromise': True},
            )
        logger.info(f'Clicked on selector: {self._selector}')

    async def type_sequentially(self, text: str, delay: float = 0.1) -> None:
        """Type ``text`` one character per command, sleeping ``delay`` seconds after each."""
        await self._wait_until_present('type_sequentially')
        with self._for_selector():
            await self._focus()
            for char in text:
                await self._insert_text(char)
                await asyncio.sleep(delay)
        logger.debug(f'Typed {len(text)} characters into {self._selector}')

    async def type_with_mistakes(
        self,
        text: str,
        delay: float = 0.1,
        rng: random.Random | None = None,
        mistake_rate: float = DEFAULT_MISTAKE_RATE,
    ) -> None:
        """Type ``text`` like a human who sometimes hits the wrong key.

        Before each character, with probability ``mistake_rate``, a random
        lowercase letter is inserted and then erased with Backspace. The final
        content is always ``text``.

        Args:
            text: Text to type.
            delay: Seconds to sleep after every insertion and every Backspace.
            rng: Random source; defaults to the page's.
            mistake_rate: Per-character probability of a typo.
        """
        rng = rng or self._page.rng
        _, backspace_vk = get_key_info('Backspace')

        await self._wait_until_present('type_with_mistakes')
        with self._for_selector():
            await self._focus()
            for char in text:
                if rng.random() < mistake_rate:
                    await self._insert_text(rng.choice(string.ascii_lowercase))
                    await asyncio.sleep(delay)
                    await self._send(
                        'Input.dispatchKeyEvent',
                        {
                            'type': 'rawKeyDown',
                            'key': 'Backspace',
                            'windowsVirtualKeyCode': backspace_vk,
                            'nativeVirtualKeyCode': backspace_vk,
                        },
                    )
                    await asyncio.sleep(delay)

                await self._insert_text(char)
                await asyncio.sleep(delay)

    async def inner_text(self) -> str:
        """Return the element's rendered text (``innerText``).

        Raises:
            ResponseShapeError: If the evaluation did not yield a string.
        """
        await self._wait_until_present('inner_text')
        with self._for_selector():
            value = await self._page.evaluate(f'{self._query()}.innerText')
            return value.as_str()

    async def input_value(self) -> str:
        """Return the ``value`` of an input, textarea or select element."""
        await self._wait_until_present('input_value')
        with self._for_selector():
            value = await self._page.evaluate(f'{self._query()}.value')
            return value.as_str()
