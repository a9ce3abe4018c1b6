"""Pytest configuration and fixtures for the greenlight test suite.

No real browser is involved. The transport is exercised against
``FakeWebSocket`` connections handed out by ``FakeBrowser``, and page actions
run against ``FakeDom``, a responder that interprets the exact CDP commands
greenlight sends and keeps a tiny model of the page (which selectors exist,
their text, the focused element).

Path Setup:
    The src directory is added to sys.path so tests can import
    ``greenlight`` without installing the package.
"""

import asyncio
import json
import os
import re
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from websockets.exceptions import ConnectionClosedError  # noqa: E402

from greenlight.actor.page import Page  # noqa: E402
from greenlight.cdp.transport import CDPTransport  # noqa: E402
from greenlight.config import get_config  # noqa: E402

Responder = Callable[[dict[str, Any]], list[Any] | None]

_CLOSED = object()


# ---------------------------------------------------------------------------
# Fake WebSocket layer
# ---------------------------------------------------------------------------


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection.

    Every outbound message is decoded into ``sent``. A ``responder`` may
    return frames (dicts or raw strings) to queue for ``recv`` in reply.
    """

    def __init__(self, responder: Responder | None = None):
        self.sent: list[dict[str, Any]] = []
        self.responder = responder
        self.closed = False
        self.fail_sends = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        if self.closed or self.fail_sends:
            raise ConnectionClosedError(None, None)
        message = json.loads(data)
        self.sent.append(message)
        if self.responder is not None:
            for frame in self.responder(message) or []:
                self.push(frame)

    async def recv(self) -> str:
        item = await self._inbox.get()
        if item is _CLOSED:
            raise ConnectionClosedError(None, None)
        return item

    async def close(self) -> None:
        self.drop()

    def push(self, frame: Any) -> None:
        self._inbox.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        """Simulate the browser closing the socket."""
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(_CLOSED)


class FakeBrowser:
    """Target provider and connector for ``CDPTransport``.

    Each connect hands out a fresh ``FakeWebSocket`` sharing ``responder``.
    """

    def __init__(self, responder: Responder | None = None):
        self.responder = responder
        self.sockets: list[FakeWebSocket] = []
        self.provider_calls = 0
        self.discovery_error: Exception | None = None

    async def provide(self) -> str:
        self.provider_calls += 1
        if self.discovery_error is not None:
            raise self.discovery_error
        return f"ws://127.0.0.1:9222/devtools/page/{self.provider_calls}"

    async def connect(self, ws_url: str) -> FakeWebSocket:
        ws = FakeWebSocket(self.responder)
        self.sockets.append(ws)
        return ws

    @property
    def ws(self) -> FakeWebSocket:
        return self.sockets[-1]

    @property
    def all_sent(self) -> list[dict[str, Any]]:
        return [message for ws in self.sockets for message in ws.sent]


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process."""

    def __init__(self, pid: int = 4242, ignore_terminate: bool = False):
        self.pid = pid
        self.returncode: int | None = None
        self.ignore_terminate = ignore_terminate
        self.terminated = False
        self.killed = False
        self._exited = asyncio.Event()

    def terminate(self) -> None:
        self.terminated = True
        if not self.ignore_terminate:
            self._exit(-15)

    def kill(self) -> None:
        self.killed = True
        self._exit(-9)

    def _exit(self, code: int) -> None:
        self.returncode = code
        self._exited.set()

    async def wait(self) -> int | None:
        await self._exited.wait()
        return self.returncode


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


# ---------------------------------------------------------------------------
# Fake page
# ---------------------------------------------------------------------------


_QUERY = re.compile(r'document\.querySelector\((".*")\)(.*)', re.DOTALL)


class FakeDom:
    """Responder that models a page for the commands greenlight sends.

    Attributes:
        elements: selector -> current text/value of the element.
        appear_after: selector -> number of existence polls that report False
            before the element shows up.
        poll_errors: number of upcoming existence polls answered with a CDP error.
        silent_polls: when True, existence polls are never answered.
        drop_on: predicate over (method, params); when it matches, the socket
            fails the write as if the browser had gone away.
    """

    def __init__(self, elements: dict[str, str] | None = None):
        self.elements: dict[str, str] = dict(elements or {})
        self.appear_after: dict[str, int] = {}
        self.poll_errors = 0
        self.silent_polls = False
        self.drop_on: Callable[[str, dict[str, Any]], bool] | None = None
        self.polls: dict[str, int] = {}
        self.focused: str | None = None
        self.selected = False
        self.clicks: list[str] = []
        self.commands: list[tuple[str, dict[str, Any]]] = []
        self.timestamps: list[tuple[str, float]] = []

    def __call__(self, message: dict[str, Any]) -> list[Any] | None:
        method = message["method"]
        params = message.get("params", {})
        self.commands.append((method, params))
        self.timestamps.append((method, asyncio.get_running_loop().time()))
        if self.drop_on is not None and self.drop_on(method, params):
            raise ConnectionClosedError(None, None)

        if method == "Runtime.evaluate":
            return self._evaluate(message["id"], params["expression"])
        if method == "Input.insertText":
            self._type(params["text"])
        elif method == "Input.dispatchKeyEvent":
            self._key(params)
        return [{"id": message["id"], "result": {}}]

    def _present(self, selector: str) -> bool:
        count = self.polls.get(selector, 0)
        return selector in self.elements and count > self.appear_after.get(selector, 0)

    def _evaluate(self, msg_id: int, expression: str) -> list[Any] | None:
        match = _QUERY.fullmatch(expression)
        assert match, f"unexpected expression {expression!r}"
        selector, rest = json.loads(match.group(1)), match.group(2)

        if rest == " !== null":
            if self.silent_polls:
                return None
            if self.poll_errors:
                self.poll_errors -= 1
                return [{"id": msg_id, "error": {"code": -32000, "message": "Cannot find context"}}]
            self.polls[selector] = self.polls.get(selector, 0) + 1
            return [_value(msg_id, "boolean", self._present(selector))]
        if rest == ".focus()":
            self.focused = selector
            self.selected = False
            return [_value(msg_id, "undefined", None)]
        if rest == ".click()":
            self.clicks.append(selector)
            return [_value(msg_id, "undefined", None)]
        if rest in (".innerText", ".value"):
            return [_value(msg_id, "string", self.elements[selector])]
        raise AssertionError(f"unexpected expression {expression!r}")

    def _type(self, text: str) -> None:
        assert self.focused is not None, "typing without focus"
        if self.selected:
            self.elements[self.focused] = ""
            self.selected = False
        self.elements[self.focused] += text

    def _key(self, params: dict[str, Any]) -> None:
        if params.get("key") == "a" and params.get("modifiers") == 2:
            self.selected = True
        elif params.get("key") == "Backspace":
            if self.selected:
                self.elements[self.focused] = ""
                self.selected = False
            else:
                self.elements[self.focused] = self.elements[self.focused][:-1]

    def sent(self, method: str) -> list[dict[str, Any]]:
        return [params for name, params in self.commands if name == method]


def _value(msg_id: int, type_: str, value: Any) -> dict[str, Any]:
    remote_object: dict[str, Any] = {"type": type_}
    if value is not None:
        remote_object["value"] = value
    return {"id": msg_id, "result": {"result": remote_object}}


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Isolate tests from GREENLIGHT_* variables of the developer's shell."""
    for name in list(os.environ):
        if name.startswith("GREENLIGHT_"):
            monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture()
def fake_browser():
    return FakeBrowser()


@pytest.fixture()
def transport(fake_browser):
    return CDPTransport(target_provider=fake_browser.provide, connector=fake_browser.connect)


@pytest.fixture()
def dom():
    return FakeDom()


@pytest_asyncio.fixture
async def page(dom):
    """A connected Page over a FakeDom with short polling settings."""
    browser = FakeBrowser(responder=dom)
    transport = CDPTransport(target_provider=browser.provide, connector=browser.connect)
    await transport.connect()
    yield Page(transport, timeout=1.0, poll_interval=0.02)
    await transport.close()
