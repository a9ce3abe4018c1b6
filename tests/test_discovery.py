"""Tests for page-target discovery over the HTTP debugging endpoint."""

import httpx
import pytest

from greenlight.cdp.discovery import (
    PageTarget,
    find_page_target,
    list_targets,
    targets_endpoint,
    wait_for_page_target,
)
from greenlight.exceptions import BrowserLaunchError, TargetNotFoundError, TransportError

SERVICE_WORKER = {
    "id": "SW1",
    "type": "service_worker",
    "title": "sw",
    "url": "https://example.com/sw.js",
    "webSocketDebuggerUrl": "ws://localhost:9222/devtools/page/SW1",
}
BLANK_PAGE = {"id": "P0", "type": "page", "title": "", "url": "", "webSocketDebuggerUrl": "ws://localhost:9222/devtools/page/P0"}
PAGE_ONE = {
    "id": "P1",
    "type": "page",
    "title": "Example",
    "url": "https://example.com/",
    "webSocketDebuggerUrl": "ws://localhost:9222/devtools/page/P1",
    "devtoolsFrontendUrl": "/devtools/inspector.html?ws=localhost:9222/devtools/page/P1",
}
PAGE_TWO = {**PAGE_ONE, "id": "P2", "webSocketDebuggerUrl": "ws://localhost:9222/devtools/page/P2"}


def client_returning(body=None, status=200, error=None):
    """An AsyncClient whose every GET to /json is answered locally."""
    requests = []

    def handler(request):
        requests.append(request)
        if error is not None:
            raise error
        return httpx.Response(status, json=body)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client.requests = requests
    return client


class TestListTargets:
    """Fetching and parsing /json."""

    @pytest.mark.asyncio
    async def test_parses_entries(self):
        async with client_returning([SERVICE_WORKER, PAGE_ONE]) as client:
            targets = await list_targets("localhost", 9222, client=client)

        assert [t.id for t in targets] == ["SW1", "P1"]
        assert targets[1].web_socket_debugger_url == "ws://localhost:9222/devtools/page/P1"
        assert str(client.requests[0].url) == "http://localhost:9222/json"

    @pytest.mark.asyncio
    async def test_skips_unparseable_entries(self):
        async with client_returning(["garbage", PAGE_ONE]) as client:
            targets = await list_targets(client=client)

        assert [t.id for t in targets] == ["P1"]

    @pytest.mark.asyncio
    async def test_non_list_body_raises(self):
        async with client_returning({"not": "a list"}) as client:
            with pytest.raises(TransportError, match="Expected a JSON list"):
                await list_targets(client=client)

    @pytest.mark.asyncio
    async def test_http_error_status_raises(self):
        async with client_returning([], status=500) as client:
            with pytest.raises(TransportError, match="Failed to fetch active pages") as exc_info:
                await list_targets(client=client)

        assert exc_info.value.method == "discovery"

    @pytest.mark.asyncio
    async def test_unreachable_endpoint_raises(self):
        async with client_returning(error=httpx.ConnectError("connection refused")) as client:
            with pytest.raises(TransportError) as exc_info:
                await list_targets(client=client)

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_endpoint_url(self):
        assert targets_endpoint("127.0.0.1", 9333) == "http://127.0.0.1:9333/json"


class TestFindPageTarget:
    """Selecting the page to attach to."""

    @pytest.mark.asyncio
    async def test_first_page_with_url_wins(self):
        async with client_returning([SERVICE_WORKER, BLANK_PAGE, PAGE_ONE, PAGE_TWO]) as client:
            target = await find_page_target(client=client)

        assert target.id == "P1"

    @pytest.mark.asyncio
    async def test_no_page_raises_target_not_found(self):
        async with client_returning([SERVICE_WORKER, BLANK_PAGE]) as client:
            with pytest.raises(TargetNotFoundError, match="No suitable page found at localhost:9222"):
                await find_page_target("localhost", 9222, client=client)

    def test_attachable_requires_debugger_url(self):
        target = PageTarget(type="page", url="https://example.com/")
        assert not target.is_attachable_page
        assert PageTarget.model_validate(PAGE_ONE).is_attachable_page


class TestWaitForPageTarget:
    """Polling while a freshly launched browser opens its port."""

    @pytest.mark.asyncio
    async def test_returns_once_a_page_appears(self):
        bodies = [[], [SERVICE_WORKER], [PAGE_ONE]]

        def handler(request):
            return httpx.Response(200, json=bodies.pop(0))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            target = await wait_for_page_target(timeout=1.0, interval=0.01, client=client)

        assert target.id == "P1"
        assert bodies == []

    @pytest.mark.asyncio
    async def test_gives_up_with_browser_launch_error(self):
        async with client_returning(error=httpx.ConnectError("refused")) as client:
            with pytest.raises(BrowserLaunchError, match="not ready after 0.05 seconds") as exc_info:
                await wait_for_page_target(timeout=0.05, interval=0.01, client=client)

        assert isinstance(exc_info.value.__cause__, TransportError)
