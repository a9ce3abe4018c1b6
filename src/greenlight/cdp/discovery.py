"""Page-target discovery through the browser's HTTP debugging endpoint.

A browser started with ``--remote-debugging-port`` lists its inspectable
targets at ``http://<host>:<port>/json``. Each entry has a ``type``, a ``url``
and a ``webSocketDebuggerUrl``; the transport connects to the latter.
"""

import asyncio
import logging

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from greenlight.exceptions import BrowserLaunchError, TargetNotFoundError, TransportError

logger = logging.getLogger(__name__)


class PageTarget(BaseModel):
    """One inspectable target as listed by ``/json``."""

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    id: str = ''
    type: str = ''
    title: str = ''
    url: str = ''
    web_socket_debugger_url: str | None = Field(default=None, alias='webSocketDebuggerUrl')

    @property
    def is_attachable_page(self) -> bool:
        return self.type == 'page' and bool(self.url) and bool(self.web_socket_debugger_url)


def targets_endpoint(host: str, port: int) -> str:
    return f'http://{host}:{port}/json'


async def list_targets(
    host: str = 'localhost',
    port: int = 9222,
    client: httpx.AsyncClient | None = None,
    timeout: float = 5.0,
) -> list[PageTarget]:
    """Fetch every target the browser exposes.

    Args:
        host: Debugging host.
        port: Debugging port.
        client: Optional client to reuse (tests pass one backed by ``httpx.MockTransport``).
        timeout: Request timeout in seconds.

    Raises:
        TransportError: If the endpoint is unreachable or does not return a JSON list.
    """
    url = targets_endpoint(host, port)
    try:
        if client is not None:
            response = await client.get(url, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout) as owned_client:
                response = await owned_client.get(url)
        response.raise_for_status()
        entries = response.json()
    except httpx.HTTPError as e:
        raise TransportError(f'Failed to fetch active pages from {url}', method='discovery') from e
    except ValueError as e:
        raise TransportError(f'Failed to decode target list from {url}', method='discovery') from e

    if not isinstance(entries, list):
        raise TransportError(f'Expected a JSON list from {url}, got {type(entries).__name__}', method='discovery')

    targets: list[PageTarget] = []
    for entry in entries:
        try:
            targets.append(PageTarget.model_validate(entry))
        except ValidationError as e:
            logger.debug(f'Skipping unparseable target entry {entry!r}: {e}')
    return targets


async def find_page_target(
    host: str = 'localhost',
    port: int = 9222,
    client: httpx.AsyncClient | None = None,
) -> PageTarget:
    """Return the first page target with a non-empty URL.

    Raises:
        TargetNotFoundError: If the browser lists no such page.
        TransportError: If the endpoint cannot be queried.
    """
    for target in await list_targets(host, port, client=client):
        if target.is_attachable_page:
            logger.debug(f'Found page target {target.id} at {target.url}')
            return target
    raise TargetNotFoundError(f'No suitable page found at {host}:{port}', method='discovery')


async def wait_for_page_target(
    host: str = 'localhost',
    port: int = 9222,
    timeout: float = 20.0,
    interval: float = 1.0,
    client: httpx.AsyncClient | None = None,
) -> PageTarget:
    """Poll the debugging endpoint until a page target is listed.

    Used right after launching a browser, while it is still opening its port.

    Raises:
        BrowserLaunchError: If no page target shows up within ``timeout`` seconds.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    last_error: Exception | None = None
    while True:
        try:
            return await find_page_target(host, port, client=client)
        except TransportError as e:
            last_error = e
        if loop.time() + interval > deadline:
            break
        await asyncio.sleep(interval)
    raise BrowserLaunchError(f'Debugger at {host}:{port} not ready after {timeout:g} seconds') from last_error
