"""WebSocket transport for the Chrome DevTools Protocol.

One ``CDPTransport`` owns the socket to a single page target. Commands are
``{"id", "method", "params"}`` envelopes; responses come back carrying the
same ``id``. A single reader task per connection demultiplexes inbound frames
into per-command futures, so any number of coroutines can await responses on
the same socket without reading each other's frames. Frames without a pending
``id`` are protocol events: they are handed to event listeners and otherwise
dropped.

Example:
    >>> transport = CDPTransport(target_provider=lambda: find_ws_url())
    >>> await transport.connect()
    >>> await transport.send_without_response('Page.enable')
    >>> response = await transport.send_with_response(
    ...     'Runtime.evaluate', {'expression': '1 + 1', 'returnByValue': True}
    ... )
    >>> response.at('result', 'result', 'value').as_int()
    2
    >>> await transport.close()
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from greenlight.cdp.payload import JSONValue, Payload
from greenlight.exceptions import CDPProtocolError, GreenlightError, TransportError

logger = logging.getLogger(__name__)


class WebSocketLike(Protocol):
    """The subset of a websockets client connection the transport uses."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def close(self) -> None: ...


TargetProvider = Callable[[], Awaitable[str]]
Connector = Callable[[str], Awaitable[WebSocketLike]]
EventListener = Callable[[str, Payload], None]


async def open_websocket(ws_url: str) -> WebSocketLike:
    """Default connector: a websockets client without a frame size limit (DOM payloads get large)."""
    return await connect(ws_url, max_size=None, open_timeout=10)


class _Connection:
    """One live socket plus the commands still waiting for a response on it."""

    def __init__(self, ws: WebSocketLike, ws_url: str, number: int):
        self.ws = ws
        self.ws_url = ws_url
        self.number = number
        self.pending: dict[int, tuple[asyncio.Future[Payload], str]] = {}
        self.reader: asyncio.Task[None] | None = None
        self.closed = False


class CDPTransport:
    """Owns the WebSocket to one page target and correlates responses by id.

    Attributes:
        command_timeout: Default seconds to wait for a response, None to wait
            until the connection fails.

    The request-id counter starts at 0 and is never reset, including across
    reconnects, so an id is never reused for the lifetime of the transport.
    Id allocation, reconnection and the envelope write all happen under one
    ``asyncio.Lock``: ids reach the wire in strictly increasing order and two
    envelopes never interleave.
    """

    def __init__(
        self,
        target_provider: TargetProvider,
        connector: Connector | None = None,
        command_timeout: float | None = None,
    ):
        self._target_provider = target_provider
        self._connector: Connector = connector or open_websocket
        self.command_timeout = command_timeout

        self._lock = asyncio.Lock()
        self._message_id = 0
        self._conn: _Connection | None = None
        self._connections_opened = 0
        self._listeners: list[EventListener] = []
        self._closed = False

    @property
    def is_connected(self) -> bool:
        return self._conn is not None and not self._conn.closed

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def ws_url(self) -> str | None:
        return self._conn.ws_url if self._conn is not None else None

    @property
    def last_message_id(self) -> int:
        """The most recently allocated request id (0 before the first command)."""
        return self._message_id

    @property
    def connections_opened(self) -> int:
        return self._connections_opened

    def add_event_listener(self, listener: EventListener) -> None:
        """Register ``listener(method, params)`` for unsolicited protocol events."""
        self._listeners.append(listener)

    def remove_event_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection if it is not already open."""
        async with self._lock:
            if not self.is_connected:
                await self._connect_locked()

    async def reconnect(self) -> None:
        """Replace the current connection with a fresh one.

        Commands still waiting on the old connection fail with ``TransportError``.
        """
        async with self._lock:
            await self._connect_locked()

    async def _connect_locked(self) -> None:
        if self._closed:
            raise TransportError('Transport is closed, refusing to reconnect')

        try:
            ws_url = await self._target_provider()
        except GreenlightError as e:
            raise TransportError('Failed to reconnect WebSocket: page discovery failed') from e
        except Exception as e:
            raise TransportError('Failed to reconnect WebSocket: page discovery raised unexpectedly') from e

        previous = self._conn
        if previous is not None:
            self._conn = None
            await self._shutdown(previous, 'Connection replaced by a reconnect')

        try:
            ws = await self._connector(ws_url)
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            raise TransportError(f'Failed to connect to page WebSocket {ws_url}') from e

        self._connections_opened += 1
        conn = _Connection(ws, ws_url, self._connections_opened)
        conn.reader = asyncio.create_task(self._read_loop(conn), name=f'cdp-reader-{conn.number}')
        self._conn = conn
        logger.info(f'Connected to page WebSocket {ws_url} (connection #{conn.number})')

    async def close(self) -> None:
        """Close the socket and fail any outstanding waits. Safe to call twice."""
        self._closed = True
        async with self._lock:
            conn, self._conn = self._conn, None
        if conn is not None:
            await self._shutdown(conn, 'Transport closed')
            logger.debug(f'Closed connection #{conn.number}')

    async def _shutdown(self, conn: _Connection, reason: str) -> None:
        conn.closed = True
        try:
            await conn.ws.close()
        except Exception as e:
            logger.debug(f'Error closing WebSocket #{conn.number}: {e}')
        if conn.reader is not None and not conn.reader.done():
            conn.reader.cancel()
            await asyncio.gather(conn.reader, return_exceptions=True)
        self._fail_pending(conn, reason)

    def _drop(self, conn: _Connection) -> None:
        """Forget a connection found dead; its reader fails the pending waits."""
        conn.closed = True
        if self._conn is conn:
            self._conn = None
        if conn.reader is not None and not conn.reader.done():
            conn.reader.cancel()

    def _fail_pending(self, conn: _Connection, reason: str, cause: BaseException | None = None) -> None:
        pending, conn.pending = conn.pending, {}
        for msg_id, (future, method) in pending.items():
            if future.done():
                continue
            error = TransportError(f'{reason} while waiting for response to id {msg_id}', method=method)
            error.__cause__ = cause
            future.set_exception(error)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def _read_loop(self, conn: _Connection) -> None:
        cause: BaseException | None = None
        try:
            while True:
                raw = await conn.ws.recv()
                self._dispatch(conn, raw)
        except ConnectionClosed as e:
            logger.info(f'WebSocket connection #{conn.number} closed: {e}')
            cause = e
        except (OSError, WebSocketException) as e:
            logger.error(f'Failed to read WebSocket message on connection #{conn.number}: {e}')
            cause = e
        finally:
            conn.closed = True
            if self._conn is conn:
                self._conn = None
            self._fail_pending(conn, 'Connection dropped', cause)

    def _dispatch(self, conn: _Connection, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f'Failed to parse WebSocket message: {raw!r:.200}')
            return
        if not isinstance(message, dict):
            logger.warning(f'Skipping non-object WebSocket message: {raw!r:.200}')
            return

        msg_id = message.get('id')
        if isinstance(msg_id, int) and not isinstance(msg_id, bool):
            entry = conn.pending.pop(msg_id, None)
            if entry is None:
                logger.debug(f'Skipping response for unknown id {msg_id}')
                return
            future, method = entry
            if future.done():
                return
            if 'error' in message:
                error = message['error'] if isinstance(message['error'], dict) else {'message': str(message['error'])}
                future.set_exception(
                    CDPProtocolError(
                        f'CDP error: {error.get("message", "Unknown CDP error")}',
                        code=error.get('code'),
                        cdp_error=error,
                        method=method,
                    )
                )
            else:
                future.set_result(Payload(message))
            return

        method = message.get('method')
        if isinstance(method, str):
            self._emit_event(method, Payload(message.get('params', {}), '$.params'))
        else:
            logger.debug(f'Skipping frame with neither id nor method: {raw!r:.200}')

    def _emit_event(self, method: str, params: Payload) -> None:
        for listener in list(self._listeners):
            try:
                listener(method, params)
            except Exception as e:
                logger.warning(f'Event listener for {method} raised: {type(e).__name__}: {e}')

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def _write(
        self,
        method: str,
        params: dict[str, JSONValue] | None,
        expect_response: bool,
    ) -> tuple[int, _Connection, asyncio.Future[Payload] | None]:
        async with self._lock:
            if not self.is_connected:
                if self._conn is None and self._connections_opened:
                    logger.info('WebSocket connection lost, reconnecting')
                await self._connect_locked()
            conn = self._conn
            assert conn is not None

            self._message_id += 1
            msg_id = self._message_id
            message: dict[str, Any] = {'id': msg_id, 'method': method}
            if params is not None:
                message['params'] = params

            future: asyncio.Future[Payload] | None = None
            if expect_response:
                future = asyncio.get_running_loop().create_future()
                conn.pending[msg_id] = (future, method)

            try:
                data = json.dumps(message)
            except (TypeError, ValueError) as e:
                conn.pending.pop(msg_id, None)
                raise TransportError(f'Command params are not JSON serializable: {e}', method=method) from e

            try:
                await conn.ws.send(data)
            except (OSError, WebSocketException) as e:
                conn.pending.pop(msg_id, None)
                self._drop(conn)
                raise TransportError('Failed to send WebSocket message', method=method) from e
            except BaseException:
                # Cancelled mid-send: nobody will await this future
                conn.pending.pop(msg_id, None)
                if future is not None:
                    future.cancel()
                raise

            logger.debug(f'-> id={msg_id} {method}')
            return msg_id, conn, future

    async def send_without_response(self, method: str, params: dict[str, JSONValue] | None = None) -> int:
        """Send a command without waiting for its response.

        Delivery is not confirmed. Returns the request id that was used.

        Raises:
            TransportError: If reconnecting or writing fails.
        """
        msg_id, _, _ = await self._write(method, params, expect_response=False)
        return msg_id

    async def send_with_response(
        self,
        method: str,
        params: dict[str, JSONValue] | None = None,
        timeout: float | None = None,
    ) -> Payload:
        """Send a command and wait for the response carrying the same id.

        Args:
            method: CDP method in ``Domain.method`` form.
            params: Command parameters, omitted from the envelope when None.
            timeout: Seconds to wait; defaults to ``command_timeout``.

        Returns:
            The full response envelope, e.g. ``{"id": 4, "result": {...}}``.

        Raises:
            CDPProtocolError: If the browser answered with an ``error`` member.
            TransportError: If the connection drops before the response
                arrives, reconnecting or writing fails, or the wait times out.
        """
        msg_id, conn, future = await self._write(method, params, expect_response=True)
        assert future is not None
        timeout = self.command_timeout if timeout is None else timeout
        try:
            if timeout is None:
                return await future
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f'No response to id {msg_id} within {timeout:g}s', method=method) from e
        finally:
            conn.pending.pop(msg_id, None)
