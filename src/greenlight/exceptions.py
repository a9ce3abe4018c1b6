"""Exception hierarchy for greenlight.

Every failure that can reach a caller is one of these types. None of them
terminates the process; callers decide what a failed operation means.
"""

from typing import Any


class GreenlightError(Exception):
    """Base exception for all greenlight errors."""

    def __init__(
        self,
        message: str,
        selector: str | None = None,
        method: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.selector = selector
        self.method = method

    def __str__(self) -> str:
        parts = [self.message]
        if self.selector:
            parts.append(f'selector={self.selector}')
        if self.method:
            parts.append(f'method={self.method}')
        if self.__cause__ is not None:
            parts.append(f'cause={type(self.__cause__).__name__}: {self.__cause__}')
        return ' | '.join(parts)


class TransportError(GreenlightError):
    """Connection, write, read or reconnection failure on the CDP socket."""

    pass


class CDPProtocolError(TransportError):
    """The browser answered a command with an ``error`` member."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        cdp_error: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.code = code
        self.cdp_error = cdp_error


class TargetNotFoundError(TransportError):
    """No debuggable page target was listed by the browser."""

    pass


class LocatorTimeoutError(GreenlightError):
    """A selector never matched an element before the deadline."""

    def __init__(self, selector: str, timeout: float, method: str | None = None):
        super().__init__(
            f'Timeout of {timeout:g}s exceeded while waiting for selector',
            selector=selector,
            method=method,
        )
        self.timeout = timeout


class ResponseShapeError(GreenlightError):
    """A response payload does not have the expected nested shape."""

    def __init__(self, message: str, path: str = '', expected: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.path = path
        self.expected = expected


class JavaScriptError(GreenlightError):
    """``Runtime.evaluate`` reported an exception thrown in the page."""

    def __init__(self, message: str, details: dict[str, Any] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.details = details or {}


class BrowserLaunchError(GreenlightError):
    """The browser executable could not be started or never exposed a debugger."""

    pass
