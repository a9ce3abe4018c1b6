"""Logging setup for greenlight.

The library only creates module loggers; handlers are installed by
``setup_logging``, which the CLI calls at startup.
"""

import logging
import sys
from typing import TextIO

from greenlight.config import get_config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_configured = False


def _parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    stream: TextIO | None = None,
    log_level: str | int | None = None,
    force_setup: bool = False,
    debug_log_file: str | None = None,
) -> logging.Logger:
    """Configure the ``greenlight`` logger tree.

    Args:
        stream: Stream for the console handler, stderr by default.
        log_level: Level for ``greenlight`` loggers; defaults to
            ``GREENLIGHT_LOGGING_LEVEL``.
        force_setup: Replace handlers installed by an earlier call.
        debug_log_file: Optional file that receives DEBUG and above; defaults to
            ``GREENLIGHT_DEBUG_LOG_FILE``.

    Returns:
        The configured ``greenlight`` logger.
    """
    global _configured

    root = logging.getLogger('greenlight')
    if _configured and not force_setup:
        return root

    config = get_config()
    level = _parse_level(log_level if log_level is not None else config.GREENLIGHT_LOGGING_LEVEL)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(stream or sys.stderr)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    console.setLevel(level)
    root.addHandler(console)

    debug_log_file = debug_log_file or config.GREENLIGHT_DEBUG_LOG_FILE
    if debug_log_file:
        file_handler = logging.FileHandler(debug_log_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        root.addHandler(file_handler)

    root.setLevel(logging.DEBUG if debug_log_file else level)
    root.propagate = False

    # Frame-level transport chatter is noisy; it has its own knob
    logging.getLogger('greenlight.cdp').setLevel(_parse_level(config.CDP_LOGGING_LEVEL))

    # Third-party loggers that are chatty at INFO
    for name in ('httpx', 'httpcore', 'websockets', 'bubus'):
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    return root
