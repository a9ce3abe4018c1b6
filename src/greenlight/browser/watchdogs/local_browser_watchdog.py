"""Local browser watchdog for managing the browser subprocess lifecycle.

Classes:
    LocalBrowserWatchdog: Launches, kills and cleans up a local Chrome/Chromium.
"""

import asyncio
import platform
import shutil
import tempfile
from pathlib import Path

from greenlight.browser.events import (
    BrowserKillEvent,
    BrowserLaunchEvent,
    BrowserLaunchResult,
    BrowserStopEvent,
)
from greenlight.browser.watchdogs.base import BaseWatchdog
from greenlight.cdp.discovery import wait_for_page_target
from greenlight.config import get_config
from greenlight.exceptions import BrowserLaunchError

BROWSER_NAMES = ('google-chrome', 'google-chrome-stable', 'chromium', 'chromium-browser', 'chrome')

COMMON_PATHS = {
    'Darwin': [
        '/Applications/Google Chrome.app/Contents/MacOS/Google Chrome',
        '/Applications/Chromium.app/Contents/MacOS/Chromium',
    ],
    'Linux': [
        '/usr/bin/google-chrome',
        '/usr/bin/chromium-browser',
        '/usr/bin/chromium',
    ],
    'Windows': [
        'C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe',
        'C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe',
    ],
}


def find_browser_executable(explicit: str | Path | None = None) -> str:
    """Locate the browser executable.

    Order: the explicit path, ``GREENLIGHT_EXECUTABLE_PATH``, well-known
    names on ``PATH``, then common install locations for this platform.

    Raises:
        BrowserLaunchError: If an explicit path does not exist or nothing is found.
    """
    for configured in (explicit, get_config().GREENLIGHT_EXECUTABLE_PATH):
        if configured:
            path = Path(configured).expanduser()
            if not path.exists():
                raise BrowserLaunchError(f'Chrome executable not found at: {path}')
            return str(path)

    for name in BROWSER_NAMES:
        found = shutil.which(name)
        if found:
            return found

    for candidate in COMMON_PATHS.get(platform.system(), []):
        if Path(candidate).exists():
            return candidate

    raise BrowserLaunchError('Failed to find a Chrome executable. Install Chrome/Chromium or set GREENLIGHT_EXECUTABLE_PATH.')


class LocalBrowserWatchdog(BaseWatchdog):
    """Manages the local browser subprocess.

    Listens to:
        BrowserLaunchEvent: Launches the browser and waits for a page target.
        BrowserKillEvent: Terminates the process and removes the temporary profile.
        BrowserStopEvent: Dispatches BrowserKillEvent when ``force`` is set.
    """

    def attach_to_session(self) -> None:
        self.event_bus.on(BrowserLaunchEvent, self.on_BrowserLaunchEvent)
        self.event_bus.on(BrowserKillEvent, self.on_BrowserKillEvent)
        self.event_bus.on(BrowserStopEvent, self.on_BrowserStopEvent)

    async def on_BrowserLaunchEvent(self, event: BrowserLaunchEvent) -> BrowserLaunchResult:
        """Start the browser process and return the page WebSocket URL.

        Raises:
            BrowserLaunchError: If the executable is missing, fails to start, or
                never lists a page target.
        """
        session = self.browser_session
        profile = session.browser_profile
        executable = find_browser_executable(profile.executable_path)

        if profile.user_data_dir:
            user_data_dir = str(profile.user_data_dir)
        else:
            user_data_dir = tempfile.mkdtemp(prefix='greenlight_')
            session._owned_user_data_dir = user_data_dir

        argv = profile.launch_args(executable, user_data_dir)
        self.logger.debug(f'[LocalBrowserWatchdog] Launching: {" ".join(argv)}')

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            await self._remove_user_data_dir()
            raise BrowserLaunchError(f'Failed to start browser {executable}') from e

        session._process = process
        self.logger.info(f'[LocalBrowserWatchdog] Chrome started with PID: {process.pid}')

        try:
            target = await wait_for_page_target(
                profile.resolved_host,
                profile.resolved_port,
                timeout=get_config().GREENLIGHT_CONNECT_TIMEOUT,
            )
        except BrowserLaunchError:
            self.logger.error('[LocalBrowserWatchdog] Browser never exposed a page target, killing it')
            await self.on_BrowserKillEvent(BrowserKillEvent())
            raise

        assert target.web_socket_debugger_url is not None
        return BrowserLaunchResult(ws_url=target.web_socket_debugger_url, pid=process.pid)

    async def on_BrowserKillEvent(self, event: BrowserKillEvent) -> None:
        """Terminate the process (kill after 5s) and remove the temporary profile.

        Every step is best-effort: failures are logged and cleanup continues.
        """
        session = self.browser_session
        process = session._process
        if process is None:
            self.logger.debug('[LocalBrowserWatchdog] No browser process to kill')
        else:
            self.logger.info(f'[LocalBrowserWatchdog] Killing browser process (PID {process.pid})')
            try:
                if process.returncode is None:
                    process.terminate()
                    try:
                        await asyncio.wait_for(process.wait(), timeout=5.0)
                    except asyncio.TimeoutError:
                        self.logger.warning('[LocalBrowserWatchdog] Process did not terminate gracefully, killing')
                        if process.returncode is None:
                            process.kill()
                            await process.wait()
            except ProcessLookupError:
                pass
            except Exception as e:
                self.logger.warning(f'[LocalBrowserWatchdog] Error killing browser process: {e}')
            session._process = None

        await self._remove_user_data_dir()

    async def on_BrowserStopEvent(self, event: BrowserStopEvent) -> None:
        if event.force:
            kill_event = self.event_bus.dispatch(BrowserKillEvent())
            await kill_event

    async def _remove_user_data_dir(self) -> None:
        session = self.browser_session
        user_data_dir = session._owned_user_data_dir
        if not user_data_dir:
            return
        # The browser may still be flushing its profile right after exit
        await asyncio.sleep(0.5)
        try:
            await asyncio.to_thread(shutil.rmtree, user_data_dir)
            self.logger.debug(f'[LocalBrowserWatchdog] Removed user data directory {user_data_dir}')
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f'[LocalBrowserWatchdog] Error removing user data directory: {e}')
        session._owned_user_data_dir = None
