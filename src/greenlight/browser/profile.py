"""Browser launch configuration."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from greenlight.config import get_config


class BrowserProfile(BaseModel):
    """How to launch (or where to find) the browser the session drives.

    Unset fields fall back to the environment configuration when the session
    starts, so ``BrowserProfile()`` honours ``GREENLIGHT_*`` variables.
    """

    model_config = ConfigDict(
        extra='ignore',
        validate_assignment=True,
        from_attributes=True,
    )

    executable_path: str | Path | None = Field(default=None, description='Path to the Chrome/Chromium executable')
    headless: bool | None = Field(default=None, description='Whether to run the browser in headless mode')
    debug_host: str | None = Field(default=None, description='Host of the remote debugging endpoint')
    debug_port: int | None = Field(default=None, ge=1, le=65535, description='Remote debugging port')
    user_data_dir: str | Path | None = Field(
        default=None,
        description='Profile directory. If None, a temporary directory is created and removed on stop.',
    )
    args: list[str] = Field(default_factory=list, description='Additional CLI args to pass to the browser')
    start_url: str = Field(default='about:blank', description='URL the browser opens on launch')

    # Locator defaults for pages of this session
    locator_timeout: float | None = Field(default=None, gt=0, description='Seconds to wait for a selector')
    poll_interval: float | None = Field(default=None, gt=0, description='Seconds between selector polls')

    @property
    def resolved_headless(self) -> bool:
        if self.headless is not None:
            return self.headless
        env_headless = get_config().GREENLIGHT_HEADLESS
        return True if env_headless is None else env_headless

    @property
    def resolved_host(self) -> str:
        return self.debug_host or get_config().GREENLIGHT_DEBUG_HOST

    @property
    def resolved_port(self) -> int:
        return self.debug_port or get_config().GREENLIGHT_DEBUG_PORT

    @property
    def resolved_locator_timeout(self) -> float:
        return get_config().GREENLIGHT_LOCATOR_TIMEOUT if self.locator_timeout is None else self.locator_timeout

    @property
    def resolved_poll_interval(self) -> float:
        return get_config().GREENLIGHT_POLL_INTERVAL if self.poll_interval is None else self.poll_interval

    def launch_args(self, executable: str, user_data_dir: str | Path) -> list[str]:
        """Build the full argv for launching the browser."""
        argv = [
            executable,
            f'--remote-debugging-port={self.resolved_port}',
            '--no-first-run',
            '--no-default-browser-check',
            f'--user-data-dir={user_data_dir}',
            '--remote-allow-origins=*',
        ]
        if self.resolved_headless:
            argv.append('--headless=new')
        argv.extend(self.args)
        argv.append(self.start_url)
        return argv
