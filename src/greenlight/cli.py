"""CLI module for greenlight."""

from __future__ import annotations

import asyncio
import sys
from typing import Optional

try:
    import click
    from rich.console import Console
    from rich.table import Table
except ImportError:
    raise ImportError("Please install CLI dependencies: pip install click rich")

from dotenv import load_dotenv

from greenlight import __version__
from greenlight.browser.profile import BrowserProfile
from greenlight.browser.session import BrowserSession
from greenlight.cdp.discovery import list_targets
from greenlight.config import get_config
from greenlight.exceptions import GreenlightError
from greenlight.logging_config import setup_logging

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="greenlight")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """greenlight - drive a Chromium page over the DevTools protocol."""
    load_dotenv()
    get_config.cache_clear()
    setup_logging(log_level="debug" if verbose else None, force_setup=True)


@cli.command()
@click.argument("url")
@click.argument("selector")
@click.option("--headless/--no-headless", default=True, help="Run browser in headless mode")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for the selector")
@click.option("--executable", type=click.Path(dir_okay=False), default=None, help="Browser executable")
def text(url: str, selector: str, headless: bool, timeout: Optional[float], executable: Optional[str]):
    """Open URL and print the inner text of SELECTOR.

    Example:
        >>> greenlight text https://example.com h1
    """

    async def execute() -> str:
        profile = BrowserProfile(headless=headless, executable_path=executable, locator_timeout=timeout)
        session = BrowserSession(browser_profile=profile)
        try:
            await session.start()
            page = session.new_page()
            await page.goto(url)
            return await page.locator(selector).inner_text()
        finally:
            await session.stop()

    try:
        console.print(asyncio.run(execute()))
    except GreenlightError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.option("--host", default=None, help="Debugging host (default: GREENLIGHT_DEBUG_HOST)")
@click.option("--port", type=int, default=None, help="Debugging port (default: GREENLIGHT_DEBUG_PORT)")
def targets(host: Optional[str], port: Optional[int]):
    """List the debuggable targets of a running browser."""
    config = get_config()
    host = host or config.GREENLIGHT_DEBUG_HOST
    port = port or config.GREENLIGHT_DEBUG_PORT

    try:
        found = asyncio.run(list_targets(host, port))
    except GreenlightError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"Targets at {host}:{port}")
    table.add_column("Type", style="cyan")
    table.add_column("Title")
    table.add_column("URL", style="green")
    table.add_column("Attachable")
    for target in found:
        table.add_row(target.type, target.title, target.url, "yes" if target.is_attachable_page else "no")
    console.print(table)


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
