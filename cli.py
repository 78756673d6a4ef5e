"""
CLI entry point for throttlify.

Fires a batch of throttled GET requests at a URL and reports when each one
was admitted and how the endpoint answered.
"""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from config import (
    AppConfig,
    ConfigurationError,
    PROFILES,
    ThrottleOptions,
    apply_env_overrides,
    get_profile,
    load_config,
)
from http_client import FetchResult, ThrottledHTTPClient
from logging_utils import setup_logging
from progress_display import ThrottleProgress

logger: logging.Logger | None = None
console = Console()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog='throttlify',
        description='Send throttled requests to an endpoint and report admission timing',
    )
    parser.add_argument('url', help='Endpoint to GET')
    parser.add_argument(
        '-n', '--count',
        type=int,
        default=10,
        help='Number of requests to send (default: 10)',
    )
    parser.add_argument(
        '--concurrent',
        type=int,
        default=None,
        help='Max requests in flight at once (default: unbounded)',
    )
    parser.add_argument(
        '--duration',
        type=float,
        default=None,
        help='Rate window length in milliseconds',
    )
    parser.add_argument(
        '--max',
        type=int,
        default=None,
        help='Max requests admitted per window',
    )
    parser.add_argument(
        '--profile',
        choices=sorted(PROFILES),
        default=None,
        help='Start from a named limit profile instead of the config file',
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Path to config.toml (default: ./config.toml if present)',
    )
    parser.add_argument(
        '--headless',
        action='store_true',
        help='Disable the live progress display',
    )
    return parser.parse_args(argv)


def _load_app_config(config_path: Path | None) -> AppConfig:
    """An explicit --config must exist; the default config.toml is optional."""
    if config_path is not None:
        return load_config(config_path)
    default = Path('config.toml')
    if default.exists():
        return load_config(default)
    return AppConfig()


def build_options(
    args: argparse.Namespace,
    config: AppConfig,
    environ: Mapping[str, str] | None = None,
) -> ThrottleOptions:
    """Resolve throttle options: config (or --profile) < environment < flags."""
    options = get_profile(args.profile) if args.profile else config.throttle
    options = apply_env_overrides(options, environ)
    overrides = {
        name: getattr(args, name)
        for name in ('concurrent', 'duration', 'max')
        if getattr(args, name) is not None
    }
    return replace(options, **overrides).validate()


def render_results(result: FetchResult) -> Table:
    """Build a table with one row per request."""
    table = Table(title="Requests", show_lines=False)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Admitted (s)", justify="right")
    table.add_column("Finished (s)", justify="right")
    table.add_column("Status", justify="center")
    table.add_column("Detail", overflow="ellipsis", max_width=60)

    for record in result.records:
        if record.error:
            status, detail = "[red]ERR[/]", record.error
        else:
            style = "green" if record.ok else "yellow"
            status, detail = f"[{style}]{record.status}[/]", str(record.body)
        table.add_row(
            str(record.index + 1),
            f"{record.started:.3f}",
            f"{record.finished:.3f}",
            status,
            detail,
        )
    return table


async def run(args: argparse.Namespace) -> FetchResult:
    """Load config, resolve limits, send the batch, print a report."""
    global logger

    try:
        config = _load_app_config(args.config)
        load_dotenv(dotenv_path=config.resolve_path('.env'))
        options = build_options(args, config, os.environ)
    except ConfigurationError as e:
        console.print(f"\n[red]Configuration error:[/] {e}")
        sys.exit(1)

    logger = setup_logging(
        log_name='throttlify',
        verbose_console_logging=config.logging.verbose_console_logging,
    )
    logger.info(f"Limits: concurrent={options.concurrent}, max={options.max}, duration={options.duration}ms")

    async with ThrottledHTTPClient(
        options,
        timeout=config.http.timeout,
        user_agent=config.http.user_agent,
    ) as client:
        progress = ThrottleProgress(client.throttler, console=console, disable=args.headless)
        with progress:
            result = await client.fetch_many(args.url, args.count, progress=progress)

    console.print(render_results(result))
    ok = sum(1 for r in result.records if r.ok)
    console.print(f"\n[bold]{ok}/{len(result.records)}[/] succeeded, "
                  f"{result.error_count} transport errors, {result.elapsed_seconds:.1f}s total")
    return result


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = parse_args(argv)
    asyncio.run(run(args))


if __name__ == '__main__':
    main()
