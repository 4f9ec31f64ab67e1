"""logsweep CLI - rotate a log directory tree.

Usage:
    logsweep DIRECTORY --archive DAYS --delete DAYS [--token TOKEN --chat-id ID] [--proxy-url URL]
    python -m logsweep DIRECTORY --archive 7 --delete 30 --format tar --dry-run

Exit codes:
    0 - success (including failed notification delivery)
    1 - configuration error (nothing was changed) or filesystem error (run aborted)
    2 - command-line usage error
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .archive_formats import ARCHIVE_FORMATS
from .config import RotationConfig, get_settings
from .exceptions import ConfigurationError, FileSystemError
from .logging_config import configure_logging
from .notifications import TelegramNotifier
from .rotation import RotationResult, run_rotation

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _print_summary(result: RotationResult) -> None:
    prefix = "[DRY-RUN] " if result.dry_run else ""
    click.echo(
        f"{prefix}Processed {result.directories} director(ies) in {result.elapsed:.2f}s: "
        f"{result.archived} file(s) archived into {result.bundles} bundle(s), "
        f"{result.deleted} file(s) deleted."
    )


@click.command(name="logsweep", context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="logsweep")
@click.argument("directory", type=click.Path(path_type=Path))
@click.option(
    "-a",
    "--archive",
    "archive_days",
    type=int,
    help="Archive files older than <archive> days old",
)
@click.option(
    "-d",
    "--delete",
    "delete_days",
    type=int,
    help="Delete files older than <delete> days old",
)
@click.option(
    "-p",
    "--proxy-url",
    help="Proxy in format <user>:<password>@<domain or ip>:<port (optional)>",
)
@click.option(
    "-t",
    "--token",
    "bot_token",
    help="Token of the bot which is used to send notifications",
)
@click.option("-c", "--chat-id", help="Id of the chat where to send a notification")
@click.option(
    "--format",
    "archive_format",
    type=click.Choice(sorted(ARCHIVE_FORMATS), case_sensitive=False),
    help="Bundle format (default: zip, or LOGSWEEP_ARCHIVE_FORMAT)",
)
@click.option("--dry-run", is_flag=True, help="Report what would change without touching files")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML file with default values for the options above",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Console log level (default: INFO, or LOGSWEEP_LOG_LEVEL)",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Also write a DEBUG log file into this directory",
)
@click.pass_context
def cli(
    ctx: click.Context,
    directory: Path,
    archive_days: Optional[int],
    delete_days: Optional[int],
    proxy_url: Optional[str],
    bot_token: Optional[str],
    chat_id: Optional[str],
    archive_format: Optional[str],
    dry_run: bool,
    config_file: Optional[Path],
    log_level: Optional[str],
    log_dir: Optional[Path],
) -> None:
    """Archive and delete old files under DIRECTORY, one bundle per day."""
    try:
        settings = get_settings()
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_FAILURE)

    try:
        configure_logging(log_level=log_level or settings.log_level, log_dir=log_dir or settings.log_dir)
    except (ValueError, OSError) as e:
        click.echo(f"Error: cannot configure logging: {e}", err=True)
        ctx.exit(EXIT_FAILURE)

    try:
        config = RotationConfig.build(
            settings=settings,
            config_file=config_file,
            directory=directory,
            archive_days=archive_days,
            delete_days=delete_days,
            archive_format=archive_format,
            dry_run=dry_run,
            proxy_url=proxy_url,
            bot_token=bot_token,
            chat_id=chat_id,
        )
        result = run_rotation(config)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_FAILURE)
    except FileSystemError as e:
        logger.error(f"[CLI] Run aborted: {e}")
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_FAILURE)

    _print_summary(result)

    notifier = TelegramNotifier(
        bot_token=config.bot_token,
        chat_id=config.chat_id,
        proxy_url=config.proxy_url,
        timeout=config.http_timeout_seconds,
        include_host_ip=config.include_host_ip,
    )
    reason = notifier.disabled_reason()
    if reason:
        click.echo(reason, err=True)
        return
    notifier.notify(result)


def main() -> None:
    """Console-script entry point."""
    cli(prog_name="logsweep")


if __name__ == "__main__":
    main()
