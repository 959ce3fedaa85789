"""
piecelink - P/ECE USB Extraction Command-Line Interface
========================================================

This module implements the command-line interface for reading data off
a P/ECE handheld over USB. The device must be switched on and connected;
no mode needs to be selected on the device itself.

Usage Examples
--------------
List files stored in flash:
    $ piecelink ls

Download one file to the current directory:
    $ piecelink download SAVE.DAT

Download every file into a directory:
    $ piecelink backup -o backup/

Show the LCD as text (and optionally save a PNG):
    $ piecelink screenshot
    $ piecelink screenshot --png screen.png

Dump the 2 MiB flash to dump.img:
    $ piecelink dump

Environment
-----------
PIECE_TIMEOUT, PIECE_OUTPUT_DIR and PIECE_DUMP_FILE provide defaults;
command-line options take precedence.

Exit Codes
----------
0 - Success
1 - Device, transfer or filesystem error
2 - Invalid arguments or local file error
3 - Internal error
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import click

from piece_sdk import __version__
from piece_sdk.cli.errors import handle_cli_exception
from piece_sdk.comms import DeviceSession
from piece_sdk.config import LinkConfig
from piece_sdk.operations import (
    DUMP_SIZE,
    backup_files,
    capture_screenshot,
    device_info,
    download_file,
    dump_flash,
    list_files,
)
from piece_sdk.pffs import DirectoryEntry

# Configure logging
logger = logging.getLogger(__name__)


# =============================================================================
# CLI Context and Utilities
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Stores the link configuration and verbosity.
    """

    def __init__(self) -> None:
        self.config: LinkConfig = LinkConfig.from_env()
        self.verbose: bool = False

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.INFO
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(message)s" if self.verbose else "%(message)s",
        )

    @contextmanager
    def session(self) -> Iterator[DeviceSession]:
        """Open the device for one command and close it afterwards."""
        session = DeviceSession.open(self.config)
        try:
            yield session
        finally:
            session.close()


pass_context = click.make_pass_decorator(Context, ensure=True)


def progress_bar(current: int, total: int) -> None:
    """Simple text progress bar for long reads."""
    if total == 0:
        return
    percent = current * 100 // total
    filled = percent // 2
    bar = "=" * filled + "-" * (50 - filled)
    click.echo(f"\r[{bar}] {percent:3d}% ({current}/{total} bytes)", nl=False, err=True)
    if current >= total:
        click.echo(err=True)  # Newline at end


def output_directory(ctx: Context, output: Optional[str]) -> Path:
    """Resolve and create the destination directory."""
    directory = Path(output) if output else ctx.config.output_dir
    directory.mkdir(parents=True, exist_ok=True)
    return directory


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output (logs every USB transfer)",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0.001),
    default=None,
    help="USB transfer timeout in seconds (default: 1.0)",
)
@click.version_option(version=__version__, prog_name="piecelink")
@pass_context
def main(ctx: Context, verbose: bool, timeout: Optional[float]) -> None:
    """
    Extract files, flash and screenshots from a P/ECE over USB.

    Connect the P/ECE with its USB cable and switch it on before
    running any command.
    """
    ctx.verbose = verbose
    if timeout is not None:
        ctx.config.timeout = timeout
    ctx.setup_logging()


# =============================================================================
# ls Command
# =============================================================================

@main.command("ls")
@pass_context
def ls(ctx: Context) -> None:
    """
    List all files on the device.

    Prints one line per file: name, a tab, and the size in bytes, in
    directory order.
    """
    try:
        with ctx.session() as session:
            for entry in list_files(session):
                click.echo(f"{entry.name}\t{entry.length}")
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)


# =============================================================================
# download Command
# =============================================================================

@main.command()
@click.argument("file")
@click.option(
    "-o", "--output",
    type=click.Path(file_okay=False),
    default=None,
    help="Destination directory (default: current directory)",
)
@pass_context
def download(ctx: Context, file: str, output: Optional[str]) -> None:
    """
    Download a single file.

    FILE is the exact, case-sensitive name shown by 'piecelink ls'.
    The file is saved under the same name.

    Example:
        piecelink download SAVE.DAT
        piecelink download SAVE.DAT -o saves/
    """
    try:
        directory = output_directory(ctx, output)
        with ctx.session() as session:
            path = download_file(session, file, directory, progress=progress_bar)
        click.echo(f"Saved to: {path}")
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose, error_type="Download")


# =============================================================================
# backup Command
# =============================================================================

@main.command()
@click.option(
    "-o", "--output",
    type=click.Path(file_okay=False),
    default=None,
    help="Destination directory (default: current directory)",
)
@pass_context
def backup(ctx: Context, output: Optional[str]) -> None:
    """
    Download all files.

    Files are downloaded one at a time in directory order. The first
    error stops the backup.
    """
    def announce(entry: DirectoryEntry) -> None:
        click.echo(entry.name)

    try:
        directory = output_directory(ctx, output)
        with ctx.session() as session:
            paths = backup_files(session, directory, on_file=announce)
        click.echo(f"{len(paths)} file(s) saved to {directory}")
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose, error_type="Backup")


# =============================================================================
# screenshot Command
# =============================================================================

@main.command()
@click.option(
    "--png",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also save the screen as a PNG image",
)
@click.option(
    "--scale",
    type=click.IntRange(min=1, max=16),
    default=None,
    help="Pixel scale for --png (default: 3)",
)
@pass_context
def screenshot(ctx: Context, png: Optional[str], scale: Optional[int]) -> None:
    """
    Display a screenshot in the terminal.

    The running program is paused while the screen is read and resumed
    afterwards.
    """
    try:
        with ctx.session() as session:
            shot = capture_screenshot(session)
        click.echo(shot.to_text())

        if png:
            Path(png).write_bytes(shot.render_image(scale or ctx.config.png_scale))
            click.echo(f"Saved to: {png}")
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose, error_type="Screenshot")


# =============================================================================
# dump Command
# =============================================================================

@main.command()
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False),
    default=None,
    help="Output file (default: dump.img)",
)
@click.option(
    "--legacy-length",
    is_flag=True,
    help="Read 10 bytes less, matching images made by the older dump tool",
)
@pass_context
def dump(ctx: Context, output: Optional[str], legacy_length: bool) -> None:
    """
    Dump the 2 MiB flash to a file.

    The region starts at 0xC00000. At 32 bytes per request this takes
    a while; progress is shown on stderr.
    """
    path = Path(output) if output else ctx.config.dump_path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        click.echo(f"Dumping {DUMP_SIZE} bytes of flash to {path}...")
        with ctx.session() as session:
            dump_flash(session, path, legacy_length=legacy_length, progress=progress_bar)
        click.echo(f"Saved to: {path}")
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose, error_type="Dump")


# =============================================================================
# info Command
# =============================================================================

@main.command()
@pass_context
def info(ctx: Context) -> None:
    """
    Show the device identification block.
    """
    try:
        with ctx.session() as session:
            version = device_info(session)
        click.echo(f"PFFS top: {version.pffs_top:#010x}")
        click.echo(f"Identify: {version.raw.hex(' ')}")
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
