"""
CLI entry point for put.io folder sync.
Resolves the remote folder argument, runs the sync engine and reports
the outcome through the exit code.
"""
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from .config import DOWNLOAD_CONCURRENCY, LOG_DIR, LOG_FILE, TOKEN_ENV_VAR, TOKEN_HELP_URL
from .exceptions import NotAFolderError, PathNotFoundError, SyncError
from .models import SyncResult
from .putio_client import PutIoClient
from .sync import SyncEngine
from .utils.progress import display_progress, format_bytes


logger = logging.getLogger(__name__)

ROOT_SENTINELS = {"/", "root", "0"}

# Exit codes
EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2


def setup_logging(log_level: str) -> None:
    """Configure logging with the specified level."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE),
            logging.StreamHandler(sys.stdout)
        ]
    )
    logger.debug(f"Logging initialized at level {log_level}")


def resolve_sync_target(client: PutIoClient, reference: str) -> Tuple[int, Optional[str]]:
    """
    Turn the remote folder argument into a folder id and name.

    Args:
        client: put.io API client
        reference: "/", "root", a numeric folder ID or a slash-separated path

    Returns:
        Tuple of (folder_id, folder_name); the name is None for the root

    Raises:
        NotAFolderError: If a numeric ID points at a file
        PathNotFoundError: If no folder matches the path
    """
    if reference in ROOT_SENTINELS:
        return 0, None

    try:
        folder_id = int(reference)
    except ValueError:
        folder_id = None

    if folder_id is not None:
        folder = client.get_file_info(folder_id)
        if not folder.is_folder:
            raise NotAFolderError(f"ID {folder_id} is not a folder")
        return folder.id, folder.name

    folder = client.find_folder_by_path(reference)
    if folder is None:
        raise PathNotFoundError(f"Folder '{reference}' not found in your put.io account")
    if folder.id == 0:
        return 0, None
    return folder.id, folder.name


def print_summary(result: SyncResult) -> None:
    """Print the per-run counters and the first few failures."""
    click.echo(
        f"\nDiscovered: {result.discovered}, skipped: {result.skipped}, "
        f"attempted: {result.attempted}, succeeded: {result.succeeded}, "
        f"failed: {result.failed}, downloaded: {format_bytes(result.bytes_downloaded)}"
    )

    failures = [r for r in result.results if not r.ok]
    for i, failure in enumerate(failures[:5], 1):
        click.echo(f"  {i}. {failure.task.local_path}: {failure.error}")
    if len(failures) > 5:
        click.echo(f"  ... and {len(failures) - 5} more")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("remote_folder")
@click.argument("local_destination", type=click.Path(file_okay=False, path_type=Path))
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=DOWNLOAD_CONCURRENCY,
    show_default=True,
    help="Number of files downloaded at the same time.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging verbosity.",
)
@click.option("--no-progress", is_flag=True, help="Do not draw a progress bar.")
def main(
    remote_folder: str,
    local_destination: Path,
    concurrency: int,
    log_level: str,
    no_progress: bool,
) -> None:
    """Mirror REMOTE_FOLDER of a put.io account into LOCAL_DESTINATION.

    REMOTE_FOLDER is "/" (or "root") for the whole account, a numeric
    folder ID, or a path such as /Movies. The OAuth token is read from
    the PUT_IO_TOKEN environment variable.
    """
    token = os.environ.get(TOKEN_ENV_VAR)
    if token is None:
        click.echo(f"Error: {TOKEN_ENV_VAR} environment variable not set", err=True)
        click.echo(f"Get your token from: {TOKEN_HELP_URL}", err=True)
        sys.exit(EXIT_FATAL)
    if not token.strip():
        click.echo(f"Error: {TOKEN_ENV_VAR} is empty", err=True)
        sys.exit(EXIT_FATAL)

    setup_logging(log_level)

    client = PutIoClient(token.strip())

    click.echo("Put.io Folder Sync")
    click.echo(f"Remote path: {remote_folder}")
    click.echo(f"Local destination: {local_destination}")
    click.echo()

    def show_progress(done: int, total: int) -> None:
        display_progress(done, total, message="Downloading")

    try:
        folder_id, folder_name = resolve_sync_target(client, remote_folder)

        engine = SyncEngine(
            client=client,
            base_local_path=local_destination,
            concurrency=concurrency,
            progress_callback=None if no_progress else show_progress,
        )
        result = engine.sync_folder(folder_id, folder_name)

    except SyncError as e:
        logger.exception("Sync failed")
        click.echo(f"Sync failed: {e}", err=True)
        sys.exit(EXIT_FATAL)

    except Exception as e:
        logger.exception("Unexpected error during sync")
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FATAL)

    finally:
        client.close()

    print_summary(result)

    if not result.ok:
        click.echo(f"Sync finished with {result.failed} failed download(s)", err=True)
        sys.exit(EXIT_PARTIAL)

    click.echo("Sync completed successfully!")


if __name__ == "__main__":
    main()
