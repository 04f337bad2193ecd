"""
Core synchronization engine for put.io folder sync.
Walks the remote folder tree, orders the discovered files, drops the ones
already present locally and downloads the rest through a staging area.
"""
import errno
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Set, Tuple

from .config import DOWNLOAD_CONCURRENCY, STAGING_ROOT
from .exceptions import FetchFailureError, LocalIOError
from .fetcher import BulkFetcher, FetchRequest, FetchResult
from .models import (
    DownloadTask,
    FolderTask,
    SyncResult,
    TaskResult,
    TaskStatus,
)
from .putio_client import PutIoClient


# Configure logger
logger = logging.getLogger(__name__)

# Names that cannot be mirrored as a single path component
_UNSAFE_NAMES = {"", ".", ".."}


def sort_download_queue(tasks: List[DownloadTask]) -> List[DownloadTask]:
    """
    Order tasks deepest first, then by entry id.

    The order depends only on the remote snapshot, never on traversal or
    listing order.
    """
    return sorted(tasks, key=lambda t: (-t.depth, t.entry.id))


def is_already_synced(task: DownloadTask) -> bool:
    """
    Check whether a task's target already holds the remote file.

    Only a byte-length match counts. An entry without a known size is
    never considered synced, however the local file looks.
    """
    remote_size = task.entry.size
    if remote_size is None:
        return False
    try:
        if not task.local_path.is_file():
            return False
        return task.local_path.stat().st_size == remote_size
    except OSError as e:
        logger.warning(f"Cannot inspect {task.local_path}: {e}")
        return False


def publish_file(source: Path, target: Path) -> None:
    """
    Atomically move a staged download onto its final path.

    Replaces whatever is at ``target``. When the staging area lives on
    another filesystem the file is first copied next to the target so the
    final step is still a rename.
    """
    try:
        os.replace(source, target)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise

    fd, tmp_name = tempfile.mkstemp(prefix=".putiosync-", suffix=".partial", dir=target.parent)
    os.close(fd)
    try:
        shutil.copyfile(source, tmp_name)
        # mkstemp creates 0600; keep the mode a plain rename would have kept
        shutil.copymode(source, tmp_name)
        os.replace(tmp_name, target)
    except Exception:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    source.unlink()


def _is_safe_name(name: str) -> bool:
    return name not in _UNSAFE_NAMES and "/" not in name and os.sep not in name


class SyncEngine:
    """Main synchronization engine."""

    def __init__(
        self,
        client: PutIoClient,
        base_local_path: Path,
        fetcher: Optional[BulkFetcher] = None,
        concurrency: int = DOWNLOAD_CONCURRENCY,
        staging_root: Path = STAGING_ROOT,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        """
        Initialize the sync engine.

        Args:
            client: put.io API client
            base_local_path: Local directory the remote folder is mirrored into
            fetcher: Bulk downloader, a default BulkFetcher when omitted
            concurrency: Number of downloads in flight
            staging_root: Parent of the per-run staging directories
            progress_callback: Called with (finished, total) during downloads
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.client = client
        self.base_local_path = Path(base_local_path).resolve()
        self.fetcher = fetcher or BulkFetcher()
        self.concurrency = concurrency
        self.staging_root = Path(staging_root)
        self.progress_callback = progress_callback
        self.visited_folders: Set[int] = set()

    def sync_folder(self, folder_id: int, folder_name: Optional[str] = None) -> SyncResult:
        """
        Mirror one remote folder into the local base path.

        Args:
            folder_id: Remote folder ID, 0 for the account root
            folder_name: Name of the folder; when given the mirror is
                created in a subdirectory of that name

        Returns:
            SyncResult summarizing the run

        Raises:
            RemoteUnavailableError: If any folder listing fails
            LocalIOError: If a local directory or the staging area
                cannot be created
        """
        result = SyncResult()

        download_queue = sort_download_queue(self.traverse(folder_id, folder_name))
        result.discovered = len(download_queue)

        if not download_queue:
            logger.info("No files to download")
            return result

        logger.info(f"Found {len(download_queue)} files to download")

        pending, skipped = self.apply_skip_policy(download_queue)
        result.skipped = len(skipped)

        if not pending:
            logger.info("All files are already up to date")
            return result

        task_results = self.download_files(pending)

        result.attempted = len(task_results)
        result.results = task_results
        for task_result in task_results:
            if task_result.ok:
                result.succeeded += 1
                result.bytes_downloaded += task_result.size
            else:
                result.failed += 1
                result.errors.append(task_result.error)

        logger.info(
            f"Download complete: {result.succeeded} succeeded, "
            f"{result.failed} failed, {result.skipped} skipped"
        )
        return result

    def traverse(self, folder_id: int, folder_name: Optional[str] = None) -> List[DownloadTask]:
        """
        Discover every file below a remote folder.

        Depth-first over an explicit stack so arbitrarily deep trees cannot
        exhaust the interpreter stack. Each folder id is expanded at most
        once per run, which also breaks cycles in the remote graph. Local
        directories are created as folders are expanded.

        Args:
            folder_id: Folder to start from
            folder_name: Optional name appended to the base path

        Returns:
            Unordered list of DownloadTasks
        """
        self.visited_folders = set()
        download_queue: List[DownloadTask] = []

        folder_stack = [FolderTask(folder_id, self.base_local_path, 0, folder_name)]

        while folder_stack:
            task = folder_stack.pop()

            if task.folder_id in self.visited_folders:
                logger.debug(f"Folder {task.folder_id} already visited, skipping")
                continue
            self.visited_folders.add(task.folder_id)

            if task.folder_name is not None:
                current_local_path = task.local_path / task.folder_name
            else:
                current_local_path = task.local_path

            try:
                current_local_path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise LocalIOError(f"Cannot create directory {current_local_path}: {e}") from e

            logger.info(f"Scanning folder: {current_local_path} (depth: {task.depth})")

            listing = self.client.list_files(task.folder_id)

            folders = []
            files = []
            for entry in listing.files:
                if not _is_safe_name(entry.name):
                    logger.warning(f"Ignoring entry {entry.id} with unusable name {entry.name!r}")
                    continue
                if entry.is_folder:
                    folders.append(entry)
                else:
                    files.append(entry)

            for entry in files:
                download_queue.append(
                    DownloadTask(entry, current_local_path / entry.name, task.depth)
                )

            for folder in folders:
                folder_stack.append(
                    FolderTask(folder.id, current_local_path, task.depth + 1, folder.name)
                )

        return download_queue

    def apply_skip_policy(
        self, tasks: List[DownloadTask]
    ) -> Tuple[List[DownloadTask], List[DownloadTask]]:
        """
        Split tasks into those still to download and those already synced.

        Order is preserved in both lists.
        """
        pending = []
        skipped = []
        for task in tasks:
            if is_already_synced(task):
                logger.info(f"Skipping existing file: {task.local_path}")
                skipped.append(task)
            else:
                pending.append(task)
        return pending, skipped

    def download_files(self, tasks: List[DownloadTask]) -> List[TaskResult]:
        """
        Download tasks through a private staging directory.

        Fetches run concurrently; each finished file is then moved onto its
        target. A failure affects only its own task.

        Args:
            tasks: Tasks in submission order

        Returns:
            One TaskResult per task, in the same order

        Raises:
            LocalIOError: If the staging directory cannot be created
        """
        staging_dir = self._create_staging_dir()
        try:
            fetch_requests = [
                FetchRequest(self.client.get_download_url(task.entry.id), task.staging_name)
                for task in tasks
            ]

            logger.info(f"Downloading {len(tasks)} files ({self.concurrency} concurrent)...")
            fetch_results = self.fetcher.fetch_all(
                fetch_requests, self.concurrency, staging_dir, self.progress_callback
            )

            return [
                self._publish(task, fetched)
                for task, fetched in zip(tasks, fetch_results)
            ]
        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)

    def _create_staging_dir(self) -> Path:
        try:
            self.staging_root.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix="run-", dir=self.staging_root))
        except OSError as e:
            raise LocalIOError(
                f"Cannot create staging directory under {self.staging_root}: {e}"
            ) from e

    def _publish(self, task: DownloadTask, fetched: FetchResult) -> TaskResult:
        """Move one staged file into place, or report why it cannot be."""
        staged = fetched.path

        try:
            staged_ok = fetched.ok and staged.is_file()
        except OSError:
            staged_ok = False

        if not staged_ok:
            error = FetchFailureError(f"Download of {task.entry.name} did not complete")
            error.__cause__ = fetched.error
            logger.warning(f"Not moving {task.local_path}: {fetched.error or 'nothing was staged'}")
            return TaskResult(task, TaskStatus.FETCH_FAILED, error)

        try:
            size = staged.stat().st_size
            task.local_path.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Moving {staged} to {task.local_path}")
            publish_file(staged, task.local_path)
        except OSError as e:
            logger.error(f"Failed to move {staged} to {task.local_path}: {e}")
            error = LocalIOError(f"Failed to move {task.entry.name} into place: {e}")
            error.__cause__ = e
            return TaskResult(task, TaskStatus.MOVE_FAILED, error)

        return TaskResult(task, TaskStatus.COMPLETED, size=size)
