"""
Bulk HTTP fetcher.
Downloads many URLs into a staging directory with a bounded number of
concurrent transfers. A staged file only appears once its download is
complete; failures are reported per request and never cancel siblings.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import requests

from .config import CHUNK_SIZE, DOWNLOAD_TIMEOUT, MAX_RETRIES
from .exceptions import FetchFailureError
from .utils.retries import with_retry


# Configure logger
logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class FetchRequest:
    """One URL and the name it should be staged under."""

    url: str
    filename: str


@dataclass
class FetchResult:
    """Completion status of a single fetch."""

    request: FetchRequest
    path: Path
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BulkFetcher:
    """
    Thread-pooled downloader writing into a staging directory.

    requests does not promise that a Session is safe to share between
    threads, so each worker thread lazily opens its own unless a session
    is injected.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DOWNLOAD_TIMEOUT,
        chunk_size: int = CHUNK_SIZE,
        max_retries: int = MAX_RETRIES,
    ):
        self.session = session
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.max_retries = max_retries
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def _get_session(self) -> requests.Session:
        if self.session is not None:
            return self.session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def close(self) -> None:
        """Close the per-thread sessions opened so far."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
            self._local = threading.local()
        for session in sessions:
            session.close()

    def fetch_all(
        self,
        fetch_requests: List[FetchRequest],
        concurrency: int,
        staging_dir: Path,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[FetchResult]:
        """
        Download every request into ``staging_dir``.

        Requests are submitted in order; completion order is arbitrary.

        Args:
            fetch_requests: URLs and staging filenames
            concurrency: Maximum number of transfers in flight
            staging_dir: Existing directory that receives the files
            progress_callback: Called with (finished, total) after each fetch

        Returns:
            One FetchResult per request, in request order
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        total = len(fetch_requests)
        finished = 0
        lock = threading.Lock()

        def run(fetch_request: FetchRequest) -> FetchResult:
            nonlocal finished
            target = staging_dir / fetch_request.filename
            try:
                self._fetch_with_retry(fetch_request.url, target)
                result = FetchResult(fetch_request, target)
            except (requests.RequestException, FetchFailureError, OSError) as e:
                logger.error(f"Failed to fetch {fetch_request.filename}: {e}")
                result = FetchResult(fetch_request, target, error=e)

            with lock:
                finished += 1
                done = finished
            if progress_callback:
                progress_callback(done, total)
            return result

        try:
            with ThreadPoolExecutor(max_workers=concurrency) as executor:
                futures = [executor.submit(run, r) for r in fetch_requests]
                return [future.result() for future in futures]
        finally:
            # Worker threads are gone, so are their sessions
            self.close()

    def _fetch_with_retry(self, url: str, target: Path) -> int:
        retrying = with_retry(
            max_retries=self.max_retries,
            exceptions=(requests.RequestException, FetchFailureError),
        )(self.fetch_one)
        return retrying(url, target)

    def fetch_one(self, url: str, target: Path) -> int:
        """
        Stream one URL to ``target``.

        Bytes are written to a ``.part`` sibling that is renamed into
        place only after the transfer finished with the expected length.

        Returns:
            Number of bytes written

        Raises:
            FetchFailureError: If the server returns an error status or
                the body is shorter or longer than its Content-Length
        """
        partial = target.with_name(target.name + ".part")
        written = 0

        try:
            with self._get_session().get(url, stream=True, timeout=self.timeout) as response:
                if not response.ok:
                    raise FetchFailureError(f"HTTP {response.status_code} for {target.name}")

                expected = response.headers.get("Content-Length")
                if response.headers.get("Content-Encoding"):
                    # Length refers to the encoded body, not what we write
                    expected = None
                with open(partial, "wb") as f:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if chunk:
                            f.write(chunk)
                            written += len(chunk)

            if expected is not None and expected.isdigit() and int(expected) != written:
                raise FetchFailureError(
                    f"Size mismatch for {target.name}: got {written} of {expected} bytes"
                )

            partial.replace(target)
        except Exception:
            if partial.exists():
                partial.unlink()
            raise

        logger.debug(f"Fetched {target.name} ({written} bytes)")
        return written
