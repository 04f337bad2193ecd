"""
put.io API client.
Wraps the v2 REST endpoints the sync engine needs: folder listing (with
cursor pagination), single entry metadata, path lookup and download URLs.
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from .config import API_BASE_URL, PER_PAGE, REQUEST_TIMEOUT
from .exceptions import RemoteUnavailableError
from .models import FileListResponse, RemoteEntry


# Configure logger
logger = logging.getLogger(__name__)


class PutIoClient:
    """Client for the put.io files API."""

    def __init__(
        self,
        token: str,
        base_url: str = API_BASE_URL,
        session: Optional[requests.Session] = None,
        per_page: int = PER_PAGE,
        timeout: float = REQUEST_TIMEOUT,
    ):
        """
        Initialize the client.

        Args:
            token: put.io OAuth token
            base_url: API root, without trailing slash
            session: Optional preconfigured requests session
            per_page: Page size requested from the listing endpoint
            timeout: Per-request timeout in seconds
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.per_page = per_page
        self.timeout = timeout

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Dict[str, Any]:
        """
        Perform an authenticated API call and decode its JSON body.

        Raises:
            RemoteUnavailableError: On transport errors, non-2xx statuses
                or a body that is not JSON
        """
        url = f"{self.base_url}{endpoint}"
        params = dict(kwargs.pop("params", None) or {})
        params["oauth_token"] = self.token

        try:
            response = self.session.request(
                method, url, params=params, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise RemoteUnavailableError(f"API request to {endpoint} failed: {e}") from e

        if not response.ok:
            raise RemoteUnavailableError(
                f"API request to {endpoint} failed: {response.status_code}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteUnavailableError(f"Invalid JSON from {endpoint}: {e}") from e

    def list_files(self, parent_id: int) -> FileListResponse:
        """
        List every child of a folder.

        put.io truncates listings at ``per_page`` entries and returns a
        cursor; the continuation endpoint is followed until the cursor is
        exhausted so the result is always complete.

        Args:
            parent_id: Folder ID, 0 for the account root

        Returns:
            FileListResponse holding all children
        """
        data = self._request(
            "GET",
            "/files/list",
            params={"parent_id": parent_id, "per_page": self.per_page},
        )
        files: List[RemoteEntry] = [
            RemoteEntry.from_api_response(f) for f in data.get("files", [])
        ]
        parent = data.get("parent")
        total = data.get("total")
        cursor = data.get("cursor")

        while cursor:
            logger.debug(f"Fetching next page of folder {parent_id}")
            data = self._request(
                "POST",
                "/files/list/continue",
                data={"cursor": cursor, "per_page": self.per_page},
            )
            files.extend(RemoteEntry.from_api_response(f) for f in data.get("files", []))
            cursor = data.get("cursor")

        return FileListResponse(
            files=files,
            parent=RemoteEntry.from_api_response(parent) if parent else None,
            total=total if total is not None else len(files),
            cursor=None,
        )

    def get_file_info(self, file_id: int) -> RemoteEntry:
        """Fetch metadata for a single file or folder."""
        data = self._request("GET", f"/files/{file_id}")
        if "file" not in data:
            raise RemoteUnavailableError(f"No file object in response for ID {file_id}")
        return RemoteEntry.from_api_response(data["file"])

    def get_download_url(self, file_id: int) -> str:
        """Build a download URL that carries the token, valid for one fetch."""
        return f"{self.base_url}/files/{file_id}/download?oauth_token={self.token}"

    def find_folder_by_path(self, path: str) -> Optional[RemoteEntry]:
        """
        Resolve a slash-separated path to a folder.

        Each segment costs one listing call, starting from the root. An
        empty path (or "/") resolves to the root without any calls.

        Args:
            path: Path such as "/Movies/2024"

        Returns:
            The matching folder, or None if a segment is missing
        """
        parts = [part for part in path.split("/") if part]

        if not parts:
            return RemoteEntry.root()

        current_parent_id = 0
        current_folder: Optional[RemoteEntry] = None

        for part in parts:
            listing = self.list_files(current_parent_id)
            folder = next(
                (f for f in listing.files if f.is_folder and f.name == part), None
            )
            if folder is None:
                logger.debug(f"Path segment '{part}' not found under folder {current_parent_id}")
                return None
            current_parent_id = folder.id
            current_folder = folder

        return current_folder

    def close(self) -> None:
        """Release pooled HTTP connections."""
        self.session.close()
