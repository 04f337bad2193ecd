"""
Models for the put.io sync engine.
Contains the remote entry snapshot and the task/result structures passed
between traversal, skip policy and the download scheduler.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class EntryKind(Enum):
    """Normalized kind of a remote entry."""

    FOLDER = "FOLDER"
    FILE = "FILE"
    OTHER = "OTHER"

    @classmethod
    def from_remote(cls, file_type: Optional[str]) -> "EntryKind":
        """
        Map put.io's ``file_type`` onto the closed set of kinds.

        put.io reports media-specific kinds (VIDEO, AUDIO, IMAGE, ...);
        all of them are downloadable and collapse into OTHER.
        """
        if file_type == "FOLDER":
            return cls.FOLDER
        if file_type == "FILE":
            return cls.FILE
        return cls.OTHER


@dataclass(frozen=True)
class RemoteEntry:
    """Snapshot of a file or folder in the put.io account."""

    id: int
    name: str
    kind: EntryKind
    parent_id: int
    size: Optional[int] = None
    content_type: Optional[str] = None
    created_at: Optional[str] = None
    is_shared: Optional[bool] = None
    screenshot: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "RemoteEntry":
        """Create a RemoteEntry from a put.io ``file`` object."""
        size = data.get("size")
        return cls(
            id=int(data["id"]),
            name=data["name"],
            kind=EntryKind.from_remote(data.get("file_type")),
            parent_id=int(data.get("parent_id") or 0),
            size=int(size) if size is not None else None,
            content_type=data.get("content_type"),
            created_at=data.get("created_at"),
            is_shared=data.get("is_shared"),
            screenshot=data.get("screenshot"),
        )

    @classmethod
    def root(cls) -> "RemoteEntry":
        """The account root folder, which always has id 0."""
        return cls(id=0, name="Root", kind=EntryKind.FOLDER, parent_id=-1)

    @property
    def is_folder(self) -> bool:
        return self.kind is EntryKind.FOLDER

    @property
    def is_file(self) -> bool:
        return not self.is_folder


@dataclass
class FileListResponse:
    """All children of one folder, after pagination is exhausted."""

    files: List[RemoteEntry]
    parent: Optional[RemoteEntry] = None
    total: int = 0
    cursor: Optional[str] = None


@dataclass(frozen=True)
class FolderTask:
    """Pending folder expansion on the traversal work stack."""

    folder_id: int
    local_path: Path
    depth: int
    folder_name: Optional[str] = None


@dataclass(frozen=True)
class DownloadTask:
    """A remote file and where it should land locally."""

    entry: RemoteEntry
    local_path: Path
    depth: int

    @property
    def staging_name(self) -> str:
        # Keyed on the id alone: unique per entry and short enough to stay
        # within NAME_MAX whatever the remote name is.
        return f"{self.entry.id}.download"


class TaskStatus(Enum):
    COMPLETED = "completed"
    FETCH_FAILED = "fetch_failed"
    MOVE_FAILED = "move_failed"


@dataclass
class TaskResult:
    """Outcome of one download task."""

    task: DownloadTask
    status: TaskStatus
    error: Optional[Exception] = None
    size: int = 0

    @property
    def ok(self) -> bool:
        return self.status is TaskStatus.COMPLETED


@dataclass
class SyncResult:
    """Summary of a sync run."""

    discovered: int = 0
    skipped: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    bytes_downloaded: int = 0
    errors: List[Exception] = field(default_factory=list)
    results: List[TaskResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0
