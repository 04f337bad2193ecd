"""
Exceptions for sync operations.
"""


class SyncError(Exception):
    """Base exception for sync operations."""

    pass


class RemoteUnavailableError(SyncError):
    """A listing, metadata or path resolution call to put.io failed."""

    pass


class NotAFolderError(SyncError):
    """The requested sync target is a file, not a folder."""

    pass


class PathNotFoundError(SyncError):
    """No remote folder matches the requested path."""

    pass


class LocalIOError(SyncError):
    """Creating a local directory or publishing a downloaded file failed."""

    pass


class FetchFailureError(SyncError):
    """Failed to fetch a single file's bytes."""

    pass
