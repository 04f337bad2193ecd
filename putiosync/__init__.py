"""
put.io folder sync.

Mirrors a remote put.io folder onto a local directory, downloading only
files that are missing or whose size differs from the remote record.
"""
from .models import DownloadTask, EntryKind, RemoteEntry, SyncResult
from .putio_client import PutIoClient
from .sync import SyncEngine

__version__ = "0.1.0"

__all__ = [
    "DownloadTask",
    "EntryKind",
    "PutIoClient",
    "RemoteEntry",
    "SyncEngine",
    "SyncResult",
]
