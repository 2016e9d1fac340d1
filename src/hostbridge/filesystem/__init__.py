"""
Guarded filesystem access.

All operations validate their paths with the AccessGuard; writes and
deletes keep a backup of the previous content.
"""

from hostbridge.filesystem.backup import BackupTag, BackupVault
from hostbridge.filesystem.models import (
    DeleteResult,
    DirectoryCreated,
    DirectoryListing,
    EntryInfo,
    FileContent,
    FileInfo,
    SearchResults,
    WriteResult,
)
from hostbridge.filesystem.operations import FileOperations

__all__ = [
    "BackupTag",
    "BackupVault",
    "FileOperations",
    # Results
    "DeleteResult",
    "DirectoryCreated",
    "DirectoryListing",
    "EntryInfo",
    "FileContent",
    "FileInfo",
    "SearchResults",
    "WriteResult",
]
