"""
Result models for file operations.
"""

import os
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

STATS_ERROR = "Could not read stats"


def iso_timestamp(epoch_seconds: float) -> str:
    """Format an epoch timestamp as ISO 8601 in UTC."""
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()


def creation_time(stat: os.stat_result) -> float:
    """Birth time where the platform records one, otherwise ctime."""
    return getattr(stat, "st_birthtime", None) or stat.st_ctime


class OperationResult(BaseModel):
    """Base class for successful file operation results."""

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, **self.model_dump(mode="json")}


class EntryInfo(BaseModel):
    """
    One directory listing or search entry.

    When metadata could not be read, ``error`` is set and the size and
    timestamps are left empty.
    """

    name: str
    path: str
    type: Optional[str] = None
    size: Optional[int] = None
    modified: Optional[str] = None
    created: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class DirectoryListing(OperationResult):
    path: str
    items: list[EntryInfo] = Field(default_factory=list)
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "path": self.path,
            "items": [item.to_dict() for item in self.items],
            "count": self.count,
        }


class FileContent(OperationResult):
    path: str
    content: str
    size: int
    encoding: str


class WriteResult(OperationResult):
    path: str
    size: int
    backup_created: bool
    backup_path: Optional[str] = None


class SearchResults(OperationResult):
    pattern: str
    directory: str
    results: list[EntryInfo] = Field(default_factory=list)
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "pattern": self.pattern,
            "directory": self.directory,
            "results": [entry.to_dict() for entry in self.results],
            "count": self.count,
        }


class FileInfo(OperationResult):
    path: str
    name: str
    type: str
    size: int
    created: str
    modified: str
    accessed: str


class DirectoryCreated(OperationResult):
    path: str
    created: bool = Field(description="False when the directory already existed")


class DeleteResult(OperationResult):
    path: str
    backup_path: Optional[str] = None
