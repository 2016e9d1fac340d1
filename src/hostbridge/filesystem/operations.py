"""
Guarded file operations.

Every path argument passes through the AccessGuard before the filesystem is
touched. Writes and deletes go through the BackupVault first unless the
caller opts out.
"""

import base64
import logging
import os
import re
from pathlib import Path
from typing import Optional

from hostbridge.exceptions import AccessDeniedError, MalformedRequestError, NotFoundError
from hostbridge.filesystem.backup import BackupTag, BackupVault
from hostbridge.filesystem.models import (
    STATS_ERROR,
    DeleteResult,
    DirectoryCreated,
    DirectoryListing,
    EntryInfo,
    FileContent,
    FileInfo,
    SearchResults,
    WriteResult,
    creation_time,
    iso_timestamp,
)
from hostbridge.security.guard import AccessGuard, is_windows_path

logger = logging.getLogger(__name__)

BASE64 = "base64"


def _entry_type(path: Path) -> str:
    return "directory" if path.is_dir() else "file"


def _describe(path: Path) -> EntryInfo:
    """Stat one entry, degrading to an error marker on failure."""
    try:
        stat = path.stat()
        return EntryInfo(
            name=path.name,
            path=str(path),
            type=_entry_type(path),
            size=stat.st_size,
            modified=iso_timestamp(stat.st_mtime),
            created=iso_timestamp(creation_time(stat)),
        )
    except OSError as e:
        logger.debug(f"Could not stat {path}: {e}")
        return EntryInfo(
            name=path.name,
            path=str(path),
            type=_entry_type(path),
            error=STATS_ERROR,
        )


class FileOperations:
    """
    File tools composed of an AccessGuard and a BackupVault.

    Usage:
        ops = FileOperations(AccessGuard(policy))
        ops.write_file("/tmp/notes.txt", "hello")
        print(ops.read_file("/tmp/notes.txt").content)
    """

    def __init__(self, guard: AccessGuard, vault: Optional[BackupVault] = None):
        self.guard = guard
        self.vault = vault or BackupVault()

    def _validate(self, path: str) -> Path:
        try:
            return Path(self.guard.validate(path))
        except AccessDeniedError as e:
            logger.warning(str(e))
            raise

    def list_directory(self, path: str) -> DirectoryListing:
        """
        List the entries of a directory.

        Raises:
            AccessDeniedError: If the path is not allowed
            NotFoundError: If the directory does not exist
        """
        directory = self._validate(path)
        logger.info(f"Listing directory: {directory}")

        if not directory.exists():
            raise NotFoundError(str(directory), kind="Directory")

        items = [_describe(entry) for entry in sorted(directory.iterdir())]
        logger.info(f"Found {len(items)} items")
        return DirectoryListing(path=str(directory), items=items, count=len(items))

    def read_file(self, path: str, encoding: str = "utf-8") -> FileContent:
        """
        Read a file as text, or as base64 when ``encoding`` is "base64".

        Raises:
            AccessDeniedError: If the path is not allowed
            NotFoundError: If the file does not exist
            MalformedRequestError: If the encoding is unknown or does not
                match the file content
        """
        file_path = self._validate(path)
        logger.info(f"Reading file: {file_path}")

        if not file_path.exists():
            raise NotFoundError(str(file_path))

        data = file_path.read_bytes()
        if encoding.lower() == BASE64:
            content = base64.b64encode(data).decode("ascii")
        else:
            try:
                content = data.decode(encoding)
            except LookupError:
                raise MalformedRequestError(f"Unknown encoding: {encoding}", path=str(file_path))
            except UnicodeDecodeError as e:
                raise MalformedRequestError(
                    f"File is not valid {encoding} ({e.reason} at byte {e.start}); "
                    f"use encoding '{BASE64}' for binary content",
                    path=str(file_path),
                )

        logger.info(f"Read {len(data)} bytes")
        return FileContent(
            path=str(file_path),
            content=content,
            size=len(data),
            encoding=encoding,
        )

    def write_file(
        self,
        path: str,
        content: str,
        create_backup: bool = True,
        create_parents: bool = True,
        encoding: str = "utf-8",
    ) -> WriteResult:
        """
        Write text to a file, backing up any previous content first.

        Args:
            path: Target file
            content: Text to write, verbatim (no newline translation)
            create_backup: Copy an existing file aside before overwriting it
            create_parents: Create missing parent directories
            encoding: Text encoding

        Returns:
            WriteResult reporting the size and whether a backup was made

        Raises:
            AccessDeniedError: If the path is not allowed
            MalformedRequestError: If the encoding is unknown
        """
        file_path = self._validate(path)
        logger.info(f"Writing file: {file_path}")

        try:
            data = content.encode(encoding)
        except LookupError:
            raise MalformedRequestError(f"Unknown encoding: {encoding}", path=str(file_path))

        if create_parents and not file_path.parent.exists():
            file_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Created parent directories for {file_path}")

        backup = self.vault.protect(file_path, BackupTag.WRITE) if create_backup else None

        file_path.write_bytes(data)
        size = file_path.stat().st_size
        logger.info(f"Wrote {size} bytes")

        return WriteResult(
            path=str(file_path),
            size=size,
            backup_created=backup is not None,
            backup_path=str(backup) if backup else None,
        )

    def search_files(self, directory: str, pattern: str) -> SearchResults:
        """
        Expand a glob pattern below a directory.

        The pattern is relative to ``directory``; ``**`` matches recursively.

        Raises:
            AccessDeniedError: If the directory is not allowed
            MalformedRequestError: If the pattern is empty, absolute or
                climbs out of the directory
            NotFoundError: If the directory does not exist
        """
        root = self._validate(directory)
        self._check_pattern(pattern)
        logger.info(f"Searching in {root} for pattern: {pattern}")

        if not root.is_dir():
            raise NotFoundError(str(root), kind="Directory")

        results = [_describe(match) for match in sorted(root.glob(pattern))]
        logger.info(f"Found {len(results)} matches")
        return SearchResults(
            pattern=pattern,
            directory=str(root),
            results=results,
            count=len(results),
        )

    @staticmethod
    def _check_pattern(pattern: str) -> None:
        if not pattern or not pattern.strip():
            raise MalformedRequestError("Search pattern cannot be empty")
        if pattern.startswith(("/", "\\")) or is_windows_path(pattern):
            raise MalformedRequestError(f"Search pattern must be relative: {pattern}")
        if ".." in re.split(r"[\\/]", pattern):
            raise MalformedRequestError(
                f"Search pattern must not contain '..' segments: {pattern}"
            )

    def get_file_info(self, path: str) -> FileInfo:
        """
        Report type, size and timestamps of a file or directory.

        Raises:
            AccessDeniedError: If the path is not allowed
            NotFoundError: If nothing exists at the path
        """
        target = self._validate(path)
        logger.info(f"Getting info for: {target}")

        try:
            stat = target.stat()
        except FileNotFoundError:
            raise NotFoundError(str(target), kind="Path")

        return FileInfo(
            path=str(target),
            name=target.name,
            type=_entry_type(target),
            size=stat.st_size,
            created=iso_timestamp(creation_time(stat)),
            modified=iso_timestamp(stat.st_mtime),
            accessed=iso_timestamp(stat.st_atime),
        )

    def create_directory(self, path: str) -> DirectoryCreated:
        """Create a directory and any missing parents."""
        directory = self._validate(path)
        logger.info(f"Creating directory: {directory}")

        existed = directory.is_dir()
        directory.mkdir(parents=True, exist_ok=True)

        if not existed:
            logger.info("Directory created")
        return DirectoryCreated(path=str(directory), created=not existed)

    def delete_file(self, path: str, create_backup: bool = True) -> DeleteResult:
        """
        Delete a file, copying it aside first unless ``create_backup`` is off.

        Raises:
            AccessDeniedError: If the path is not allowed
            NotFoundError: If the file does not exist
            MalformedRequestError: If the path is a directory
        """
        file_path = self._validate(path)
        logger.info(f"Deleting file: {file_path}")

        if not file_path.exists() and not file_path.is_symlink():
            raise NotFoundError(str(file_path))
        if file_path.is_dir():
            raise MalformedRequestError(f"Not a file: {file_path}", path=str(file_path))

        backup = self.vault.protect(file_path, BackupTag.DELETE) if create_backup else None

        os.unlink(file_path)
        logger.info("File deleted")

        return DeleteResult(
            path=str(file_path),
            backup_path=str(backup) if backup else None,
        )
