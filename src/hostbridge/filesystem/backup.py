"""
Backup-before-mutate protection for files about to be overwritten or removed.
"""

import logging
import os
import shutil
import time
from enum import Enum
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class BackupTag(str, Enum):
    """Operation tag embedded in the backup file name."""

    WRITE = "backup"
    DELETE = "deleted"


def _fsync_file(path: Path) -> None:
    with open(path, "rb+") as f:
        os.fsync(f.fileno())


class BackupVault:
    """
    Copies an existing file to a timestamped sibling before it is mutated.

    Backups are named ``<path>.<tag>_<milliseconds>`` and are never removed
    by hostbridge. The copy is flushed to disk before ``protect`` returns.

    Usage:
        vault = BackupVault()
        backup = vault.protect(Path("/srv/app/config.ini"), BackupTag.WRITE)
        if backup:
            print(f"Saved previous content to {backup}")
    """

    def backup_path_for(self, path: Path, tag: BackupTag) -> Path:
        """Pick a fresh backup name; the timestamp is bumped on collision."""
        stamp = int(time.time() * 1000)
        while True:
            candidate = path.with_name(f"{path.name}.{tag.value}_{stamp}")
            if not candidate.exists():
                return candidate
            stamp += 1

    def protect(
        self,
        path: Union[str, Path],
        tag: BackupTag = BackupTag.WRITE,
    ) -> Optional[Path]:
        """
        Back up ``path`` if it currently exists as a regular file.

        Args:
            path: File about to be overwritten or removed
            tag: Which kind of mutation is about to happen

        Returns:
            Path of the backup, or None when there was nothing to protect

        Raises:
            OSError: If the copy could not be completed. The caller must not
                proceed with the mutation in that case.
        """
        path = Path(path)
        if not path.is_file():
            return None

        backup = self.backup_path_for(path, tag)
        shutil.copy2(path, backup)
        _fsync_file(backup)

        logger.info(f"Backed up {path} to {backup}")
        return backup
