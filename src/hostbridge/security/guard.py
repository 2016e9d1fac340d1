"""
Path allow-listing for every path-taking operation.

The guard is purely lexical: it normalizes the requested path without
touching the filesystem and matches it against the configured rules.
Symbolic links are not resolved, so a link inside an allowed area that
points elsewhere is followed by the operating system, not by the guard.
"""

import ntpath
import posixpath
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from hostbridge.exceptions import AccessDeniedError, MalformedRequestError

_DRIVE_PATH = re.compile(r"^([A-Za-z]):(?:[\\/]|$)")
_WSL_MOUNT = re.compile(r"^/mnt/([A-Za-z])(?:/|$)")

DEFAULT_ALWAYS_OPEN = ("/tmp", "/home")


def is_windows_path(path: str) -> bool:
    """True for drive-letter paths (``C:\\x``, ``C:/x``) and UNC shares."""
    return bool(_DRIVE_PATH.match(path)) or path.startswith("\\\\")


def normalize_path(path: str, base_directory: str = "/") -> str:
    """
    Normalize a path lexically.

    Resolves ``.`` and ``..`` segments and collapses separators. Windows
    style paths are normalized with Windows rules regardless of the host
    platform. Relative paths are anchored at ``base_directory``.

    Args:
        path: Path as supplied by the caller
        base_directory: Anchor for relative paths

    Returns:
        The normalized absolute path
    """
    if is_windows_path(path):
        return ntpath.normpath(path)

    if not posixpath.isabs(path):
        if is_windows_path(base_directory):
            return ntpath.normpath(ntpath.join(base_directory, path))
        path = posixpath.join(base_directory, path)

    normalized = posixpath.normpath(path)
    # POSIX keeps a leading "//"; fold it so prefix rules see one root
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def volume_of(normalized: str) -> Optional[str]:
    """Return the upper-case drive letter of a path, including WSL mounts."""
    match = _DRIVE_PATH.match(normalized) or _WSL_MOUNT.match(normalized)
    if match:
        return match.group(1).upper()
    return None


def is_within(path: str, prefix: str) -> bool:
    """Component-aware prefix test on two normalized paths."""
    windows = is_windows_path(path)
    if windows != is_windows_path(prefix):
        return False

    if windows:
        path, prefix = ntpath.normcase(path), ntpath.normcase(prefix)
        sep = "\\"
    else:
        sep = "/"

    if path == prefix:
        return True
    return path.startswith(prefix.rstrip(sep) + sep)


class AccessPolicy(BaseModel):
    """
    Immutable allow-list built once at startup.

    A path is permitted iff it falls under an always-open location, matches
    an explicit prefix, or lives on an allowed volume.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_directory: str = Field(
        default="/",
        description="Anchor used to absolutize relative paths",
    )
    allowed_drives: tuple[str, ...] = Field(
        default=("C", "F"),
        description="Permitted volume identifiers (drive letters)",
    )
    allowed_paths: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Permitted path prefixes",
    )
    always_open: tuple[str, ...] = Field(
        default=DEFAULT_ALWAYS_OPEN,
        description="Scratch and home locations that are always permitted",
    )

    @field_validator("allowed_drives", mode="before")
    @classmethod
    def normalize_drives(cls, v):
        """Upper-case drive letters and drop trailing colons."""
        if isinstance(v, str):
            v = v.split(",")
        drives = []
        for drive in v:
            drive = str(drive).strip().rstrip(":\\/").upper()
            if drive and drive not in drives:
                drives.append(drive)
        return tuple(drives)

    @field_validator("allowed_paths", "always_open", mode="before")
    @classmethod
    def normalize_prefixes(cls, v, info: ValidationInfo):
        """Normalize prefixes the same way requested paths are normalized."""
        if isinstance(v, str):
            v = v.split(",")
        base = info.data.get("base_directory", "/")
        prefixes = []
        for prefix in v:
            prefix = str(prefix).strip()
            if not prefix:
                continue
            normalized = normalize_path(prefix, base)
            if normalized not in prefixes:
                prefixes.append(normalized)
        return tuple(prefixes)


class AccessGuard:
    """
    Validates requested paths against an AccessPolicy.

    Usage:
        guard = AccessGuard(AccessPolicy(allowed_paths=("/srv/data",)))
        canonical = guard.validate("/srv/data/../data/report.csv")
    """

    def __init__(self, policy: AccessPolicy):
        self.policy = policy

    def validate(self, path: str) -> str:
        """
        Return the canonical form of ``path`` or raise AccessDeniedError.

        Raises:
            MalformedRequestError: If the path is empty
            AccessDeniedError: If no rule permits the path
        """
        if not isinstance(path, str) or not path.strip():
            raise MalformedRequestError("Path cannot be empty")

        normalized = normalize_path(path.strip(), self.policy.base_directory)
        if self.match_rule(normalized) is None:
            raise AccessDeniedError(
                normalized,
                drives=self.policy.allowed_drives,
                prefixes=self.policy.allowed_paths,
                always_open=self.policy.always_open,
            )
        return normalized

    def match_rule(self, normalized: str) -> Optional[str]:
        """Name the first rule permitting an already normalized path."""
        for prefix in self.policy.always_open:
            if is_within(normalized, prefix):
                return f"always_open[{prefix}]"

        for prefix in self.policy.allowed_paths:
            if is_within(normalized, prefix):
                return f"allowed_paths[{prefix}]"

        drive = volume_of(normalized)
        if drive is not None and drive in self.policy.allowed_drives:
            return f"allowed_drives[{drive}]"

        return None

    def check(self, path: str) -> tuple[bool, str]:
        """
        Check a path without raising.

        Returns:
            Tuple of (is_allowed, reason)
        """
        try:
            normalized = self.validate(path)
        except (AccessDeniedError, MalformedRequestError) as e:
            return False, str(e)
        return True, f"Path allowed by {self.match_rule(normalized)}"
