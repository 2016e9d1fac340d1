"""
Exceptions raised by the hostbridge core.

Only validation problems are raised. Process outcomes (non-zero exit,
timeout, spawn failure) are reported as ExecutionResult values instead.
"""

from typing import Any, Optional


class HostBridgeError(Exception):
    """Base exception for all hostbridge errors."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.path = path
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to a structured error payload."""
        payload: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "error_type": type(self).__name__,
        }
        if self.path is not None:
            payload["path"] = self.path
        payload.update(self.details)
        return payload


class AccessDeniedError(HostBridgeError):
    """Raised when a path is outside every configured allow-list rule."""

    def __init__(
        self,
        path: str,
        *,
        drives: tuple[str, ...] = (),
        prefixes: tuple[str, ...] = (),
        always_open: tuple[str, ...] = (),
    ):
        self.drives = drives
        self.prefixes = prefixes
        self.always_open = always_open
        message = (
            f"Access denied: Path {path} not in allowed list "
            f"(drives: {', '.join(drives) or 'none'}, "
            f"paths: {', '.join(prefixes) or 'none'})"
        )
        super().__init__(
            message,
            path=path,
            details={
                "allowed_drives": list(drives),
                "allowed_paths": list(prefixes),
                "always_open": list(always_open),
            },
        )


class NotFoundError(HostBridgeError):
    """Raised when a referenced file, directory or script does not exist."""

    def __init__(self, path: str, kind: str = "File"):
        self.kind = kind
        super().__init__(f"{kind} not found: {path}", path=path)


class UnsafeCodeError(HostBridgeError):
    """Raised when inline code matches a blocked pattern."""

    def __init__(self, reason: str, rule: Optional[str] = None):
        self.reason = reason
        self.rule = rule
        super().__init__(
            f"Security check failed: {reason}",
            details={"rule": rule},
        )


class MalformedRequestError(HostBridgeError):
    """Raised when required fields are missing or contradictory."""

    pass
