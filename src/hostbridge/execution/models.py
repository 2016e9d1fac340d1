"""
Value types for process execution.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

MIN_TIMEOUT_MS = 1000
KILLED_EXIT_CODE = -1


class ExecutionStatus(str, Enum):
    """How an execution resolved. Exactly one applies per request."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    SPAWN_FAILED = "spawn_failed"


class TimeoutPolicy(BaseModel):
    """Default and bounds for one executable kind, in milliseconds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    default_ms: int = Field(gt=0)
    max_ms: int = Field(gt=0)
    min_ms: int = Field(default=MIN_TIMEOUT_MS, gt=0)

    @model_validator(mode="after")
    def check_bounds(self) -> "TimeoutPolicy":
        if self.min_ms > self.max_ms:
            raise ValueError(f"min_ms ({self.min_ms}) exceeds max_ms ({self.max_ms})")
        if self.default_ms > self.max_ms:
            raise ValueError(
                f"default timeout ({self.default_ms}ms) exceeds maximum ({self.max_ms}ms)"
            )
        return self

    def clamp(self, requested_ms: Optional[float] = None) -> int:
        """Clamp a requested timeout; None (or 0) means the default."""
        if not requested_ms:
            requested_ms = self.default_ms
        return int(min(max(requested_ms, self.min_ms), self.max_ms))


class ExecutionRequest(BaseModel):
    """
    One process launch.

    ``timeout_ms`` is expected to be clamped already; ``env`` is an overlay
    merged over the ambient process environment.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    executable: str
    args: tuple[str, ...] = ()
    cwd: Optional[str] = None
    env: dict[str, str] = Field(default_factory=dict)
    timeout_ms: int = Field(gt=0)

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args]


class ExecutionResult(BaseModel):
    """
    Outcome of one ExecutionRequest.

    Built once, after the process has exited or been confirmed killed.
    """

    model_config = ConfigDict(frozen=True)

    status: ExecutionStatus
    success: bool
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    error: Optional[str] = None
    timeout_ms: Optional[int] = None
    working_directory: Optional[str] = None
    script_path: Optional[str] = None
    code_preview: Optional[str] = None

    @property
    def timed_out(self) -> bool:
        return self.status == ExecutionStatus.TIMED_OUT

    def with_context(self, **fields: Any) -> "ExecutionResult":
        """Return a copy carrying extra context such as the script path."""
        return self.model_copy(update=fields)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        for optional in ("script_path", "code_preview"):
            if data[optional] is None:
                data.pop(optional)
        return data


class SyntaxCheckResult(BaseModel):
    """
    Verdict of a parse-only check.

    ``line_number``, ``offset`` and ``error`` are set for syntax errors;
    ``errors`` carries diagnostics when the checker itself failed.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    source: str
    message: Optional[str] = None
    line_number: Optional[int] = None
    offset: Optional[int] = None
    error: Optional[str] = None
    errors: list[str] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude_none=True)
        if not self.errors:
            data.pop("errors")
        return {"success": True, **data}
