"""Shared fixtures for hostbridge tests."""

import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from hostbridge.execution import ExecutionRequest, ExecutionResult, ExecutionStatus, TimeoutPolicy
from hostbridge.security import AccessGuard, AccessPolicy
from hostbridge.settings import HostBridgeSettings


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(prefix="hostbridge_test_") as tmp:
        yield Path(tmp)


@pytest.fixture
def scratch_dir(temp_dir: Path) -> Path:
    """Scratch area for staged code, inside the temp directory."""
    scratch = temp_dir / "scratch"
    scratch.mkdir()
    return scratch


@pytest.fixture
def policy(temp_dir: Path) -> AccessPolicy:
    """A policy that only opens the temp directory."""
    return AccessPolicy(
        base_directory=str(temp_dir),
        allowed_drives=(),
        allowed_paths=(str(temp_dir),),
        always_open=(),
    )


@pytest.fixture
def guard(policy: AccessPolicy) -> AccessGuard:
    return AccessGuard(policy)


@pytest.fixture
def python_timeouts() -> TimeoutPolicy:
    return TimeoutPolicy(default_ms=20000, max_ms=60000)


@pytest.fixture
def settings(temp_dir: Path, scratch_dir: Path) -> HostBridgeSettings:
    """Settings rooted in the temp directory, using the running interpreter."""
    return HostBridgeSettings(
        allowed_drives=[],
        allowed_paths=[str(temp_dir)],
        python_path=sys.executable,
        python_timeout_ms=20000,
        powershell_path="pwsh",
        scratch_directory=str(scratch_dir),
        home_directory=str(temp_dir),
        base_directory=str(temp_dir),
    )


class RecordingRunner:
    """Stands in for ProcessRunner and records the requests it receives."""

    def __init__(self, stdout: str = "", exit_code: int = 0):
        self.requests: list[ExecutionRequest] = []
        self.stdout = stdout
        self.exit_code = exit_code

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        self.requests.append(request)
        return ExecutionResult(
            status=ExecutionStatus.COMPLETED,
            success=self.exit_code == 0,
            exit_code=self.exit_code,
            stdout=self.stdout,
            duration_ms=1,
            timeout_ms=request.timeout_ms,
            working_directory=request.cwd,
        )


@pytest.fixture
def recording_runner() -> RecordingRunner:
    return RecordingRunner()
