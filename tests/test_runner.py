"""
Tests for the process runner and execution models.
"""

import asyncio
import os
import signal
import sys
import time

import pytest
from pydantic import ValidationError

from hostbridge.exceptions import MalformedRequestError
from hostbridge.execution import (
    KILLED_EXIT_CODE,
    ExecutionRequest,
    ExecutionResult,
    ExecutionStatus,
    ProcessRunner,
    TimeoutPolicy,
)

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX process groups")


def python_request(code: str, timeout_ms: int = 10000, **kwargs) -> ExecutionRequest:
    return ExecutionRequest(
        executable=sys.executable,
        args=("-c", code),
        timeout_ms=timeout_ms,
        **kwargs,
    )


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


@pytest.fixture
def runner():
    return ProcessRunner(kill_grace_s=1.0, drain_timeout_s=1.0)


class TestTimeoutPolicy:
    """Test timeout clamping."""

    def test_clamp(self):
        policy = TimeoutPolicy(default_ms=30000, max_ms=300000)
        assert policy.clamp(None) == 30000
        assert policy.clamp(0) == 30000
        assert policy.clamp(10) == 1000
        assert policy.clamp(5000) == 5000
        assert policy.clamp(10**9) == 300000

    def test_default_above_max_is_rejected(self):
        with pytest.raises(ValidationError):
            TimeoutPolicy(default_ms=10000, max_ms=5000)


class TestExecutionResult:
    """Test ExecutionResult serialization."""

    def test_to_dict_omits_missing_context(self):
        result = ExecutionResult(status=ExecutionStatus.COMPLETED, success=True, exit_code=0)
        data = result.to_dict()
        assert "script_path" not in data
        assert "code_preview" not in data
        assert data["status"] == "completed"

    def test_with_context(self):
        result = ExecutionResult(status=ExecutionStatus.COMPLETED, success=True, exit_code=0)
        updated = result.with_context(script_path="/tmp/x.py")
        assert updated.to_dict()["script_path"] == "/tmp/x.py"
        assert result.script_path is None


class TestProcessRunner:
    """Test ProcessRunner against the running Python interpreter."""

    @pytest.mark.asyncio
    async def test_captures_stdout(self, runner):
        result = await runner.run(python_request("print('hello')"))

        assert result.status == ExecutionStatus.COMPLETED
        assert result.success is True
        assert result.exit_code == 0
        assert result.stdout.strip() == "hello"
        assert result.error is None
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, runner):
        code = "import sys; sys.stderr.write('boom'); sys.exit(3)"
        result = await runner.run(python_request(code))

        assert result.status == ExecutionStatus.COMPLETED
        assert result.success is False
        assert result.exit_code == 3
        assert result.stderr == "boom"
        assert "3" in result.error

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, runner):
        code = "import os, time; print(os.getpid(), flush=True); time.sleep(30)"
        started = time.monotonic()
        result = await runner.run(python_request(code, timeout_ms=1000))
        elapsed_ms = (time.monotonic() - started) * 1000

        assert result.status == ExecutionStatus.TIMED_OUT
        assert result.timed_out
        assert result.success is False
        assert result.exit_code == KILLED_EXIT_CODE
        assert result.error == "Process terminated after timeout of 1000ms"
        assert 1000 <= result.duration_ms
        assert elapsed_ms < 1000 + 3000
        # Output produced before the kill is kept
        pid = int(result.stdout.strip())
        if sys.platform != "win32":
            assert not pid_alive(pid)

    @posix_only
    @pytest.mark.asyncio
    async def test_ignored_sigterm_escalates_to_kill(self):
        runner = ProcessRunner(kill_grace_s=0.5, drain_timeout_s=0.5)
        code = (
            "import signal, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "print('ready', flush=True)\n"
            "time.sleep(30)\n"
        )
        started = time.monotonic()
        result = await runner.run(python_request(code, timeout_ms=1000))

        assert result.status == ExecutionStatus.TIMED_OUT
        assert (time.monotonic() - started) < 4.0

    @posix_only
    @pytest.mark.asyncio
    async def test_grandchild_cannot_hold_the_call(self, runner):
        code = (
            "import subprocess, sys, time\n"
            "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
            "print(child.pid, flush=True)\n"
            "time.sleep(30)\n"
        )
        started = time.monotonic()
        result = await runner.run(python_request(code, timeout_ms=1500))

        assert result.status == ExecutionStatus.TIMED_OUT
        assert (time.monotonic() - started) < 6.0
        grandchild = int(result.stdout.strip())
        await asyncio.sleep(0.2)
        assert not pid_alive(grandchild) or _is_zombie(grandchild)

    @posix_only
    @pytest.mark.asyncio
    async def test_exit_counts_while_descendant_holds_pipes(self, runner):
        code = (
            "import subprocess, sys\n"
            "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
            "print(child.pid)\n"
            "print('done')\n"
        )
        started = time.monotonic()
        result = await runner.run(python_request(code, timeout_ms=8000))
        elapsed = time.monotonic() - started

        lines = result.stdout.split()
        try:
            assert result.status == ExecutionStatus.COMPLETED
            assert result.success is True
            assert result.exit_code == 0
            assert result.error is None
            assert lines[-1] == "done"
            assert result.duration_ms < 4000
            assert elapsed < 6.0
        finally:
            os.kill(int(lines[0]), signal.SIGKILL)

    @pytest.mark.asyncio
    async def test_spawn_failure_is_a_result(self, runner, temp_dir):
        request = ExecutionRequest(
            executable=str(temp_dir / "no-such-binary"),
            timeout_ms=1000,
        )
        result = await runner.run(request)

        assert result.status == ExecutionStatus.SPAWN_FAILED
        assert result.success is False
        assert result.exit_code == KILLED_EXIT_CODE
        assert result.error.startswith("Failed to start process")

    @pytest.mark.asyncio
    async def test_missing_working_directory_is_spawn_failure(self, runner, temp_dir):
        result = await runner.run(python_request("print(1)", cwd=str(temp_dir / "gone")))

        assert result.status == ExecutionStatus.SPAWN_FAILED

    @pytest.mark.asyncio
    async def test_empty_executable_is_malformed(self, runner):
        with pytest.raises(MalformedRequestError):
            await runner.run(ExecutionRequest(executable=" ", timeout_ms=1000))

    @pytest.mark.asyncio
    async def test_stdin_is_not_inherited(self, runner):
        code = "import sys; print(repr(sys.stdin.read()))"
        result = await runner.run(python_request(code, timeout_ms=5000))

        assert result.status == ExecutionStatus.COMPLETED
        assert result.stdout.strip() == "''"

    @pytest.mark.asyncio
    async def test_large_output_does_not_block(self, runner):
        code = (
            "import sys\n"
            "sys.stdout.write('x' * 1_000_000)\n"
            "sys.stderr.write('y' * 1_000_000)\n"
        )
        result = await runner.run(python_request(code))

        assert result.success is True
        assert len(result.stdout) == 1_000_000
        assert len(result.stderr) == 1_000_000

    @pytest.mark.asyncio
    async def test_environment_overlay(self, runner):
        code = "import os; print(os.environ['HB_TEST_VAR'], 'PATH' in os.environ)"
        result = await runner.run(python_request(code, env={"HB_TEST_VAR": "overlay"}))

        assert result.stdout.split() == ["overlay", "True"]

    @pytest.mark.asyncio
    async def test_working_directory(self, runner, temp_dir):
        code = "import os; print(os.getcwd())"
        result = await runner.run(python_request(code, cwd=str(temp_dir)))

        assert os.path.realpath(result.stdout.strip()) == os.path.realpath(temp_dir)
        assert result.working_directory == str(temp_dir)

    @pytest.mark.asyncio
    async def test_undecodable_output_is_replaced(self, runner):
        code = "import sys; sys.stdout.buffer.write(b'ok\\xff')"
        result = await runner.run(python_request(code))

        assert result.stdout == "ok\ufffd"

    @pytest.mark.asyncio
    async def test_concurrent_runs_do_not_serialize(self, runner):
        request = python_request("import time; time.sleep(1)")
        started = time.monotonic()
        results = await asyncio.gather(runner.run(request), runner.run(request))

        assert all(r.success for r in results)
        assert time.monotonic() - started < 1.9


def _is_zombie(pid: int) -> bool:
    """A killed grandchild may linger as a zombie until init reaps it."""
    try:
        with open(f"/proc/{pid}/stat") as f:
            return f.read().split()[2] == "Z"
    except OSError:
        return False
