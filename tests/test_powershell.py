"""
Tests for the PowerShell execution surface.

Argument construction is checked against a recording runner; the real
PowerShell tests only run where ``pwsh`` is installed.
"""

import shutil

import pytest

from hostbridge.exceptions import AccessDeniedError, MalformedRequestError, NotFoundError
from hostbridge.execution import PowerShellExecutor, TimeoutPolicy

PWSH = shutil.which("pwsh")

BASE_ARGS = ["-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass"]


@pytest.fixture
def shell_timeouts():
    return TimeoutPolicy(default_ms=60000, max_ms=600000)


@pytest.fixture
def shell(guard, shell_timeouts, temp_dir, recording_runner):
    return PowerShellExecutor(
        executable="pwsh",
        guard=guard,
        timeouts=shell_timeouts,
        home_directory=str(temp_dir),
        runner=recording_runner,
    )


class TestRunCommand:
    """Test PowerShellExecutor.run_command."""

    @pytest.mark.asyncio
    async def test_builds_command_line(self, shell, recording_runner, temp_dir):
        result = await shell.run_command("Get-ChildItem | Remove-Item -Recurse")

        request = recording_runner.requests[0]
        assert request.executable == "pwsh"
        assert list(request.args) == BASE_ARGS + [
            "-Command",
            "Get-ChildItem | Remove-Item -Recurse",
        ]
        assert request.cwd == str(temp_dir)
        assert request.timeout_ms == 60000
        assert result.success is True

    @pytest.mark.asyncio
    async def test_no_code_filter(self, shell, recording_runner):
        # Patterns the Python filter would block pass straight through
        await shell.run_command("python -c \"import os; os.system('x'); eval('1')\"")

        assert len(recording_runner.requests) == 1

    @pytest.mark.asyncio
    async def test_explicit_working_directory(self, shell, recording_runner, temp_dir):
        workdir = temp_dir / "sub"
        await shell.run_command("Get-Location", cwd=str(workdir))

        assert recording_runner.requests[0].cwd == str(workdir)

    @pytest.mark.asyncio
    async def test_working_directory_outside_allow_list(self, shell, recording_runner):
        with pytest.raises(AccessDeniedError):
            await shell.run_command("Get-Location", cwd="/etc")
        assert recording_runner.requests == []

    @pytest.mark.asyncio
    async def test_empty_command(self, shell):
        with pytest.raises(MalformedRequestError):
            await shell.run_command("  ")

    @pytest.mark.asyncio
    async def test_timeout_is_clamped(self, shell, recording_runner):
        await shell.run_command("x", timeout_ms=5)
        await shell.run_command("x", timeout_ms=10**9)

        assert [r.timeout_ms for r in recording_runner.requests] == [1000, 600000]


class TestRunScript:
    """Test PowerShellExecutor.run_script."""

    @pytest.mark.asyncio
    async def test_builds_file_invocation(self, shell, recording_runner, temp_dir):
        script = temp_dir / "deploy.ps1"
        script.write_text("Write-Output $args")

        result = await shell.run_script(str(script), args=["-Name", "two words"])

        request = recording_runner.requests[0]
        assert list(request.args) == BASE_ARGS + ["-File", str(script), "-Name", "two words"]
        assert request.cwd == str(temp_dir)
        assert result.script_path == str(script)

    @pytest.mark.asyncio
    async def test_missing_script(self, shell, temp_dir):
        with pytest.raises(NotFoundError):
            await shell.run_script(str(temp_dir / "missing.ps1"))

    @pytest.mark.asyncio
    async def test_script_outside_allow_list(self, shell):
        with pytest.raises(AccessDeniedError):
            await shell.run_script("/etc/profile.ps1")


class TestPowerShellInfo:
    """Test PowerShellExecutor.get_info."""

    @pytest.mark.asyncio
    async def test_parses_json(self, shell, recording_runner):
        recording_runner.stdout = '{"PSVersion": "7.4.1", "PSEdition": "Core"}\n'

        info = await shell.get_info()

        assert info == {"PSVersion": "7.4.1", "PSEdition": "Core"}
        assert recording_runner.requests[0].timeout_ms == 10000

    @pytest.mark.asyncio
    async def test_unparseable_output(self, shell, recording_runner):
        recording_runner.stdout = "not json"

        info = await shell.get_info()

        assert info["error"] == "Failed to parse PowerShell info"
        assert info["raw"] == "not json"

    @pytest.mark.asyncio
    async def test_missing_powershell(self, guard, shell_timeouts, temp_dir):
        shell = PowerShellExecutor(
            executable=str(temp_dir / "no-pwsh"),
            guard=guard,
            timeouts=shell_timeouts,
            home_directory=str(temp_dir),
        )

        info = await shell.get_info()

        assert "error" in info


@pytest.mark.skipif(PWSH is None, reason="pwsh not installed")
class TestRealPowerShell:
    """Run against an installed PowerShell."""

    @pytest.fixture
    def real_shell(self, guard, shell_timeouts, temp_dir):
        return PowerShellExecutor(
            executable=PWSH,
            guard=guard,
            timeouts=shell_timeouts,
            home_directory=str(temp_dir),
        )

    @pytest.mark.asyncio
    async def test_command_output(self, real_shell):
        result = await real_shell.run_command("Write-Output (6 * 7)")

        assert result.success is True
        assert result.stdout.strip() == "42"

    @pytest.mark.asyncio
    async def test_info(self, real_shell):
        info = await real_shell.get_info()

        assert "PSVersion" in info
