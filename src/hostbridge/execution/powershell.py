"""
PowerShell execution surface.

Commands are opaque strings handed to PowerShell as they are. There is no
code filter on this surface: the caller is trusted with the full power of
the shell, bounded only by the timeout and the working-directory check.
"""

import json
import logging
import os
from typing import Any, Optional, Sequence

from hostbridge.exceptions import AccessDeniedError, MalformedRequestError, NotFoundError
from hostbridge.execution.models import ExecutionRequest, ExecutionResult, TimeoutPolicy
from hostbridge.execution.runner import ProcessRunner
from hostbridge.security.guard import AccessGuard

logger = logging.getLogger(__name__)

BASE_ARGS = ("-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass")
INFO_TIMEOUT_MS = 10000

_INFO_COMMAND = """
$info = @{
    PSVersion = $PSVersionTable.PSVersion.ToString()
    PSEdition = $PSVersionTable.PSEdition
    OS = [System.Environment]::OSVersion.VersionString
    Platform = [System.Environment]::OSVersion.Platform.ToString()
    MachineName = [System.Environment]::MachineName
    UserName = [System.Environment]::UserName
    ProcessorCount = [System.Environment]::ProcessorCount
    Is64BitOS = [System.Environment]::Is64BitOperatingSystem
    CurrentDirectory = Get-Location | Select-Object -ExpandProperty Path
}
$info | ConvertTo-Json
"""


class PowerShellExecutor:
    """
    Runs PowerShell commands and script files.

    Usage:
        shell = PowerShellExecutor(
            executable="pwsh",
            guard=guard,
            timeouts=TimeoutPolicy(default_ms=60000, max_ms=600000),
            home_directory="/home/agent",
        )
        result = await shell.run_command("Get-ChildItem")
    """

    def __init__(
        self,
        executable: str,
        guard: AccessGuard,
        timeouts: TimeoutPolicy,
        home_directory: str,
        runner: Optional[ProcessRunner] = None,
    ):
        self.executable = executable
        self.guard = guard
        self.timeouts = timeouts
        self.home_directory = home_directory
        self.runner = runner or ProcessRunner()

    def _validate(self, path: str) -> str:
        try:
            return self.guard.validate(path)
        except AccessDeniedError as e:
            logger.warning(str(e))
            raise

    async def run_command(
        self,
        command: str,
        timeout_ms: Optional[float] = None,
        cwd: Optional[str] = None,
    ) -> ExecutionResult:
        """
        Run a PowerShell command line.

        The working directory defaults to the home directory.

        Raises:
            MalformedRequestError: If the command is empty
            AccessDeniedError: If the working directory is not allowed
        """
        if not command or not command.strip():
            raise MalformedRequestError("Command cannot be empty")

        workdir = self._validate(cwd) if cwd else self.home_directory
        request = ExecutionRequest(
            executable=self.executable,
            args=(*BASE_ARGS, "-Command", command),
            cwd=workdir,
            timeout_ms=self.timeouts.clamp(timeout_ms),
        )
        logger.info(f"Running PowerShell command (timeout: {request.timeout_ms}ms)")
        return await self.runner.run(request)

    async def run_script(
        self,
        script_path: str,
        args: Sequence[str] = (),
        timeout_ms: Optional[float] = None,
        cwd: Optional[str] = None,
    ) -> ExecutionResult:
        """
        Run a PowerShell script file with ``-File``.

        The working directory defaults to the script's directory.

        Raises:
            AccessDeniedError: If the script or working directory is not allowed
            NotFoundError: If the script does not exist
        """
        script = self._validate(script_path)
        if not os.path.isfile(script):
            raise NotFoundError(script, kind="Script")

        workdir = self._validate(cwd) if cwd else os.path.dirname(script)
        request = ExecutionRequest(
            executable=self.executable,
            args=(*BASE_ARGS, "-File", script, *args),
            cwd=workdir,
            timeout_ms=self.timeouts.clamp(timeout_ms),
        )
        logger.info(f"Running PowerShell script: {script} (timeout: {request.timeout_ms}ms)")
        result = await self.runner.run(request)
        return result.with_context(script_path=script)

    async def get_info(self) -> dict[str, Any]:
        """
        Report PowerShell version, edition and host facts.

        A failing or missing PowerShell yields ``{"error": ...}``.
        """
        result = await self.run_command(_INFO_COMMAND, timeout_ms=INFO_TIMEOUT_MS)
        if not result.success:
            return {"error": result.stderr.strip() or result.error}
        try:
            return json.loads(result.stdout.strip())
        except ValueError:
            return {"error": "Failed to parse PowerShell info", "raw": result.stdout}
