"""
Python execution surface.

Scripts run as given. Inline code is screened by a CodeSafetyFilter, staged
in the scratch directory and removed again once the run is over, whatever
its outcome. Syntax checks parse the code in the target interpreter without
executing it.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Sequence

from hostbridge.exceptions import (
    AccessDeniedError,
    MalformedRequestError,
    NotFoundError,
    UnsafeCodeError,
)
from hostbridge.execution.models import (
    ExecutionRequest,
    ExecutionResult,
    SyntaxCheckResult,
    TimeoutPolicy,
)
from hostbridge.execution.runner import ProcessRunner
from hostbridge.execution.staging import staged_code_file
from hostbridge.security.code_filter import CodeSafetyFilter, RegexCodeSafetyFilter
from hostbridge.security.guard import AccessGuard

logger = logging.getLogger(__name__)

# Injected before the caller's overlay, so callers can still override them
PYTHON_TUNING_ENV = {
    "PYTHONUNBUFFERED": "1",
    "PYTHONDONTWRITEBYTECODE": "1",
    "PYTHONIOENCODING": "utf-8",
}

PREVIEW_CHARS = 200
SYNTAX_CHECK_TIMEOUT_MS = 5000
INFO_TIMEOUT_MS = 5000

SYNTAX_OK = "SYNTAX_OK"
SYNTAX_ERROR = "SYNTAX_ERROR:"

_SYNTAX_DRIVER = """\
import ast

source = {source!r}
try:
    ast.parse(source, filename={filename!r})
except SyntaxError as e:
    print(f"SYNTAX_ERROR:{{e.lineno}}:{{e.offset}}:{{e.msg}}")
except ValueError as e:
    print(f"SYNTAX_ERROR:None:None:{{e}}")
else:
    print("SYNTAX_OK")
"""

_INFO_SNIPPET = """\
import json
import platform
import sys

print(json.dumps({
    "version": sys.version,
    "version_info": {
        "major": sys.version_info.major,
        "minor": sys.version_info.minor,
        "micro": sys.version_info.micro,
    },
    "executable": sys.executable,
    "platform": platform.platform(),
    "architecture": platform.architecture()[0],
    "prefix": sys.prefix,
}))
"""


def code_preview(code: str) -> str:
    if len(code) > PREVIEW_CHARS:
        return code[:PREVIEW_CHARS] + "..."
    return code


def _parse_position(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


def parse_syntax_verdict(stdout: str, stderr: str, source: str) -> SyntaxCheckResult:
    """Turn the driver's verdict line into a SyntaxCheckResult."""
    for line in stdout.splitlines():
        line = line.strip()
        if line == SYNTAX_OK:
            return SyntaxCheckResult(valid=True, source=source, message="Syntax is valid")
        if line.startswith(SYNTAX_ERROR):
            parts = line[len(SYNTAX_ERROR):].split(":", 2)
            parts += [""] * (3 - len(parts))
            return SyntaxCheckResult(
                valid=False,
                source=source,
                line_number=_parse_position(parts[0]),
                offset=_parse_position(parts[1]),
                error=parts[2],
            )
    return SyntaxCheckResult(
        valid=False,
        source=source,
        errors=[stderr.strip() or "Unknown syntax check error"],
    )


class PythonInterpreter:
    """
    Runs Python scripts and inline code through a ProcessRunner.

    Usage:
        python = PythonInterpreter(
            executable="/usr/bin/python3",
            guard=guard,
            timeouts=TimeoutPolicy(default_ms=30000, max_ms=300000),
            scratch_directory="/tmp",
        )
        result = await python.run_inline_code("print('hi')")
    """

    def __init__(
        self,
        executable: str,
        guard: AccessGuard,
        timeouts: TimeoutPolicy,
        scratch_directory: str,
        runner: Optional[ProcessRunner] = None,
        code_filter: Optional[CodeSafetyFilter] = None,
    ):
        self.executable = executable
        self.guard = guard
        self.timeouts = timeouts
        self.scratch_directory = scratch_directory
        self.runner = runner or ProcessRunner()
        self.code_filter = code_filter or RegexCodeSafetyFilter()

    def _validate(self, path: str) -> str:
        try:
            return self.guard.validate(path)
        except AccessDeniedError as e:
            logger.warning(str(e))
            raise

    def _resolve_script(self, script_path: str) -> str:
        script = self._validate(script_path)
        if not os.path.exists(script):
            raise NotFoundError(script, kind="Script")
        if os.path.isdir(script):
            raise MalformedRequestError(f"Script is a directory: {script}", path=script)
        return script

    async def _execute(
        self,
        script: str,
        args: Sequence[str],
        cwd: str,
        timeout_ms: Optional[float],
        env: Optional[dict[str, str]],
    ) -> ExecutionResult:
        request = ExecutionRequest(
            executable=self.executable,
            args=(script, *args),
            cwd=cwd,
            env={**PYTHON_TUNING_ENV, **(env or {})},
            timeout_ms=self.timeouts.clamp(timeout_ms),
        )
        logger.info(f"Running Python script: {script} (timeout: {request.timeout_ms}ms)")
        result = await self.runner.run(request)
        return result.with_context(script_path=script)

    async def run_script(
        self,
        script_path: str,
        args: Sequence[str] = (),
        cwd: Optional[str] = None,
        timeout_ms: Optional[float] = None,
        env: Optional[dict[str, str]] = None,
    ) -> ExecutionResult:
        """
        Run a Python script file.

        The working directory defaults to the script's directory.

        Raises:
            AccessDeniedError: If the script or working directory is not allowed
            NotFoundError: If the script does not exist
        """
        script = self._resolve_script(script_path)
        workdir = self._validate(cwd) if cwd else os.path.dirname(script)
        return await self._execute(script, args, workdir, timeout_ms, env)

    async def run_inline_code(
        self,
        code: str,
        timeout_ms: Optional[float] = None,
        cwd: Optional[str] = None,
        env: Optional[dict[str, str]] = None,
        args: Sequence[str] = (),
    ) -> ExecutionResult:
        """
        Screen, stage and run a snippet of Python code.

        The working directory defaults to the scratch directory. The staged
        file is gone by the time this returns or raises.

        Raises:
            MalformedRequestError: If the code is empty or not encodable as UTF-8
            UnsafeCodeError: If the code matches a blocked pattern
            AccessDeniedError: If the working directory is not allowed
        """
        if not code or not code.strip():
            raise MalformedRequestError("Code cannot be empty")
        try:
            code.encode("utf-8")
        except UnicodeEncodeError as e:
            raise MalformedRequestError(
                f"Code is not valid UTF-8 text: {e.reason} at position {e.start}"
            )

        verdict = self.code_filter.check(code)
        if not verdict.safe:
            logger.warning(f"Rejected inline code: {verdict.reason}")
            raise UnsafeCodeError(verdict.reason or "blocked pattern", rule=verdict.rule)

        workdir = self._validate(cwd) if cwd else self.scratch_directory
        logger.info(f"Running Python code snippet ({len(code)} chars)")

        with staged_code_file(self.scratch_directory, code) as staged:
            result = await self._execute(str(staged), args, workdir, timeout_ms, env)

        return result.with_context(code_preview=code_preview(code))

    async def check_syntax(
        self,
        code: Optional[str] = None,
        script_path: Optional[str] = None,
    ) -> SyntaxCheckResult:
        """
        Parse code (or a script file) without executing it.

        Exactly one of ``code`` and ``script_path`` must be given.

        Raises:
            MalformedRequestError: If neither or both are given
            AccessDeniedError: If the script is not allowed
            NotFoundError: If the script does not exist
        """
        if not code and not script_path:
            raise MalformedRequestError("Either code or script_path must be provided")
        if code and script_path:
            raise MalformedRequestError("Provide either code or script_path, not both")

        if script_path:
            script = self._resolve_script(script_path)
            source = Path(script).read_text(encoding="utf-8", errors="surrogateescape")
            origin, filename = "file", script
        else:
            source = code
            origin, filename = "code", "<code>"

        driver = _SYNTAX_DRIVER.format(source=source, filename=filename)
        with staged_code_file(self.scratch_directory, driver) as staged:
            request = ExecutionRequest(
                executable=self.executable,
                args=(str(staged),),
                cwd=self.scratch_directory,
                env=PYTHON_TUNING_ENV,
                timeout_ms=self.timeouts.clamp(SYNTAX_CHECK_TIMEOUT_MS),
            )
            result = await self.runner.run(request)

        verdict = parse_syntax_verdict(result.stdout, result.stderr or result.error or "", origin)
        logger.debug(f"Syntax check of {filename}: valid={verdict.valid}")
        return verdict

    async def get_info(self) -> dict[str, Any]:
        """
        Report version, platform and prefix of the configured interpreter.

        A failing interpreter yields ``{"error": ...}`` instead of raising.
        """
        result = await self.run_inline_code(_INFO_SNIPPET, timeout_ms=INFO_TIMEOUT_MS)
        if not result.success:
            return {"error": result.stderr.strip() or result.error}
        try:
            return json.loads(result.stdout.strip())
        except ValueError:
            return {"error": "Failed to parse Python info", "raw": result.stdout}
