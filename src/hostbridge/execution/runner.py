"""
Timeout-bounded subprocess execution.

The runner owns the whole lifecycle of one child process:

- standard input is connected to the null device, never inherited, since
  the controlling process's stdin carries the tool protocol
- stdout and stderr are drained incrementally by reader tasks, so a chatty
  child cannot block on a full pipe
- the wait for exit races a timer; on expiry the child (and on POSIX its
  whole process group) is terminated, then killed after a grace period
- exactly one outcome is produced: completed, timed out or spawn failed

Process-level failures are returned as ExecutionResult values. Only
malformed requests raise.
"""

import asyncio
import logging
import os
import signal
import subprocess
import sys
import time
from typing import Any, Optional

from hostbridge.exceptions import MalformedRequestError
from hostbridge.execution.models import (
    KILLED_EXIT_CODE,
    ExecutionRequest,
    ExecutionResult,
    ExecutionStatus,
)

logger = logging.getLogger(__name__)

_IS_WINDOWS = sys.platform == "win32"
_READ_CHUNK = 64 * 1024
_STREAM_LIMIT = 64 * 1024


class _ExitWatchingProtocol(asyncio.subprocess.SubprocessStreamProtocol):
    """Stream protocol that signals process exit separately from pipe closure."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        super().__init__(limit=_STREAM_LIMIT, loop=loop)
        self.exited = asyncio.Event()

    def process_exited(self) -> None:
        super().process_exited()
        self.exited.set()


async def _drain(stream: Optional[asyncio.StreamReader], buffer: bytearray) -> None:
    """Copy a stream into a buffer until end-of-file."""
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        buffer.extend(chunk)


def _decode(data: bytearray) -> str:
    return bytes(data).decode("utf-8", errors="replace")


class ProcessRunner:
    """
    Runs ExecutionRequests and reports ExecutionResults.

    Usage:
        runner = ProcessRunner()
        result = await runner.run(
            ExecutionRequest(executable="python3", args=("-c", "print(1)"), timeout_ms=5000)
        )
        print(result.stdout)

    Args:
        kill_grace_s: Time between the termination request and a forced kill
        drain_timeout_s: Time the output readers get to reach end-of-file
            after the child has exited
    """

    def __init__(self, *, kill_grace_s: float = 2.0, drain_timeout_s: float = 2.0):
        self.kill_grace_s = kill_grace_s
        self.drain_timeout_s = drain_timeout_s

    def _spawn_options(self) -> dict[str, Any]:
        if _IS_WINDOWS:
            return {"creationflags": subprocess.CREATE_NO_WINDOW}
        # Own session, so termination reaches grandchildren holding the pipes
        return {"start_new_session": True}

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        """
        Execute a request to completion.

        Args:
            request: The launch description, with an already clamped timeout

        Returns:
            ExecutionResult describing the single outcome

        Raises:
            MalformedRequestError: If the executable is empty
        """
        if not request.executable or not request.executable.strip():
            raise MalformedRequestError("Executable cannot be empty")

        env = {**os.environ, **request.env}
        started = time.monotonic()

        logger.debug(
            f"Spawning {request.argv!r} (cwd={request.cwd}, timeout={request.timeout_ms}ms)"
        )

        loop = asyncio.get_running_loop()
        try:
            transport, protocol = await loop.subprocess_exec(
                lambda: _ExitWatchingProtocol(loop),
                *request.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=request.cwd,
                env=env,
                **self._spawn_options(),
            )
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to start {request.executable}: {e}")
            return ExecutionResult(
                status=ExecutionStatus.SPAWN_FAILED,
                success=False,
                exit_code=KILLED_EXIT_CODE,
                duration_ms=self._elapsed_ms(started),
                error=f"Failed to start process: {e}",
                timeout_ms=request.timeout_ms,
                working_directory=request.cwd,
            )

        process = asyncio.subprocess.Process(transport, protocol, loop)
        stdout = bytearray()
        stderr = bytearray()
        readers = [
            asyncio.create_task(_drain(process.stdout, stdout)),
            asyncio.create_task(_drain(process.stderr, stderr)),
        ]

        # Race the timer against the exit itself; pipes may outlive the child
        killed = False
        try:
            await asyncio.wait_for(protocol.exited.wait(), timeout=request.timeout_ms / 1000)
            duration_ms = self._elapsed_ms(started)
        except asyncio.TimeoutError:
            killed = True
            await self._terminate(process, protocol.exited)
            duration_ms = self._elapsed_ms(started)
        finally:
            if process.returncode is None:
                # Cancelled from outside; do not leave the child behind
                self._signal(process, force=True)
            await self._collect(readers)
            transport.close()

        if killed:
            message = f"Process terminated after timeout of {request.timeout_ms}ms"
            logger.warning(f"{request.executable}: {message}")
            return ExecutionResult(
                status=ExecutionStatus.TIMED_OUT,
                success=False,
                exit_code=KILLED_EXIT_CODE,
                stdout=_decode(stdout),
                stderr=_decode(stderr),
                duration_ms=duration_ms,
                error=message,
                timeout_ms=request.timeout_ms,
                working_directory=request.cwd,
            )

        exit_code = process.returncode
        logger.info(f"{request.executable} exited with code {exit_code} in {duration_ms}ms")
        return ExecutionResult(
            status=ExecutionStatus.COMPLETED,
            success=exit_code == 0,
            exit_code=exit_code,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            duration_ms=duration_ms,
            error=None if exit_code == 0 else f"Process exited with code {exit_code}",
            timeout_ms=request.timeout_ms,
            working_directory=request.cwd,
        )

    def _signal(self, process: asyncio.subprocess.Process, *, force: bool) -> None:
        """Send terminate (or kill) to the child, and its group on POSIX."""
        try:
            if _IS_WINDOWS:
                if force:
                    process.kill()
                else:
                    process.terminate()
            else:
                os.killpg(process.pid, signal.SIGKILL if force else signal.SIGTERM)
        except ProcessLookupError:
            pass

    async def _terminate(
        self, process: asyncio.subprocess.Process, exited: asyncio.Event
    ) -> None:
        """Terminate, wait out the grace period, then force a kill."""
        self._signal(process, force=False)
        try:
            await asyncio.wait_for(exited.wait(), timeout=self.kill_grace_s)
            return
        except asyncio.TimeoutError:
            logger.warning(f"Process {process.pid} ignored termination, killing")

        self._signal(process, force=True)
        await exited.wait()

    async def _collect(self, readers: list[asyncio.Task]) -> None:
        """Give readers a bounded time to finish, then cancel the rest."""
        _, pending = await asyncio.wait(readers, timeout=self.drain_timeout_s)
        for task in pending:
            task.cancel()
        if pending:
            logger.debug(
                f"Cancelled {len(pending)} output reader(s); a descendant still holds the pipes"
            )
        await asyncio.gather(*readers, return_exceptions=True)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
