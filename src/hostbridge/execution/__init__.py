"""
External process execution.

ProcessRunner owns child-process lifecycles; PythonInterpreter and
PowerShellExecutor build requests for their execution surface.
"""

from hostbridge.execution.models import (
    KILLED_EXIT_CODE,
    MIN_TIMEOUT_MS,
    ExecutionRequest,
    ExecutionResult,
    ExecutionStatus,
    SyntaxCheckResult,
    TimeoutPolicy,
)
from hostbridge.execution.powershell import PowerShellExecutor
from hostbridge.execution.python import PythonInterpreter
from hostbridge.execution.runner import ProcessRunner
from hostbridge.execution.staging import staged_code_file

__all__ = [
    "KILLED_EXIT_CODE",
    "MIN_TIMEOUT_MS",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionStatus",
    "SyntaxCheckResult",
    "TimeoutPolicy",
    "ProcessRunner",
    "PythonInterpreter",
    "PowerShellExecutor",
    "staged_code_file",
]
