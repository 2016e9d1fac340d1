"""
HostBridge - guarded file and interpreter access for AI agents.

This package exposes file-system operations and Python/PowerShell execution
as function-calling tools, behind a path allow-list, a timeout-bounded
process runner and backup-before-mutate protection.
"""

__version__ = "0.1.0"

from hostbridge.exceptions import (
    AccessDeniedError,
    HostBridgeError,
    MalformedRequestError,
    NotFoundError,
    UnsafeCodeError,
)

from hostbridge.security import (
    AccessGuard,
    AccessPolicy,
    CodeSafetyFilter,
    RegexCodeSafetyFilter,
)

from hostbridge.filesystem import BackupTag, BackupVault, FileOperations

from hostbridge.execution import (
    ExecutionRequest,
    ExecutionResult,
    ExecutionStatus,
    PowerShellExecutor,
    ProcessRunner,
    PythonInterpreter,
    TimeoutPolicy,
)

from hostbridge.settings import HostBridgeSettings
from hostbridge.tools import HostBridgeTools

__all__ = [
    # Version
    "__version__",
    # Errors
    "HostBridgeError",
    "AccessDeniedError",
    "NotFoundError",
    "UnsafeCodeError",
    "MalformedRequestError",
    # Security
    "AccessGuard",
    "AccessPolicy",
    "CodeSafetyFilter",
    "RegexCodeSafetyFilter",
    # Filesystem
    "BackupTag",
    "BackupVault",
    "FileOperations",
    # Execution
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionStatus",
    "ProcessRunner",
    "PythonInterpreter",
    "PowerShellExecutor",
    "TimeoutPolicy",
    # Settings and tools
    "HostBridgeSettings",
    "HostBridgeTools",
]
