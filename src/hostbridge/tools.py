"""
Tool catalogue and dispatcher.

Exposes the file, Python and PowerShell operations as named tools with JSON
schemas (OpenAI function calling format). Every call returns a dict: the
operation's result payload, or a structured error payload with
``success: False``, ``error`` and ``error_type``.
"""

import asyncio
import logging
import platform
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from hostbridge import __version__
from hostbridge.exceptions import HostBridgeError, MalformedRequestError
from hostbridge.execution.powershell import PowerShellExecutor
from hostbridge.execution.python import PythonInterpreter
from hostbridge.execution.runner import ProcessRunner
from hostbridge.filesystem.operations import FileOperations
from hostbridge.security.guard import AccessGuard
from hostbridge.settings.config import HostBridgeSettings

logger = logging.getLogger(__name__)

# Names used by earlier releases of the tool surface
TOOL_ALIASES = {
    "run_python_code": "run_inline_code",
    "check_python_syntax": "check_syntax",
    "run_powershell": "run_shell_command",
}


class ToolArguments(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


def _timeout_field(description: str):
    return Field(
        default=None,
        validation_alias=AliasChoices("timeout_ms", "timeout"),
        description=description,
    )


class PathArguments(ToolArguments):
    path: str = Field(description="File or directory path")


class ReadFileArguments(ToolArguments):
    path: str = Field(description="File to read")
    encoding: str = Field(
        default="utf-8",
        description="Text encoding, or 'base64' for binary content",
    )


class WriteFileArguments(ToolArguments):
    path: str = Field(description="File to write")
    content: str = Field(description="Content to write")
    create_backup: bool = Field(
        default=True,
        description="Copy an existing file aside before overwriting it",
    )
    create_parents: bool = Field(
        default=True,
        description="Create missing parent directories",
    )


class SearchFilesArguments(ToolArguments):
    directory: str = Field(description="Directory to search in")
    pattern: str = Field(description="Glob pattern relative to the directory (e.g. '**/*.py')")


class DeleteFileArguments(ToolArguments):
    path: str = Field(description="File to delete")
    create_backup: bool = Field(
        default=True,
        description="Copy the file aside before deleting it",
    )


class RunPythonScriptArguments(ToolArguments):
    script_path: str = Field(description="Python script to run")
    args: list[str] = Field(default_factory=list, description="Command-line arguments")
    cwd: Optional[str] = Field(
        default=None,
        description="Working directory (default: the script's directory)",
    )
    timeout_ms: Optional[int] = _timeout_field("Timeout in milliseconds")
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables",
    )


class RunInlineCodeArguments(ToolArguments):
    code: str = Field(description="Python code to run")
    args: list[str] = Field(default_factory=list, description="Command-line arguments")
    cwd: Optional[str] = Field(
        default=None,
        description="Working directory (default: the scratch directory)",
    )
    timeout_ms: Optional[int] = _timeout_field("Timeout in milliseconds")
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables",
    )


class CheckSyntaxArguments(ToolArguments):
    code: Optional[str] = Field(default=None, description="Python code to check")
    script_path: Optional[str] = Field(default=None, description="Python script to check")


class RunShellCommandArguments(ToolArguments):
    command: str = Field(description="PowerShell command to run")
    cwd: Optional[str] = Field(
        default=None,
        description="Working directory (default: the home directory)",
    )
    timeout_ms: Optional[int] = _timeout_field("Timeout in milliseconds")


class RunPowerShellScriptArguments(ToolArguments):
    script_path: str = Field(description="PowerShell script (.ps1) to run")
    args: list[str] = Field(default_factory=list, description="Script arguments")
    cwd: Optional[str] = Field(
        default=None,
        description="Working directory (default: the script's directory)",
    )
    timeout_ms: Optional[int] = _timeout_field("Timeout in milliseconds")


class NoArguments(ToolArguments):
    pass


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    arguments: type[ToolArguments]
    handler: Callable[[Any], Awaitable[dict[str, Any]]]

    def schema(self) -> dict[str, Any]:
        parameters = self.arguments.model_json_schema()
        parameters.pop("title", None)
        for prop in parameters.get("properties", {}).values():
            prop.pop("title", None)
        parameters.setdefault("properties", {})
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }


def _interpreter_payload(info: dict[str, Any]) -> dict[str, Any]:
    return {"success": "error" not in info, **info}


class HostBridgeTools:
    """
    Tool interface for function-calling agents.

    Usage:
        tools = HostBridgeTools(HostBridgeSettings())

        # Get tool schemas for the agent
        schemas = tools.get_tool_schemas()

        # Execute tool call
        result = await tools.execute_tool(
            tool_name="read_file",
            arguments={"path": "/tmp/notes.txt"},
        )
    """

    def __init__(
        self,
        settings: HostBridgeSettings,
        runner: Optional[ProcessRunner] = None,
    ):
        """
        Build the guard, file operations and execution surfaces from settings.

        Args:
            settings: Effective configuration
            runner: Process runner shared by both execution surfaces
        """
        self.settings = settings
        self.guard = AccessGuard(settings.to_access_policy())
        self.files = FileOperations(self.guard)
        runner = runner or ProcessRunner()
        self.python = PythonInterpreter(
            executable=settings.python_path,
            guard=self.guard,
            timeouts=settings.python_timeouts,
            scratch_directory=settings.scratch_directory,
            runner=runner,
        )
        self.powershell = PowerShellExecutor(
            executable=settings.powershell_path,
            guard=self.guard,
            timeouts=settings.powershell_timeouts,
            home_directory=settings.home_directory,
            runner=runner,
        )
        self._tools = {tool.name: tool for tool in self._build_catalogue()}

    def _build_catalogue(self) -> list[Tool]:
        python_limits = (
            f"default timeout {self.settings.python_timeout_ms}ms, "
            f"max {self.settings.python_max_timeout_ms}ms"
        )
        powershell_limits = (
            f"default timeout {self.settings.powershell_timeout_ms}ms, "
            f"max {self.settings.powershell_max_timeout_ms}ms"
        )
        return [
            Tool(
                "list_directory",
                "List the contents of a directory with sizes and timestamps.",
                PathArguments,
                self._list_directory,
            ),
            Tool(
                "read_file",
                "Read a file. Use encoding 'base64' for binary files.",
                ReadFileArguments,
                self._read_file,
            ),
            Tool(
                "write_file",
                "Write text to a file. An existing file is backed up first unless disabled.",
                WriteFileArguments,
                self._write_file,
            ),
            Tool(
                "search_files",
                "Find files below a directory matching a glob pattern.",
                SearchFilesArguments,
                self._search_files,
            ),
            Tool(
                "get_file_info",
                "Get type, size and timestamps of a file or directory.",
                PathArguments,
                self._get_file_info,
            ),
            Tool(
                "create_directory",
                "Create a directory, including missing parents.",
                PathArguments,
                self._create_directory,
            ),
            Tool(
                "delete_file",
                "Delete a file. It is backed up first unless disabled.",
                DeleteFileArguments,
                self._delete_file,
            ),
            Tool(
                "run_python_script",
                f"Run a Python script file ({python_limits}).",
                RunPythonScriptArguments,
                self._run_python_script,
            ),
            Tool(
                "run_inline_code",
                "Run a snippet of Python code. Code using shell escapes, eval/exec, "
                f"dynamic imports, file writes or deletions is rejected ({python_limits}).",
                RunInlineCodeArguments,
                self._run_inline_code,
            ),
            Tool(
                "check_syntax",
                "Check Python syntax without executing. Provide code or script_path, not both.",
                CheckSyntaxArguments,
                self._check_syntax,
            ),
            Tool(
                "get_python_info",
                "Get version and platform details of the Python interpreter.",
                NoArguments,
                self._get_python_info,
            ),
            Tool(
                "run_shell_command",
                f"Run a PowerShell command without restrictions ({powershell_limits}).",
                RunShellCommandArguments,
                self._run_shell_command,
            ),
            Tool(
                "run_powershell_script",
                f"Run a PowerShell script file ({powershell_limits}).",
                RunPowerShellScriptArguments,
                self._run_powershell_script,
            ),
            Tool(
                "get_powershell_info",
                "Get PowerShell version and system details.",
                NoArguments,
                self._get_powershell_info,
            ),
            Tool(
                "get_runtime_info",
                "Get host platform facts, access rules and both interpreter reports.",
                NoArguments,
                self._get_runtime_info,
            ),
        ]

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def get_tool(self, tool_name: str) -> Optional[Tool]:
        return self._tools.get(TOOL_ALIASES.get(tool_name, tool_name))

    def get_tool_schemas(self) -> list[dict[str, Any]]:
        """
        Get OpenAI function calling schemas for all available tools.

        Returns:
            List of tool schemas in OpenAI format
        """
        return [tool.schema() for tool in self._tools.values()]

    async def execute_tool(
        self, tool_name: str, arguments: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """
        Execute a tool call.

        Args:
            tool_name: Name (or legacy alias) of the tool to execute
            arguments: Tool arguments as decoded from the call

        Returns:
            Tool execution result as a dict. Failures are reported in the
            payload, never raised.
        """
        try:
            tool = self.get_tool(tool_name)
            if tool is None:
                raise MalformedRequestError(
                    f"Unknown tool: {tool_name}",
                    details={"available_tools": self.tool_names},
                )
            args = self._parse_arguments(tool, arguments)
            return await tool.handler(args)
        except HostBridgeError as e:
            logger.warning(f"Tool {tool_name} failed: {e}")
            return e.to_dict()
        except OSError as e:
            logger.warning(f"Tool {tool_name} failed: {e}")
            payload = {
                "success": False,
                "error": str(e),
                "error_type": type(e).__name__,
            }
            if e.filename is not None:
                payload["path"] = str(e.filename)
            return payload
        except Exception as e:
            logger.exception(f"Tool {tool_name} unexpected error: {e}")
            return {
                "success": False,
                "error": f"Unexpected error: {e}",
                "error_type": "UnexpectedError",
            }

    @staticmethod
    def _parse_arguments(tool: Tool, arguments: Optional[dict[str, Any]]) -> ToolArguments:
        try:
            return tool.arguments.model_validate(arguments or {})
        except ValidationError as e:
            problems = [
                {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
                for error in e.errors()
            ]
            summary = "; ".join(f"{p['field']}: {p['message']}" for p in problems)
            raise MalformedRequestError(
                f"Invalid arguments for {tool.name}: {summary}",
                details={"validation_errors": problems},
            )

    # File operations

    async def _list_directory(self, args: PathArguments) -> dict[str, Any]:
        return self.files.list_directory(args.path).to_dict()

    async def _read_file(self, args: ReadFileArguments) -> dict[str, Any]:
        return self.files.read_file(args.path, encoding=args.encoding).to_dict()

    async def _write_file(self, args: WriteFileArguments) -> dict[str, Any]:
        return self.files.write_file(
            args.path,
            args.content,
            create_backup=args.create_backup,
            create_parents=args.create_parents,
        ).to_dict()

    async def _search_files(self, args: SearchFilesArguments) -> dict[str, Any]:
        return self.files.search_files(args.directory, args.pattern).to_dict()

    async def _get_file_info(self, args: PathArguments) -> dict[str, Any]:
        return self.files.get_file_info(args.path).to_dict()

    async def _create_directory(self, args: PathArguments) -> dict[str, Any]:
        return self.files.create_directory(args.path).to_dict()

    async def _delete_file(self, args: DeleteFileArguments) -> dict[str, Any]:
        return self.files.delete_file(args.path, create_backup=args.create_backup).to_dict()

    # Python

    async def _run_python_script(self, args: RunPythonScriptArguments) -> dict[str, Any]:
        result = await self.python.run_script(
            args.script_path,
            args=args.args,
            cwd=args.cwd,
            timeout_ms=args.timeout_ms,
            env=args.env,
        )
        return result.to_dict()

    async def _run_inline_code(self, args: RunInlineCodeArguments) -> dict[str, Any]:
        result = await self.python.run_inline_code(
            args.code,
            timeout_ms=args.timeout_ms,
            cwd=args.cwd,
            env=args.env,
            args=args.args,
        )
        return result.to_dict()

    async def _check_syntax(self, args: CheckSyntaxArguments) -> dict[str, Any]:
        verdict = await self.python.check_syntax(code=args.code, script_path=args.script_path)
        return verdict.to_dict()

    async def _get_python_info(self, args: NoArguments) -> dict[str, Any]:
        return _interpreter_payload(await self.python.get_info())

    # PowerShell

    async def _run_shell_command(self, args: RunShellCommandArguments) -> dict[str, Any]:
        result = await self.powershell.run_command(
            args.command,
            timeout_ms=args.timeout_ms,
            cwd=args.cwd,
        )
        return result.to_dict()

    async def _run_powershell_script(self, args: RunPowerShellScriptArguments) -> dict[str, Any]:
        result = await self.powershell.run_script(
            args.script_path,
            args=args.args,
            timeout_ms=args.timeout_ms,
            cwd=args.cwd,
        )
        return result.to_dict()

    async def _get_powershell_info(self, args: NoArguments) -> dict[str, Any]:
        return _interpreter_payload(await self.powershell.get_info())

    # Runtime

    async def _interpreter_report(self, surface) -> dict[str, Any]:
        try:
            return await surface.get_info()
        except (HostBridgeError, OSError) as e:
            logger.warning(f"Interpreter report failed: {e}")
            return {"error": str(e)}

    async def _get_runtime_info(self, args: NoArguments) -> dict[str, Any]:
        python_info, powershell_info = await asyncio.gather(
            self._interpreter_report(self.python),
            self._interpreter_report(self.powershell),
        )
        policy = self.guard.policy
        return {
            "success": True,
            "hostbridge_version": __version__,
            "host": {
                "system": platform.system(),
                "release": platform.release(),
                "machine": platform.machine(),
                "python_version": platform.python_version(),
            },
            "access": {
                "base_directory": policy.base_directory,
                "allowed_drives": list(policy.allowed_drives),
                "allowed_paths": list(policy.allowed_paths),
                "always_open": list(policy.always_open),
            },
            "python": {"path": self.settings.python_path, **python_info},
            "powershell": {"path": self.settings.powershell_path, **powershell_info},
        }

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of the tool configuration."""
        return {
            "tools": self.tool_names,
            "aliases": dict(TOOL_ALIASES),
            "settings": self.settings.summary(),
        }
