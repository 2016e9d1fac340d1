"""
HostBridge configuration.

Settings are read once at startup from ``HOSTBRIDGE_*`` environment
variables, an optional ``.env`` file or a YAML/JSON configuration file.
Components never consult the environment themselves: they receive the
derived immutable policies (AccessPolicy, TimeoutPolicy) instead.
"""

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Any, Union

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from hostbridge.execution.models import MIN_TIMEOUT_MS, TimeoutPolicy
from hostbridge.security.guard import DEFAULT_ALWAYS_OPEN, AccessPolicy


def _default_powershell() -> str:
    return "powershell.exe" if sys.platform == "win32" else "pwsh"


class HostBridgeSettings(BaseSettings):
    """
    Process-wide configuration.

    Example:
        ```python
        settings = HostBridgeSettings(allowed_paths=["/srv/projects"])
        guard = AccessGuard(settings.to_access_policy())
        ```

    Environment variables:
        HOSTBRIDGE_ALLOWED_DRIVES - Comma separated drive letters (default: C,F)
        HOSTBRIDGE_ALLOWED_PATHS - Comma separated path prefixes
        HOSTBRIDGE_DEBUG - Enable debug logging
        HOSTBRIDGE_PYTHON_PATH - Python interpreter
        HOSTBRIDGE_PYTHON_TIMEOUT_MS / HOSTBRIDGE_PYTHON_MAX_TIMEOUT_MS
        HOSTBRIDGE_POWERSHELL_PATH - PowerShell executable
        HOSTBRIDGE_POWERSHELL_TIMEOUT_MS / HOSTBRIDGE_POWERSHELL_MAX_TIMEOUT_MS
        HOSTBRIDGE_SCRATCH_DIRECTORY - Staging area for inline code
        HOSTBRIDGE_HOME_DIRECTORY - Default working directory for commands
        HOSTBRIDGE_BASE_DIRECTORY - Anchor for relative paths
    """

    model_config = SettingsConfigDict(
        env_prefix="HOSTBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    allowed_drives: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["C", "F"],
        description="Permitted drive letters",
    )
    allowed_paths: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Permitted path prefixes",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )
    python_path: str = Field(
        default_factory=lambda: sys.executable or "python",
        description="Python interpreter used for scripts and inline code",
    )
    python_timeout_ms: int = Field(
        default=30000,
        ge=MIN_TIMEOUT_MS,
        description="Default Python execution timeout",
    )
    python_max_timeout_ms: int = Field(
        default=300000,
        ge=MIN_TIMEOUT_MS,
        description="Maximum Python execution timeout",
    )
    powershell_path: str = Field(
        default_factory=_default_powershell,
        description="PowerShell executable",
    )
    powershell_timeout_ms: int = Field(
        default=60000,
        ge=MIN_TIMEOUT_MS,
        description="Default PowerShell execution timeout",
    )
    powershell_max_timeout_ms: int = Field(
        default=600000,
        ge=MIN_TIMEOUT_MS,
        description="Maximum PowerShell execution timeout",
    )
    scratch_directory: str = Field(
        default_factory=tempfile.gettempdir,
        description="Always-open staging area for inline code files",
    )
    home_directory: str = Field(
        default_factory=lambda: str(Path.home()),
        description="Default working directory for ad-hoc commands",
    )
    base_directory: str = Field(
        default_factory=os.getcwd,
        description="Anchor used to absolutize relative paths",
    )

    @field_validator("allowed_drives", "allowed_paths", mode="before")
    @classmethod
    def split_comma_list(cls, v):
        """Accept comma separated strings as well as lists."""
        if v is None:
            return []
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @model_validator(mode="after")
    def check_timeouts(self) -> "HostBridgeSettings":
        if self.python_timeout_ms > self.python_max_timeout_ms:
            raise ValueError(
                f"python_timeout_ms ({self.python_timeout_ms}) exceeds "
                f"python_max_timeout_ms ({self.python_max_timeout_ms})"
            )
        if self.powershell_timeout_ms > self.powershell_max_timeout_ms:
            raise ValueError(
                f"powershell_timeout_ms ({self.powershell_timeout_ms}) exceeds "
                f"powershell_max_timeout_ms ({self.powershell_max_timeout_ms})"
            )
        return self

    @property
    def python_timeouts(self) -> TimeoutPolicy:
        return TimeoutPolicy(
            default_ms=self.python_timeout_ms,
            max_ms=self.python_max_timeout_ms,
        )

    @property
    def powershell_timeouts(self) -> TimeoutPolicy:
        return TimeoutPolicy(
            default_ms=self.powershell_timeout_ms,
            max_ms=self.powershell_max_timeout_ms,
        )

    def to_access_policy(self) -> AccessPolicy:
        """Build the immutable allow-list for the AccessGuard."""
        always_open = list(DEFAULT_ALWAYS_OPEN)
        if self.scratch_directory not in always_open:
            always_open.append(self.scratch_directory)
        return AccessPolicy(
            base_directory=self.base_directory,
            allowed_drives=tuple(self.allowed_drives),
            allowed_paths=tuple(self.allowed_paths),
            always_open=tuple(always_open),
        )

    def summary(self) -> dict[str, Any]:
        """Effective settings as plain data, for display."""
        return self.model_dump(mode="json")

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "HostBridgeSettings":
        """
        Load settings from a YAML or JSON file.

        Values in the file take precedence over environment variables.

        File format (YAML):
            ```yaml
            allowed_drives: [C, D]
            allowed_paths:
              - /srv/projects
            python_timeout_ms: 10000
            ```

        Args:
            path: Path to configuration file

        Returns:
            Loaded HostBridgeSettings instance

        Raises:
            FileNotFoundError: If the config file doesn't exist
        """
        path = Path(path).expanduser().resolve()

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text()

        if path.suffix == ".json":
            data = json.loads(content)
        else:
            # YAML is a superset of JSON
            data = yaml.safe_load(content)

        return cls(**(data or {}))
