# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from deputy.core.constants import DEFAULT_MAX_TURNS, PermissionMode
from deputy.core.exceptions import ConfigurationError
from deputy.hooks.builtin import hook_block_dangerous_bash, hook_limit_file_writes, hook_log_tools
from deputy.hooks.registry import HookMatcher
from deputy.permissions.policy import Permissions


SETTINGS_ENV_VAR = "DEPUTY_SETTINGS"
DEFAULT_SETTINGS_FILE = "settings.deputy.yaml"


class PermissionSettings(BaseModel):
    """Serializable subset of :class:`~deputy.permissions.Permissions`.

    ``can_use_tool`` is code, so it cannot come from a settings file.
    """

    model_config = ConfigDict(extra="forbid")

    mode: str = PermissionMode.DEFAULT.value
    file_read: bool = True
    file_write: bool | str = True
    shell: bool = False
    code_execution: bool = True
    web: bool = False
    install_packages: bool = False
    allowed_tools: list[str] | None = None
    denied_tools: list[str] | None = None
    max_turns: int = DEFAULT_MAX_TURNS
    max_cost_usd: float | None = None


class HookSettings(BaseModel):
    """Built-in hooks to install.

    Attributes:
        log_tools: Install ``hook_log_tools``.
        log_tools_verbose: Include result previews in the tool log.
        block_dangerous_bash: Install ``hook_block_dangerous_bash``.
        extra_dangerous_patterns: Patterns added to the default blocklist.
        limit_file_writes: Directory passed to ``hook_limit_file_writes``.
    """

    model_config = ConfigDict(extra="forbid")

    log_tools: bool = False
    log_tools_verbose: bool = False
    block_dangerous_bash: bool = True
    extra_dangerous_patterns: list[str] = Field(default_factory=list)
    limit_file_writes: str | None = None


class Settings(BaseModel):
    """Root settings loaded from ``settings.deputy.yaml``."""

    model_config = ConfigDict(extra="forbid")

    working_dir: str | None = None
    log_level: str = "INFO"
    permissions: PermissionSettings = Field(default_factory=PermissionSettings)
    hooks: HookSettings = Field(default_factory=HookSettings)

    def build_permissions(self) -> Permissions:
        """Create the permission policy. Relative write directories resolve against working_dir."""
        data: dict[str, Any] = self.permissions.model_dump()
        file_write = data["file_write"]
        if isinstance(file_write, str) and self.working_dir and not Path(file_write).is_absolute():
            data["file_write"] = str(Path(self.working_dir) / file_write)
        return Permissions(**data)

    def build_hooks(self) -> list[HookMatcher]:
        """Create the enabled built-in hooks, in a fixed order."""
        hooks: list[HookMatcher] = []
        if self.hooks.block_dangerous_bash:
            hooks.append(
                hook_block_dangerous_bash(additional_patterns=self.hooks.extra_dangerous_patterns)
            )
        if self.hooks.limit_file_writes is not None:
            allowed = Path(self.hooks.limit_file_writes)
            if self.working_dir and not allowed.is_absolute():
                allowed = Path(self.working_dir) / allowed
            hooks.append(hook_limit_file_writes(allowed))
        if self.hooks.log_tools:
            hooks.append(hook_log_tools(verbose=self.hooks.log_tools_verbose))
        return hooks


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from a YAML file.

    Resolution order:
    1. Explicit config_path parameter (if provided)
    2. DEPUTY_SETTINGS environment variable (if set)
    3. Default: 'settings.deputy.yaml' in the current directory

    Args:
        config_path: Optional explicit path to the configuration file.

    Returns:
        Settings object populated from the YAML configuration.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigurationError: If the YAML is malformed or fails validation.
    """
    if config_path is None:
        env_path = os.environ.get(SETTINGS_ENV_VAR)
        config_path = env_path if env_path else DEFAULT_SETTINGS_FILE
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found at {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed settings file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {config_path} must contain a mapping")

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in {config_path}: {e}") from e
