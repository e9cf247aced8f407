"""Configuration file loader.

Handles discovery, parsing, and merging of YAML configuration files.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError

from turnloop.exceptions import ConfigurationError
from turnloop.models.config import (
    OrchestratorConfig,
    ProviderConfig,
    RouterConfig,
    ToolSettings,
)
from turnloop.models.tools import WebToolCategory
from turnloop.router.policy import RoutingPolicy
from turnloop.tools.catalog import SourceCatalog

# Pattern matches ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:-]+)(?::-([^}]*))?\}")

# Default config file names in priority order
CONFIG_FILE_NAMES = ["turnloop.yaml", ".turnloop.yaml", "turnloop.yml", ".turnloop.yml"]


class StorageConfig(BaseModel):
    """Where sessions and file secrets live."""

    dir: str = "~/.turnloop/sessions"
    secrets_file: str = "~/.turnloop/secrets.yaml"

    @property
    def sessions_path(self) -> Path:
        return Path(self.dir).expanduser()

    @property
    def secrets_path(self) -> Path:
        return Path(self.secrets_file).expanduser()


class CLIOverrides(BaseModel):
    """CLI argument overrides for configuration.

    All fields are optional - only set values will override config file settings.
    """

    api_key: str | None = None
    base_url: str | None = None
    max_tokens: int | None = None
    policy: Literal["two_tier", "three_tier"] | None = None
    confidence_threshold: float | None = None


class FileConfig(BaseModel):
    """Schema for turnloop.yaml configuration file."""

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    tools: ToolSettings = Field(default_factory=ToolSettings)
    web_tools: list[WebToolCategory] = Field(default_factory=list)
    storage: StorageConfig = Field(default_factory=StorageConfig)


class ConfigLoader:
    """Load and merge configuration from files and CLI arguments."""

    @staticmethod
    def discover_config_file(explicit_path: Path | None = None) -> Path | None:
        """Find configuration file in priority order.

        Args:
            explicit_path: Explicitly provided config file path.

        Returns:
            Path to config file, or None if not found.

        Raises:
            ConfigurationError: If explicit path doesn't exist.
        """
        if explicit_path is not None:
            if not explicit_path.exists():
                msg = f"Configuration file not found: {explicit_path}"
                raise ConfigurationError(msg)
            return explicit_path

        cwd = Path.cwd()
        for filename in CONFIG_FILE_NAMES:
            config_path = cwd / filename
            if config_path.exists():
                return config_path

        return None

    @staticmethod
    def load_yaml(path: Path) -> dict[str, Any]:
        """Load and parse YAML configuration file.

        Args:
            path: Path to YAML file.

        Returns:
            Parsed configuration dictionary.

        Raises:
            ConfigurationError: If file cannot be read or parsed.
        """
        try:
            with path.open() as f:
                content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            msg = f"Failed to parse configuration file {path}: {e}"
            raise ConfigurationError(msg) from e
        except OSError as e:
            msg = f"Failed to read configuration file {path}: {e}"
            raise ConfigurationError(msg) from e

        if content is None:
            return {}
        if not isinstance(content, dict):
            msg = f"Configuration file {path} must contain a mapping"
            raise ConfigurationError(msg)
        return content

    @staticmethod
    def interpolate_env_vars(value: Any) -> Any:
        """Recursively interpolate environment variables in configuration.

        Supports two syntaxes:
        - ${VAR} - Required variable, raises error if not set
        - ${VAR:-default} - Optional variable with default value

        Raises:
            ConfigurationError: If required environment variable is not set.
        """
        if isinstance(value, str):

            def replace(match: re.Match[str]) -> str:
                var_name = match.group(1)
                default_value = match.group(2)
                env_value = os.environ.get(var_name)
                if env_value is not None:
                    return env_value
                if default_value is not None:
                    return default_value
                msg = f"Environment variable {var_name} is not set"
                raise ConfigurationError(msg)

            return ENV_VAR_PATTERN.sub(replace, value)
        elif isinstance(value, dict):
            return {k: ConfigLoader.interpolate_env_vars(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [ConfigLoader.interpolate_env_vars(item) for item in value]
        return value

    @staticmethod
    def load_config(explicit_path: Path | None = None) -> FileConfig | None:
        """Discover, load, and parse configuration file.

        Args:
            explicit_path: Explicitly provided config file path.

        Returns:
            Parsed FileConfig, or None if no config file found.

        Raises:
            ConfigurationError: If config file exists but is invalid.
        """
        config_path = ConfigLoader.discover_config_file(explicit_path)
        if config_path is None:
            return None

        raw_config = ConfigLoader.load_yaml(config_path)
        interpolated = ConfigLoader.interpolate_env_vars(raw_config)

        try:
            return FileConfig.model_validate(interpolated)
        except ValidationError as e:
            msg = f"Invalid configuration in {config_path}: {e}"
            raise ConfigurationError(msg) from e

    @staticmethod
    def resolve_provider_config(
        file_config: FileConfig | None,
        cli_overrides: CLIOverrides | None = None,
    ) -> ProviderConfig:
        """Resolve provider settings.

        Priority order (highest to lowest):
        1. CLI arguments (via cli_overrides)
        2. ``provider:`` section of the config file
        3. Defaults
        """
        config = file_config.provider if file_config else ProviderConfig()
        if cli_overrides is None:
            return config

        updates: dict[str, Any] = {}
        if cli_overrides.api_key is not None:
            updates["api_key"] = SecretStr(cli_overrides.api_key)
        if cli_overrides.base_url is not None:
            updates["base_url"] = cli_overrides.base_url
        if cli_overrides.max_tokens is not None:
            updates["max_tokens"] = cli_overrides.max_tokens
        return config.model_copy(update=updates)

    @staticmethod
    def resolve_routing_policy(
        file_config: FileConfig | None,
        cli_overrides: CLIOverrides | None = None,
    ) -> RoutingPolicy:
        """Build the routing policy from file values and CLI overrides."""
        router = file_config.router if file_config else RouterConfig()
        policy_name: str = router.policy
        threshold = router.confidence_threshold

        if cli_overrides is not None:
            if cli_overrides.policy is not None:
                policy_name = cli_overrides.policy
            if cli_overrides.confidence_threshold is not None:
                threshold = cli_overrides.confidence_threshold

        try:
            return RoutingPolicy.by_name(policy_name, threshold)
        except ValueError as e:
            msg = f"Invalid routing policy: {e}"
            raise ConfigurationError(msg) from e

    @staticmethod
    def resolve_orchestrator_config(
        file_config: FileConfig | None,
        *,
        cli_max_iterations: int | None = None,
        cli_parallel_tools: bool | None = None,
    ) -> OrchestratorConfig:
        """Resolve orchestrator configuration.

        Args:
            file_config: Parsed configuration file, or None.
            cli_max_iterations: CLI iteration cap override.
            cli_parallel_tools: CLI parallel tool execution override.

        Returns:
            Resolved OrchestratorConfig.
        """
        config = file_config.orchestrator if file_config else OrchestratorConfig()

        updates: dict[str, Any] = {}
        if cli_max_iterations is not None:
            if cli_max_iterations < 1:
                msg = f"max_iterations must be at least 1, got {cli_max_iterations}"
                raise ConfigurationError(msg)
            updates["max_iterations"] = cli_max_iterations
        if cli_parallel_tools is not None:
            updates["parallel_tools"] = cli_parallel_tools
        return config.model_copy(update=updates)

    @staticmethod
    def resolve_tool_settings(file_config: FileConfig | None) -> ToolSettings:
        return file_config.tools if file_config else ToolSettings()

    @staticmethod
    def resolve_storage_config(
        file_config: FileConfig | None,
        *,
        cli_dir: str | None = None,
    ) -> StorageConfig:
        """Resolve storage locations.

        Args:
            file_config: Parsed configuration file, or None.
            cli_dir: CLI sessions directory override.

        Returns:
            Resolved StorageConfig.
        """
        config = file_config.storage if file_config else StorageConfig()
        if cli_dir is not None:
            config = config.model_copy(update={"dir": cli_dir})
        return config

    @staticmethod
    def build_catalog(file_config: FileConfig | None) -> SourceCatalog:
        """Lookup catalog from the ``web_tools:`` section."""
        return SourceCatalog(file_config.web_tools if file_config else [])


def load_config(explicit_path: Path | None = None) -> FileConfig | None:
    """Convenience function to load configuration.

    Args:
        explicit_path: Explicitly provided config file path.

    Returns:
        Parsed FileConfig, or None if no config file found.
    """
    return ConfigLoader.load_config(explicit_path)
