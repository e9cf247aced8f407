"""Configuration file support for turnloop."""

from turnloop.config.loader import (
    CLIOverrides,
    ConfigLoader,
    FileConfig,
    StorageConfig,
    load_config,
)

__all__ = [
    "CLIOverrides",
    "ConfigLoader",
    "FileConfig",
    "StorageConfig",
    "load_config",
]
