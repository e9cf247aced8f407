"""Named credential storage.

The core only talks to a :class:`SecretProvider`. Lookups go through
:func:`resolve_secret`, which checks the provider first and then an
environment variable named after the secret (``tavily_api_key`` ->
``TAVILY_API_KEY``). Empty values count as absent.
"""

import os
import stat
from abc import ABC, abstractmethod
from pathlib import Path

import yaml

from turnloop.exceptions import ConfigurationError

ANTHROPIC_API_KEY = "anthropic_api_key"
TAVILY_API_KEY = "tavily_api_key"

KNOWN_SECRETS = (ANTHROPIC_API_KEY, TAVILY_API_KEY)


class SecretProvider(ABC):
    """Keyed secret store."""

    @abstractmethod
    def get(self, name: str) -> str | None: ...

    @abstractmethod
    def set(self, name: str, value: str) -> bool: ...

    @abstractmethod
    def delete(self, name: str) -> bool: ...

    def has(self, name: str) -> bool:
        return bool(self.get(name))


class MemorySecretStore(SecretProvider):
    """Process-local store, mainly for tests and embedding."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values = dict(initial or {})

    def get(self, name: str) -> str | None:
        return self._values.get(name) or None

    def set(self, name: str, value: str) -> bool:
        self._values[name] = value
        return True

    def delete(self, name: str) -> bool:
        return self._values.pop(name, None) is not None


class FileSecretStore(SecretProvider):
    """YAML file of name: value pairs, written with owner-only permissions."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open() as f:
                content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            msg = f"Failed to parse secrets file {self._path}: {e}"
            raise ConfigurationError(msg) from e
        except OSError as e:
            msg = f"Failed to read secrets file {self._path}: {e}"
            raise ConfigurationError(msg) from e
        if content is None:
            return {}
        if not isinstance(content, dict):
            msg = f"Secrets file {self._path} must contain a mapping"
            raise ConfigurationError(msg)
        return {str(k): str(v) for k, v in content.items() if v is not None}

    def _save(self, values: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(yaml.safe_dump(values, default_flow_style=False))
        self._path.chmod(stat.S_IRUSR | stat.S_IWUSR)

    def get(self, name: str) -> str | None:
        return self._load().get(name) or None

    def set(self, name: str, value: str) -> bool:
        values = self._load()
        values[name] = value
        self._save(values)
        return True

    def delete(self, name: str) -> bool:
        values = self._load()
        if name not in values:
            return False
        del values[name]
        self._save(values)
        return True

    def names(self) -> list[str]:
        return sorted(self._load())


def env_var_for(name: str) -> str:
    return name.upper()


def resolve_secret(provider: SecretProvider | None, name: str) -> str | None:
    """Resolve a secret from the provider, then from the environment.

    Args:
        provider: Secret store to consult first, or None.
        name: Secret name, e.g. ``tavily_api_key``.

    Returns:
        The first non-empty value found, or None.
    """
    if provider is not None:
        value = provider.get(name)
        if value:
            return value
    return os.environ.get(env_var_for(name)) or None
