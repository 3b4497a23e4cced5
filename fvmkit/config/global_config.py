"""Global settings for fvmkit.

The settings live in ``<home>/config.yaml``::

    flutter_url: https://github.com/flutter/flutter.git
    storage_base_url: https://storage.googleapis.com
    forks:
      mycompany: https://github.com/mycompany/flutter.git

Only the source URLs and fork aliases are consumed by the install core.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from fvmkit.core.directory import is_valid_path_component
from fvmkit.core.exceptions import ConfigError
from fvmkit.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

DEFAULT_FLUTTER_URL = "https://github.com/flutter/flutter.git"
DEFAULT_STORAGE_BASE_URL = "https://storage.googleapis.com"

FLUTTER_GIT_URL_ENV = "FLUTTER_GIT_URL"
FLUTTER_STORAGE_BASE_URL_ENV = "FLUTTER_STORAGE_BASE_URL"


@dataclass
class Fork:
    """A fork alias and the git URL it points to."""

    name: str
    url: str


@dataclass
class GlobalConfig:
    """Global fvmkit configuration."""

    path: Optional[Path] = None
    flutter_url: Optional[str] = None
    storage_base_url_setting: Optional[str] = None
    forks: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> "GlobalConfig":
        """
        Load configuration from a YAML file.

        A missing file yields the defaults.

        Raises:
            ConfigError: If the file is not valid YAML or has the wrong shape
        """
        path = Path(path)
        if not path.exists():
            logger.debug(f"Config file not found, using defaults: {path}")
            return cls(path=path)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration in {path} must be a mapping")

        forks = data.get("forks") or {}
        if not isinstance(forks, dict):
            raise ConfigError("'forks' must be a mapping of alias to git URL")

        return cls(
            path=path,
            flutter_url=data.get("flutter_url"),
            storage_base_url_setting=data.get("storage_base_url"),
            forks={str(k): str(v) for k, v in forks.items()},
        )

    def save(self) -> None:
        """Write configuration back to its file."""
        if self.path is None:
            raise ConfigError("Configuration has no file path to save to")

        data: dict = {}
        if self.flutter_url:
            data["flutter_url"] = self.flutter_url
        if self.storage_base_url_setting:
            data["storage_base_url"] = self.storage_base_url_setting
        if self.forks:
            data["forks"] = dict(sorted(self.forks.items()))

        atomic_write(self.path, yaml.safe_dump(data, sort_keys=False))
        logger.debug(f"Saved configuration to {self.path}")

    # Settings provider -----------------------------------------------------

    def default_source_url(self) -> str:
        """Git URL of the default Flutter origin."""
        return (
            os.environ.get(FLUTTER_GIT_URL_ENV)
            or self.flutter_url
            or DEFAULT_FLUTTER_URL
        )

    def fork_url(self, alias: str) -> Optional[str]:
        return self.forks.get(alias)

    def storage_base_url(self) -> str:
        """Base URL of the release manifest and engine archive storage."""
        url = (
            os.environ.get(FLUTTER_STORAGE_BASE_URL_ENV)
            or self.storage_base_url_setting
            or DEFAULT_STORAGE_BASE_URL
        )
        return url.rstrip("/")

    # Fork management ------------------------------------------------------

    def add_fork(self, alias: str, url: str) -> None:
        """
        Register a fork alias.

        Raises:
            ConfigError: If the alias is taken or cannot name a directory
                (".", "..", "/", "\\", "@"), or the URL does not end with '.git'
        """
        if not is_valid_path_component(alias):
            raise ConfigError(f"Invalid fork alias: '{alias}'")
        if not url.endswith(".git"):
            raise ConfigError(f"Invalid Git URL: {url}. URL must end with '.git'")
        if alias in self.forks:
            raise ConfigError(f"Fork '{alias}' already exists ({self.forks[alias]})")

        self.forks[alias] = url

    def remove_fork(self, alias: str) -> None:
        if alias not in self.forks:
            raise ConfigError(f"Fork '{alias}' does not exist")
        del self.forks[alias]

    def list_forks(self) -> List[Fork]:
        return [Fork(name, url) for name, url in sorted(self.forks.items())]


__all__ = [
    "GlobalConfig",
    "Fork",
    "DEFAULT_FLUTTER_URL",
    "DEFAULT_STORAGE_BASE_URL",
    "FLUTTER_GIT_URL_ENV",
    "FLUTTER_STORAGE_BASE_URL_ENV",
]
