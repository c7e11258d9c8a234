"""
Configuration file parsing and management.

Supports YAML configuration files (JSON for files ending in .json).
Merges configurations from multiple sources (project → user → system → defaults).
"""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass, field
from typing import Any

import yaml

from .common import vlog
from .installation import SourceKind


CONFIG_LOCATIONS = [
    ".cli-resolver.yml",                                      # Project root (highest priority)
    ".cli-resolver.yaml",
    os.path.expanduser("~/.config/cli-resolver/config.yml"),  # User global
    os.path.expanduser("~/.config/cli-resolver/config.yaml"),
    "/etc/cli-resolver/config.yml",                           # System global
    "/etc/cli-resolver/config.yaml",
]

DEFAULT_BINARY_NAME = "claude"

# Sources that discovery can be told to skip
DISABLEABLE_SOURCES = {kind.value for kind in SourceKind if kind is not SourceKind.MANUAL}


@dataclass(frozen=True)
class Preferences:
    """
    Discovery behaviour.

    Attributes:
        version_arg: Argument passed to candidates to query their version
        timeout_seconds: Per-candidate validation timeout
        max_workers: Maximum number of parallel enumerator/validator workers
        disabled_sources: Source kinds to skip during discovery
        state_file: Where the selected binary is persisted (None = default)
    """
    version_arg: str = "--version"
    timeout_seconds: float = 5.0
    max_workers: int = 8
    disabled_sources: tuple[str, ...] = ()
    state_file: str | None = None

    def __post_init__(self):
        """Validate preferences after initialization."""
        if not self.version_arg:
            raise ValueError("Invalid version_arg: must not be empty")

        if self.timeout_seconds < 0.1 or self.timeout_seconds > 60:
            raise ValueError(
                f"Invalid timeout_seconds: {self.timeout_seconds}. "
                "Must be between 0.1 and 60"
            )

        if self.max_workers < 1 or self.max_workers > 32:
            raise ValueError(
                f"Invalid max_workers: {self.max_workers}. "
                "Must be between 1 and 32"
            )

        unknown = sorted(set(self.disabled_sources) - DISABLEABLE_SOURCES)
        if unknown:
            raise ValueError(
                f"Invalid disabled_sources: {', '.join(unknown)}. "
                f"Must be among: {', '.join(sorted(DISABLEABLE_SOURCES))}"
            )

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Preferences:
        """Create Preferences from dictionary."""
        return Preferences(
            version_arg=data.get("version_arg", "--version"),
            timeout_seconds=float(data.get("timeout_seconds", 5.0)),
            max_workers=data.get("max_workers", 8),
            disabled_sources=tuple(data.get("disabled_sources", ())),
            state_file=data.get("state_file"),
        )


@dataclass(frozen=True)
class Config:
    """
    Complete resolver configuration.

    Attributes:
        version: Config schema version
        binary_name: Name of the CLI binary to resolve
        preferences: Discovery preferences
        source: Path to the configuration file that was loaded
    """
    version: int = 1
    binary_name: str = DEFAULT_BINARY_NAME
    preferences: Preferences = field(default_factory=Preferences)
    source: str = ""

    def __post_init__(self):
        """Validate config after initialization."""
        if self.version != 1:
            raise ValueError(f"Unsupported config version: {self.version}. Expected version 1")

        if not self.binary_name or os.sep in self.binary_name:
            raise ValueError(f"Invalid binary_name: {self.binary_name!r}")

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "") -> Config:
        """Create Config from dictionary."""
        return Config(
            version=data.get("version", 1),
            binary_name=data.get("binary_name", DEFAULT_BINARY_NAME),
            preferences=Preferences.from_dict(data.get("preferences", {})),
            source=source,
        )

    def merge_with(self, other: Config) -> Config:
        """
        Merge this config with another, preferring values from this config.

        Args:
            other: Other config to merge (lower priority)

        Returns:
            New merged Config object
        """
        mine, theirs, default = self.preferences, other.preferences, Preferences()

        def pick(name: str) -> Any:
            value = getattr(mine, name)
            return value if value != getattr(default, name) else getattr(theirs, name)

        merged_preferences = Preferences(
            version_arg=pick("version_arg"),
            timeout_seconds=pick("timeout_seconds"),
            max_workers=pick("max_workers"),
            disabled_sources=tuple(dict.fromkeys(mine.disabled_sources + theirs.disabled_sources)),
            state_file=mine.state_file or theirs.state_file,
        )

        return Config(
            version=self.version,
            binary_name=self.binary_name if self.binary_name != DEFAULT_BINARY_NAME else other.binary_name,
            preferences=merged_preferences,
            source=self.source or other.source,
        )


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Load YAML configuration file.

    Returns:
        Parsed configuration dictionary, or None if the file is unreadable or invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return None


def _load_json(file_path: str) -> dict[str, Any] | None:
    """
    Load JSON configuration file.

    Returns:
        Parsed configuration dictionary, or None if file invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, json.JSONDecodeError):
        return None


def load_config_file(file_path: str, verbose: bool = False) -> Config | None:
    """
    Load configuration from a single file.

    Args:
        file_path: Path to configuration file (.yml, .yaml or .json)
        verbose: Enable verbose logging

    Returns:
        Config object, or None if file cannot be loaded
    """
    if not os.path.exists(file_path):
        return None

    vlog(f"Loading config from: {file_path}", verbose)

    if file_path.endswith(".json"):
        data = _load_json(file_path)
    else:
        data = _load_yaml(file_path)

    if data is None:
        vlog(f"Invalid config file: {file_path}", verbose)
        return None

    try:
        config = Config.from_dict(data, source=file_path)
        vlog(f"Loaded config successfully: {file_path}", verbose)
        return config
    except (ValueError, TypeError) as e:
        vlog(f"Config validation failed for {file_path}: {e}", verbose)
        return None


def _apply_env_overrides(config: Config, verbose: bool = False) -> Config:
    """Apply CLI_RESOLVER_TIMEOUT_SECONDS on top of file configuration."""
    raw = os.environ.get("CLI_RESOLVER_TIMEOUT_SECONDS")
    if not raw:
        return config
    try:
        preferences = dataclasses.replace(config.preferences, timeout_seconds=float(raw))
    except ValueError as e:
        vlog(f"Ignoring CLI_RESOLVER_TIMEOUT_SECONDS={raw}: {e}", verbose)
        return config
    return dataclasses.replace(config, preferences=preferences)


def load_config(
    custom_path: str | None = None,
    verbose: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Configuration precedence (highest to lowest):
    1. Custom path (if provided)
    2. Project .cli-resolver.yml
    3. User ~/.config/cli-resolver/config.yml
    4. System /etc/cli-resolver/config.yml
    5. Default configuration

    Args:
        custom_path: Optional path to custom configuration file
        verbose: Enable verbose logging

    Returns:
        Merged Config object (never None, returns defaults if no config found)

    Raises:
        ValueError: If custom_path is provided but file cannot be loaded
    """
    configs: list[Config] = []

    if custom_path:
        config = load_config_file(custom_path, verbose)
        if config is None:
            raise ValueError(f"Could not load config from specified path: {custom_path}")
        configs.append(config)

    for location in CONFIG_LOCATIONS:
        config = load_config_file(location, verbose)
        if config is not None:
            configs.append(config)
            vlog(f"Found config at: {location}", verbose)

    if not configs:
        vlog("No config files found, using defaults", verbose)
        return _apply_env_overrides(Config(), verbose)

    merged = configs[0]
    for config in configs[1:]:
        merged = merged.merge_with(config)

    vlog(f"Merged {len(configs)} config files", verbose)
    return _apply_env_overrides(merged, verbose)
