"""
Installation and source data types.

A Source is a closed tagged variant: every kind except VERSION_MANAGER is a
plain tag, VERSION_MANAGER carries the manager name and runtime version slot.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum


class SourceKind(Enum):
    """Discovery method that produced a candidate, in ranking order."""
    SYSTEM_PATH = "system-path"
    HOMEBREW = "homebrew"
    SYSTEM = "system"
    VERSION_MANAGER = "version-manager"
    LOCAL_BIN = "local-bin"
    ECOSYSTEM_LOCAL = "ecosystem-local"
    NPM_GLOBAL = "npm-global"
    YARN = "yarn"
    YARN_GLOBAL = "yarn-global"
    BUN = "bun"
    MANUAL = "manual"


# Version managers the enumerators know how to read
VERSION_MANAGERS = ("nvm", "fnm")


@dataclass(frozen=True)
class Source:
    """
    Origin of an installation.

    Attributes:
        kind: Discovery method
        manager: Version manager name (VERSION_MANAGER only)
        runtime_version: Runtime version slot, e.g. "v20.11.0" (VERSION_MANAGER only)
    """
    kind: SourceKind
    manager: str | None = None
    runtime_version: str | None = None

    def __post_init__(self):
        if self.kind is SourceKind.VERSION_MANAGER:
            if not self.manager or not self.runtime_version:
                raise ValueError("version-manager source requires manager and runtime_version")
        elif self.manager is not None or self.runtime_version is not None:
            raise ValueError(f"{self.kind.value} source takes no manager payload")

    @staticmethod
    def version_manager(manager: str, runtime_version: str) -> Source:
        return Source(SourceKind.VERSION_MANAGER, manager, runtime_version)

    @property
    def tag(self) -> str:
        """Wire form: "nvm v20.11.0" for version managers, else the kind value."""
        if self.kind is SourceKind.VERSION_MANAGER:
            return f"{self.manager} {self.runtime_version}"
        return self.kind.value

    @staticmethod
    def parse(tag: str) -> Source:
        """Inverse of ``tag``. Raises ValueError for unknown tags."""
        tag = tag.strip()
        manager, _, runtime_version = tag.partition(" ")
        if manager in VERSION_MANAGERS and runtime_version:
            return Source.version_manager(manager, runtime_version.strip())
        return Source(SourceKind(tag))

    def __str__(self) -> str:
        return self.tag


MANUAL = Source(SourceKind.MANUAL)


@dataclass(frozen=True)
class Candidate:
    """A path proposed by an enumerator, prior to validation."""
    path: str
    source: Source


def canonical_path(path: str) -> str:
    """Resolve symlinks; falls back to the absolute path when resolution fails."""
    try:
        return os.path.realpath(path)
    except (OSError, ValueError):
        return os.path.abspath(path)


@dataclass(frozen=True)
class Installation:
    """
    A validated (or user-asserted manual) binary.

    Attributes:
        path: Absolute path as discovered or entered
        version: Version token reported by the binary, if any
        source: Where the installation came from
        canonical_path: Symlink-resolved path, set by validation
        validated: False only for entries synthesized from a persisted path
    """
    path: str
    version: str | None
    source: Source
    canonical_path: str | None = None
    validated: bool = True

    @property
    def identity(self) -> str:
        """Deduplication key."""
        return self.canonical_path or self.path

    def same_binary(self, other: Installation) -> bool:
        return self.identity == other.identity or self.path == other.path

    def matches_path(self, path: str) -> bool:
        """True when ``path`` names this installation, directly or via symlinks."""
        return path == self.path or canonical_path(path) == self.identity

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "path": self.path,
            "version": self.version,
            "source": self.source.tag,
            "canonical_path": self.canonical_path,
            "validated": self.validated,
        }
