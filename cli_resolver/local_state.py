"""
Persisted binary selection.

Stores the selected installation per binary name in a machine-local JSON
file (not meant to be shared between machines). The store only remembers
choices; whether a remembered path still works is decided by the resolver.
"""

from __future__ import annotations

import datetime
import json
import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import PersistenceFailed

DEFAULT_STATE_FILE = os.path.join("~", ".config", "cli-resolver", "state.json")
SCHEMA_VERSION = 1


def _utc_now() -> str:
    return (
        datetime.datetime.now(datetime.timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


@dataclass
class SelectedBinary:
    """Remembered selection for one binary."""

    path: str = ""
    source: str = ""
    version: str = ""
    selected_at: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {
            "path": self.path,
            "source": self.source,
            "version": self.version,
            "selected_at": self.selected_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SelectedBinary":
        """Create from dictionary."""
        return cls(
            path=data.get("path", ""),
            source=data.get("source", ""),
            version=data.get("version", "") or "",
            selected_at=data.get("selected_at", ""),
        )


@dataclass
class LocalState:
    """Container for persisted selections with metadata."""

    binaries: dict[str, SelectedBinary] = field(default_factory=dict)
    schema_version: int = SCHEMA_VERSION
    updated_at: str = ""
    hostname: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "__meta__": {
                "schema_version": self.schema_version,
                "updated_at": self.updated_at,
                "hostname": self.hostname,
            },
            "binaries": {
                name: selected.to_dict() for name, selected in self.binaries.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LocalState":
        """Create from dictionary."""
        meta = data.get("__meta__", {})
        binaries_raw = data.get("binaries", {})

        binaries = {
            name: SelectedBinary.from_dict(entry)
            for name, entry in binaries_raw.items()
            if isinstance(entry, dict)
        }

        return cls(
            binaries=binaries,
            schema_version=meta.get("schema_version", SCHEMA_VERSION),
            updated_at=meta.get("updated_at", ""),
            hostname=meta.get("hostname", ""),
        )


def get_local_state_path(custom_path: str | None = None) -> Path:
    """Get state file path from argument, CLI_RESOLVER_STATE_FILE or the default.

    Returns:
        Path to state file
    """
    state_file = custom_path or os.environ.get("CLI_RESOLVER_STATE_FILE") or DEFAULT_STATE_FILE
    return Path(os.path.expanduser(state_file)).absolute()


def load_local_state(path: Path | None = None) -> LocalState:
    """Load state from file.

    A missing, unreadable or malformed file yields an empty state.

    Args:
        path: Optional path to state file (uses default if None)

    Returns:
        LocalState instance
    """
    if path is None:
        path = get_local_state_path()

    if not path.exists():
        return LocalState()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return LocalState()
    if not isinstance(data, dict):
        return LocalState()
    return LocalState.from_dict(data)


def write_local_state(state: LocalState, path: Path | None = None) -> None:
    """Write state to file atomically.

    Args:
        state: LocalState instance to write
        path: Optional path to state file (uses default if None)

    Raises:
        OSError: If the file cannot be written
    """
    if path is None:
        path = get_local_state_path()

    state.updated_at = _utc_now()
    state.hostname = socket.gethostname()

    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(".tmp")
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f, indent=2, ensure_ascii=False, sort_keys=True)
        temp_path.replace(path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


class LocalStateStore:
    """
    Configuration collaborator for one binary.

    Attributes:
        binary_name: Key under which the selection is stored
        path: State file location
    """

    def __init__(self, binary_name: str, path: Path | str | None = None):
        self.binary_name = binary_name
        self.path = Path(path) if path is not None else get_local_state_path()

    def load_selected(self) -> SelectedBinary | None:
        selected = load_local_state(self.path).binaries.get(self.binary_name)
        if selected is None or not selected.path:
            return None
        return selected

    def load_selected_path(self) -> str | None:
        """Return the remembered binary path, if any."""
        selected = self.load_selected()
        return selected.path if selected else None

    def save_selected_path(self, path: str, source: str = "", version: str | None = None) -> None:
        """
        Remember ``path`` as the selected binary.

        Raises:
            PersistenceFailed: The state file could not be written
        """
        state = load_local_state(self.path)
        state.binaries[self.binary_name] = SelectedBinary(
            path=path,
            source=source,
            version=version or "",
            selected_at=_utc_now(),
        )
        try:
            write_local_state(state, self.path)
        except OSError as e:
            raise PersistenceFailed(str(self.path), e) from e

