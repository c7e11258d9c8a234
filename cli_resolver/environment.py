"""
Host environment snapshot for candidate enumeration.

Enumerators read environment variables, HOME and PATH from a frozen
snapshot instead of os.environ, so one discovery pass sees one consistent
view of the host and tests can fabricate any environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from .common import vlog


@dataclass(frozen=True)
class HostEnvironment:
    """
    Environment state relevant to discovery.

    Attributes:
        home: User home directory
        path_dirs: PATH entries in order, empty entries removed
        variables: Environment variables captured at snapshot time
        windows: Whether executable names need Windows suffixes
    """
    home: str
    path_dirs: tuple[str, ...] = ()
    variables: Mapping[str, str] = field(default_factory=dict)
    windows: bool = False

    def get(self, name: str) -> str | None:
        """Return a non-empty variable value, or None."""
        value = self.variables.get(name)
        return value if value else None

    def home_path(self, *parts: str) -> str:
        return os.path.join(self.home, *parts)

    def executable_names(self, binary_name: str) -> tuple[str, ...]:
        """File names the binary may have on this platform."""
        if self.windows:
            return (f"{binary_name}.cmd", f"{binary_name}.exe", f"{binary_name}.bat", binary_name)
        return (binary_name,)


def detect_environment(
    variables: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> HostEnvironment:
    """
    Capture the current process environment.

    Args:
        variables: Environment mapping (defaults to os.environ)
        verbose: Enable verbose logging

    Returns:
        HostEnvironment snapshot
    """
    if variables is None:
        variables = os.environ

    snapshot = dict(variables)
    home = snapshot.get("HOME") or os.path.expanduser("~")
    path_dirs = tuple(d for d in snapshot.get("PATH", "").split(os.pathsep) if d)

    vlog(f"Environment snapshot: home={home}, {len(path_dirs)} PATH entries", verbose)
    return HostEnvironment(
        home=home,
        path_dirs=path_dirs,
        variables=snapshot,
        windows=os.name == "nt",
    )
