"""
Shared fixtures for cli_resolver tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from cli_resolver.errors import PersistenceFailed
from cli_resolver.installation import Candidate, Installation, Source, SourceKind
from cli_resolver.enumerators import Enumerator


# Binary name unlikely to exist on any test machine
TOOL = "cli-resolver-fake-tool"

skip_on_windows = pytest.mark.skipif(
    sys.platform == "win32",
    reason="Uses POSIX shell scripts as fake binaries",
)


@pytest.fixture
def make_script(tmp_path):
    """Create an executable shell script and return its path."""
    def _make(name: str, body: str, directory: Path | None = None, mode: int = 0o755) -> str:
        directory = directory or tmp_path / "bin"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(mode)
        return str(path)
    return _make


class FakeState:
    """In-memory configuration collaborator."""

    def __init__(self, selected_path: str | None = None, fail_save: bool = False):
        self.selected_path = selected_path
        self.fail_save = fail_save
        self.saved: list[tuple[str, str, str | None]] = []
        self.path = "/fake/state.json"

    def load_selected_path(self) -> str | None:
        return self.selected_path

    def save_selected_path(self, path: str, source: str = "", version: str | None = None) -> None:
        if self.fail_save:
            raise PersistenceFailed(self.path, OSError("read-only file system"))
        self.saved.append((path, source, version))
        self.selected_path = path


def static_enumerator(kind: SourceKind, *paths: str, source: Source | None = None) -> Enumerator:
    """Enumerator that always proposes ``paths``."""
    src = source or Source(kind)
    return Enumerator(
        name=src.tag,
        kind=kind,
        search=lambda env, name: [Candidate(p, src) for p in paths],
    )


def fake_validator(versions: dict[str, str | None] | None = None, failures: dict | None = None):
    """Validator that accepts every path except those in ``failures``."""
    versions = versions or {}
    failures = failures or {}
    calls: list[str] = []

    def validate(path, source, version_arg="--version", timeout=5.0, cancel_event=None, verbose=False, **kwargs):
        calls.append(path)
        if path in failures:
            raise failures[path]
        return Installation(path=path, version=versions.get(path), source=source, canonical_path=path)

    validate.calls = calls
    return validate
