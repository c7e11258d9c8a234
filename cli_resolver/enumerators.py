"""
Candidate source enumerators.

Each enumerator looks in the directories of one discovery method and
proposes every file named like the binary. A missing directory, unset
variable or unreadable location is a normal "source not present" outcome:
enumerators return an empty list (or raise SourceUnavailable, which the
discovery runner treats the same way).
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import partial
from typing import Callable, Sequence

from packaging import version as pkg_version

from .environment import HostEnvironment
from .errors import SourceUnavailable
from .installation import Candidate, Source, SourceKind


SearchFunc = Callable[[HostEnvironment, str], "list[Candidate]"]

HOMEBREW_DIRS = ("/opt/homebrew/bin", "/usr/local/bin")
SYSTEM_DIRS = ("/usr/bin", "/bin")

RUNTIME_VERSION_RE = re.compile(r"^v?\d+(?:\.\d+)*$")


@dataclass(frozen=True)
class Enumerator:
    """
    One discovery source.

    Attributes:
        name: Display name used in logs
        kind: Source kind this enumerator produces
        search: Function returning candidates for (environment, binary name)
    """
    name: str
    kind: SourceKind
    search: SearchFunc

    def __call__(self, env: HostEnvironment, binary_name: str) -> list[Candidate]:
        return self.search(env, binary_name)


def _is_file(path: str) -> bool:
    try:
        return os.path.isfile(path)
    except (OSError, ValueError):
        return False


def _find_in_dirs(
    env: HostEnvironment,
    dirs: Sequence[str],
    binary_name: str,
    source: Source,
) -> list[Candidate]:
    """Return candidates for every existing binary file in ``dirs``, in order."""
    candidates: list[Candidate] = []
    seen: set[str] = set()
    for directory in dirs:
        if not directory:
            continue
        for name in env.executable_names(binary_name):
            full_path = os.path.abspath(os.path.join(directory, name))
            if full_path in seen or not _is_file(full_path):
                continue
            seen.add(full_path)
            candidates.append(Candidate(full_path, source))
    return candidates


def search_system_path(env: HostEnvironment, binary_name: str) -> list[Candidate]:
    """Every PATH match in PATH order, like ``which -a``."""
    if not env.path_dirs:
        raise SourceUnavailable("PATH is empty")
    return _find_in_dirs(env, env.path_dirs, binary_name, Source(SourceKind.SYSTEM_PATH))


def search_homebrew(env: HostEnvironment, binary_name: str) -> list[Candidate]:
    dirs = list(HOMEBREW_DIRS)
    prefix = env.get("HOMEBREW_PREFIX")
    if prefix:
        dirs.insert(0, os.path.join(prefix, "bin"))
    return _find_in_dirs(env, dirs, binary_name, Source(SourceKind.HOMEBREW))


def search_system(env: HostEnvironment, binary_name: str) -> list[Candidate]:
    return _find_in_dirs(env, SYSTEM_DIRS, binary_name, Source(SourceKind.SYSTEM))


def search_local_bin(env: HostEnvironment, binary_name: str) -> list[Candidate]:
    return _find_in_dirs(env, [env.home_path(".local", "bin")], binary_name, Source(SourceKind.LOCAL_BIN))


def search_ecosystem_local(env: HostEnvironment, binary_name: str) -> list[Candidate]:
    """The tool's own local install (~/.<name>/local) and ~/node_modules/.bin."""
    dirs = [
        env.home_path(f".{binary_name}", "local"),
        env.home_path("node_modules", ".bin"),
    ]
    return _find_in_dirs(env, dirs, binary_name, Source(SourceKind.ECOSYSTEM_LOCAL))


def search_npm_global(env: HostEnvironment, binary_name: str) -> list[Candidate]:
    dirs = [env.home_path(".npm-global", "bin")]
    prefix = env.get("NPM_CONFIG_PREFIX") or env.get("npm_config_prefix")
    if prefix:
        dirs.insert(0, prefix if env.windows else os.path.join(prefix, "bin"))
    return _find_in_dirs(env, dirs, binary_name, Source(SourceKind.NPM_GLOBAL))


def search_yarn(env: HostEnvironment, binary_name: str) -> list[Candidate]:
    return _find_in_dirs(env, [env.home_path(".yarn", "bin")], binary_name, Source(SourceKind.YARN))


def search_yarn_global(env: HostEnvironment, binary_name: str) -> list[Candidate]:
    dirs = [env.home_path(".config", "yarn", "global", "node_modules", ".bin")]
    return _find_in_dirs(env, dirs, binary_name, Source(SourceKind.YARN_GLOBAL))


def search_bun(env: HostEnvironment, binary_name: str) -> list[Candidate]:
    dirs = [env.home_path(".bun", "bin")]
    bun_install = env.get("BUN_INSTALL")
    if bun_install:
        dirs.insert(0, os.path.join(bun_install, "bin"))
    return _find_in_dirs(env, dirs, binary_name, Source(SourceKind.BUN))


def _list_version_dirs(root: str) -> list[str]:
    """Runtime version directory names under ``root``; empty if root is absent."""
    try:
        entries = os.listdir(root)
    except OSError:
        return []
    return sorted(e for e in entries if RUNTIME_VERSION_RE.match(e) and os.path.isdir(os.path.join(root, e)))


def detect_runtime_versions(env: HostEnvironment) -> list[tuple[str, str, str]]:
    """
    Find runtime versions installed by known version managers.

    Returns:
        List of (manager, runtime_version, bin_dir) tuples, newest version first
    """
    found: list[tuple[str, str, str]] = []

    nvm_root = os.path.join(env.get("NVM_DIR") or env.home_path(".nvm"), "versions", "node")
    for runtime_version in _list_version_dirs(nvm_root):
        found.append(("nvm", runtime_version, os.path.join(nvm_root, runtime_version, "bin")))

    fnm_root = os.path.join(
        env.get("FNM_DIR") or env.home_path(".local", "share", "fnm"),
        "node-versions",
    )
    for runtime_version in _list_version_dirs(fnm_root):
        found.append(("fnm", runtime_version, os.path.join(fnm_root, runtime_version, "installation", "bin")))

    # Newest runtime first; equal versions ordered by manager name
    found.sort(key=lambda item: item[0])
    found.sort(key=lambda item: runtime_version_key(item[1]), reverse=True)
    return found


def runtime_version_key(runtime_version: str) -> pkg_version.Version:
    """Sort key for runtime versions such as "v20.11.0"."""
    try:
        return pkg_version.parse(runtime_version.lstrip("v"))
    except pkg_version.InvalidVersion:
        return pkg_version.parse("0")


def _search_runtime_bin(bin_dir: str, source: Source, env: HostEnvironment, binary_name: str) -> list[Candidate]:
    return _find_in_dirs(env, [bin_dir], binary_name, source)


def version_manager_enumerators(env: HostEnvironment) -> list[Enumerator]:
    """One enumerator per detected runtime version, tagged with that version."""
    enumerators = []
    for manager, runtime_version, bin_dir in detect_runtime_versions(env):
        source = Source.version_manager(manager, runtime_version)
        enumerators.append(Enumerator(
            name=source.tag,
            kind=SourceKind.VERSION_MANAGER,
            search=partial(_search_runtime_bin, bin_dir, source),
        ))
    return enumerators


def default_enumerators(
    env: HostEnvironment,
    disabled_sources: Sequence[str] = (),
) -> list[Enumerator]:
    """
    Build the enumerator list in source priority order.

    Args:
        env: Host environment snapshot
        disabled_sources: Source kind values to leave out

    Returns:
        Ordered list of enumerators
    """
    enumerators = [
        Enumerator("system-path", SourceKind.SYSTEM_PATH, search_system_path),
        Enumerator("homebrew", SourceKind.HOMEBREW, search_homebrew),
        Enumerator("system", SourceKind.SYSTEM, search_system),
        *version_manager_enumerators(env),
        Enumerator("local-bin", SourceKind.LOCAL_BIN, search_local_bin),
        Enumerator("ecosystem-local", SourceKind.ECOSYSTEM_LOCAL, search_ecosystem_local),
        Enumerator("npm-global", SourceKind.NPM_GLOBAL, search_npm_global),
        Enumerator("yarn", SourceKind.YARN, search_yarn),
        Enumerator("yarn-global", SourceKind.YARN_GLOBAL, search_yarn_global),
        Enumerator("bun", SourceKind.BUN, search_bun),
    ]
    disabled = set(disabled_sources)
    return [e for e in enumerators if e.kind.value not in disabled]
