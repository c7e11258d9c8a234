"""
Candidate validation.

A candidate is accepted when it is an executable regular file that exits
cleanly when queried for its version. This is the only module that spawns
processes; every child is bounded by a timeout and killed on cancellation.
"""

from __future__ import annotations

import os
import re
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Callable, Sequence

from .common import vlog
from .errors import DiscoveryCancelled, InvocationFailed, NotExecutable
from .installation import Installation, Source, canonical_path


DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_VERSION_ARG = "--version"

# How often a waiting validator checks for cancellation
POLL_INTERVAL = 0.05

VERSION_RE = re.compile(r"(\d+\.\d+(?:\.\d+)?(?:-[0-9A-Za-z.]+)?)")
ANSI_ESCAPE_RE = re.compile(r'\x1b\[[0-9;]*m')


@dataclass(frozen=True)
class ProcessOutput:
    """Captured result of a finished child process."""
    exit_code: int
    stdout: str
    stderr: str


Runner = Callable[[Sequence[str], float, "threading.Event | None"], ProcessOutput]


def _kill(proc: subprocess.Popen) -> None:
    """Kill the child and anything it spawned, then reap it."""
    try:
        if os.name == "nt":
            proc.kill()
        else:
            os.killpg(proc.pid, signal.SIGKILL)
    except OSError:
        pass
    try:
        proc.communicate(timeout=1)
    except (subprocess.TimeoutExpired, ValueError, OSError):
        for stream in (proc.stdout, proc.stderr):
            if stream is not None:
                stream.close()
        proc.wait()


def run_process(
    args: Sequence[str],
    timeout: float,
    cancel_event: threading.Event | None = None,
) -> ProcessOutput:
    """
    Run a command and capture its output.

    Args:
        args: Command and arguments
        timeout: Seconds to wait before killing the child
        cancel_event: When set, the child is killed and DiscoveryCancelled raised

    Returns:
        ProcessOutput of the finished process

    Raises:
        InvocationFailed: Spawn error or timeout
        DiscoveryCancelled: cancel_event was set while waiting
    """
    path = args[0]
    try:
        proc = subprocess.Popen(
            list(args),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,  # Isolate stdin
            text=True,
            errors="replace",
            env={**os.environ, "TERM": "dumb", "NO_COLOR": "1"},
            start_new_session=os.name != "nt",
        )
    except OSError as e:
        raise InvocationFailed(path, f"could not start process: {e}", cause=e) from e

    deadline = time.monotonic() + timeout
    try:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise DiscoveryCancelled(f"Validation of {path} cancelled")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise InvocationFailed(path, f"timed out after {timeout:g}s")
            try:
                stdout, stderr = proc.communicate(timeout=min(POLL_INTERVAL, remaining))
                break
            except subprocess.TimeoutExpired:
                continue
    except BaseException:
        _kill(proc)
        raise

    return ProcessOutput(proc.returncode, stdout or "", stderr or "")


def parse_version(output: str) -> str | None:
    """
    Extract a version token from command output.

    Args:
        output: Captured stdout/stderr text

    Returns:
        Version string (e.g., "1.0.17") or None
    """
    for line in output.splitlines():
        line = ANSI_ESCAPE_RE.sub('', line.strip())
        m = VERSION_RE.search(line)
        if m:
            return m.group(1)
    return None


def check_executable(path: str) -> None:
    """
    Raise NotExecutable unless ``path`` is an executable regular file.
    """
    if not path:
        raise NotExecutable(path, "empty path")
    if not os.path.exists(path):
        raise NotExecutable(path, "no such file")
    if not os.path.isfile(path):
        raise NotExecutable(path, "not a regular file")
    if not os.access(path, os.X_OK):
        raise NotExecutable(path, "file is not executable")


def validate_candidate(
    path: str,
    source: Source,
    version_arg: str = DEFAULT_VERSION_ARG,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    cancel_event: threading.Event | None = None,
    runner: Runner = run_process,
    verbose: bool = False,
) -> Installation:
    """
    Validate a candidate by running it with a version query.

    Args:
        path: Candidate binary path
        source: Source to attribute the installation to
        version_arg: Version-query argument
        timeout: Per-invocation timeout in seconds
        cancel_event: Cancellation signal for the owning discovery pass
        runner: Process execution capability
        verbose: Enable verbose logging

    Returns:
        Validated Installation (version is None when no token was found)

    Raises:
        NotExecutable: Path missing or not an executable file
        InvocationFailed: Spawn error, non-zero exit or timeout
        DiscoveryCancelled: Cancelled while waiting on the child
    """
    check_executable(path)

    output = runner([path, version_arg], timeout, cancel_event)
    if output.exit_code != 0:
        raise InvocationFailed(
            path,
            f"'{version_arg}' exited with code {output.exit_code}",
            exit_code=output.exit_code,
            stderr=output.stderr,
        )

    version = parse_version(output.stdout) or parse_version(output.stderr)
    if version is None:
        vlog(f"  No version token in output of {path}", verbose)

    return Installation(
        path=path,
        version=version,
        source=source,
        canonical_path=canonical_path(path),
    )
