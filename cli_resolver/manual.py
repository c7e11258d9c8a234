"""
Manual override validation.

Checks a user-supplied path (typed in, or chosen in a file dialog) outside
a discovery pass. Failures propagate so the user learns why the path was
rejected.
"""

from __future__ import annotations

import os
import threading

from .errors import NotExecutable
from .installation import MANUAL, Installation
from .validator import DEFAULT_TIMEOUT_SECONDS, DEFAULT_VERSION_ARG, Runner, run_process, validate_candidate


def normalize_manual_path(raw_path: str) -> str:
    """Trim whitespace, expand ``~`` and make the path absolute."""
    path = (raw_path or "").strip()
    if not path:
        raise NotExecutable(raw_path or "", "no path given")
    return os.path.abspath(os.path.expanduser(path))


def validate_manual_path(
    raw_path: str,
    version_arg: str = DEFAULT_VERSION_ARG,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    cancel_event: threading.Event | None = None,
    runner: Runner = run_process,
    verbose: bool = False,
) -> Installation:
    """
    Validate a manually supplied binary path.

    Args:
        raw_path: Path as entered by the user
        version_arg: Version-query argument
        timeout: Validation timeout in seconds
        cancel_event: Optional cancellation signal
        runner: Process execution capability
        verbose: Enable verbose logging

    Returns:
        Installation with source ``manual``

    Raises:
        NotExecutable: Empty input, missing file or non-executable file
        InvocationFailed: The binary ran but failed its version query
    """
    path = normalize_manual_path(raw_path)
    return validate_candidate(
        path,
        MANUAL,
        version_arg=version_arg,
        timeout=timeout,
        cancel_event=cancel_event,
        runner=runner,
        verbose=verbose,
    )
