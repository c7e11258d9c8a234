"""
Discovery pass: enumerate, validate, rank.

Enumerators run concurrently, then every distinct candidate file is
validated concurrently. Results are collected by index and ranked only
after fan-in, so completion order never leaks into the final order.
"""

from __future__ import annotations

import dataclasses
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Sequence

from .common import vlog
from .enumerators import Enumerator
from .environment import HostEnvironment
from .errors import DiscoveryCancelled, InvocationFailed, ResolverError, SourceUnavailable
from .installation import Candidate, Installation, canonical_path
from .logging_config import get_logger
from .ranking import rank_and_deduplicate
from .validator import DEFAULT_TIMEOUT_SECONDS, DEFAULT_VERSION_ARG, validate_candidate


ValidateFunc = Callable[..., Installation]


@dataclass(frozen=True)
class DiscoveryReport:
    """
    Outcome of one discovery pass.

    Attributes:
        installations: Ranked, deduplicated installations
        rejected: Candidates that failed validation, with the reason
        duration_seconds: Wall time of the pass
    """
    installations: tuple[Installation, ...]
    rejected: tuple[tuple[Candidate, ResolverError], ...] = ()
    duration_seconds: float = 0.0


def _safe_enumerate(
    enumerator: Enumerator,
    env: HostEnvironment,
    binary_name: str,
    verbose: bool,
) -> list[Candidate]:
    """Run one enumerator; any failure means "source not present"."""
    try:
        candidates = list(enumerator(env, binary_name))
    except SourceUnavailable as e:
        vlog(f"  {enumerator.name}: unavailable ({e})", verbose)
        return []
    except OSError as e:
        vlog(f"  {enumerator.name}: unreadable ({e})", verbose)
        return []
    except Exception as e:
        get_logger().warning(f"Enumerator {enumerator.name} failed: {e}")
        return []

    for cand in candidates:
        vlog(f"  {enumerator.name}: candidate {cand.path}", verbose)
    return candidates


def _check_cancelled(cancel_event: threading.Event) -> None:
    if cancel_event.is_set():
        raise DiscoveryCancelled()


def discover_installations(
    env: HostEnvironment,
    binary_name: str,
    enumerators: Sequence[Enumerator],
    validate: ValidateFunc = validate_candidate,
    version_arg: str = DEFAULT_VERSION_ARG,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    max_workers: int = 8,
    cancel_event: threading.Event | None = None,
    verbose: bool = False,
) -> DiscoveryReport:
    """
    Run a full discovery pass.

    Every distinct file is executed once; the result is attributed to each
    candidate path that resolves to it, so aliases share one version.

    Args:
        env: Host environment snapshot
        binary_name: Binary to look for
        enumerators: Enumerators in priority order
        validate: Candidate validator
        version_arg: Version-query argument passed to candidates
        timeout: Per-candidate validation timeout
        max_workers: Enumerator pool size, and the minimum validator pool size
        cancel_event: Set by the caller to abandon the pass
        verbose: Enable verbose logging

    Returns:
        DiscoveryReport with ranked installations (possibly empty)

    Raises:
        DiscoveryCancelled: cancel_event was set before the pass finished;
            running validators have killed their child processes
    """
    start_time = time.time()
    if cancel_event is None:
        cancel_event = threading.Event()

    vlog(f"Discovering installations of {binary_name} ({len(enumerators)} sources)...", verbose)

    per_source = _enumerate_all(enumerators, env, binary_name, max_workers, cancel_event, verbose)

    # Group candidates by canonical path so each file is run once
    groups: dict[str, list[Candidate]] = {}
    for candidates in per_source:
        for cand in candidates:
            groups.setdefault(canonical_path(cand.path), []).append(cand)

    validated, failures = _validate_all(
        groups, validate, version_arg, timeout, max_workers, cancel_event, verbose,
    )

    # Fan in: expand each validated file back to every candidate that named it
    found: list[Installation] = []
    rejected: list[tuple[Candidate, ResolverError]] = []
    for key, candidates in groups.items():
        if key in failures:
            rejected.append((candidates[0], failures[key]))
            continue
        inst = validated[key]
        for cand in candidates:
            found.append(dataclasses.replace(
                inst,
                path=cand.path,
                source=cand.source,
                canonical_path=inst.canonical_path or key,
            ))

    installations = rank_and_deduplicate(found, verbose)
    duration = time.time() - start_time
    vlog(f"Found {len(installations)} installation(s) of {binary_name} in {duration:.2f}s", verbose)

    return DiscoveryReport(
        installations=tuple(installations),
        rejected=tuple(rejected),
        duration_seconds=duration,
    )


def _enumerate_all(
    enumerators: Sequence[Enumerator],
    env: HostEnvironment,
    binary_name: str,
    max_workers: int,
    cancel_event: threading.Event,
    verbose: bool,
) -> list[list[Candidate]]:
    """Run every enumerator concurrently; results are indexed like ``enumerators``."""
    per_source: list[list[Candidate]] = [[] for _ in enumerators]
    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="enumerate")
    try:
        future_to_index = {
            executor.submit(_safe_enumerate, enumerator, env, binary_name, verbose): idx
            for idx, enumerator in enumerate(enumerators)
        }
        for future in as_completed(future_to_index):
            _check_cancelled(cancel_event)
            per_source[future_to_index[future]] = future.result()
        _check_cancelled(cancel_event)
    except BaseException:
        cancel_event.set()
        raise
    finally:
        executor.shutdown(wait=True, cancel_futures=True)
    return per_source


def _validate_all(
    groups: dict[str, list[Candidate]],
    validate: ValidateFunc,
    version_arg: str,
    timeout: float,
    max_workers: int,
    cancel_event: threading.Event,
    verbose: bool,
) -> tuple[dict[str, Installation], dict[str, ResolverError]]:
    """
    Validate the first candidate of every group concurrently.

    The pool has a worker per group, so a hung binary never delays the start
    of another candidate's timeout.

    Returns:
        (validated, failures), both keyed by canonical path
    """
    validated: dict[str, Installation] = {}
    failures: dict[str, ResolverError] = {}
    if not groups:
        _check_cancelled(cancel_event)
        return validated, failures

    executor = ThreadPoolExecutor(max_workers=max(max_workers, len(groups)), thread_name_prefix="validate")
    try:
        future_to_key = {
            executor.submit(
                validate,
                candidates[0].path,
                candidates[0].source,
                version_arg=version_arg,
                timeout=timeout,
                cancel_event=cancel_event,
                verbose=verbose,
            ): key
            for key, candidates in groups.items()
        }
        for future in as_completed(future_to_key):
            key = future_to_key[future]
            cand = groups[key][0]
            try:
                validated[key] = future.result()
            except DiscoveryCancelled:
                raise
            except ResolverError as e:
                vlog(f"  ✗ {cand.path}: {e.message}", verbose)
                failures[key] = e
            except Exception as e:
                vlog(f"  ✗ {cand.path}: {e}", verbose)
                failures[key] = InvocationFailed(cand.path, str(e), cause=e)
        _check_cancelled(cancel_event)
    except BaseException:
        # Stop running validators so no child process outlives the pass
        cancel_event.set()
        raise
    finally:
        executor.shutdown(wait=True, cancel_futures=True)
    return validated, failures
