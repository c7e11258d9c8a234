"""
Deduplication and ranking of validated installations.

Ranking is a fixed total order over source kinds; it never depends on the
order in which concurrent enumerators or validators finished.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Sequence

from .common import vlog
from .enumerators import runtime_version_key
from .installation import Installation, Source, SourceKind


SOURCE_PRIORITY = {
    SourceKind.SYSTEM_PATH: 0,
    SourceKind.HOMEBREW: 1,
    SourceKind.SYSTEM: 2,
    SourceKind.VERSION_MANAGER: 3,
    SourceKind.LOCAL_BIN: 4,
    SourceKind.ECOSYSTEM_LOCAL: 5,
    SourceKind.NPM_GLOBAL: 6,
    SourceKind.YARN: 7,
    SourceKind.YARN_GLOBAL: 8,
    SourceKind.BUN: 9,
}


def _tier(source: Source) -> int:
    try:
        return SOURCE_PRIORITY[source.kind]
    except KeyError:
        raise ValueError(f"{source.kind.value} installations are not ranked by discovery") from None


def compare_sources(a: Source, b: Source) -> int:
    """
    Compare two sources by priority.

    Version-manager sources are ordered by runtime version, newest first,
    then by manager name.

    Returns:
        <0 if a ranks before b, 0 if equal, >0 if a ranks after b
    """
    tier_a, tier_b = _tier(a), _tier(b)
    if tier_a != tier_b:
        return tier_a - tier_b

    if a.kind is SourceKind.VERSION_MANAGER:
        ver_a = runtime_version_key(a.runtime_version or "")
        ver_b = runtime_version_key(b.runtime_version or "")
        if ver_a != ver_b:
            return -1 if ver_a > ver_b else 1
        if a.manager != b.manager:
            return -1 if (a.manager or "") < (b.manager or "") else 1

    return 0


def rank_installations(installations: Sequence[Installation]) -> list[Installation]:
    """
    Order installations by source priority.

    Args:
        installations: Validated installations in discovery order

    Returns:
        New list, highest priority first; ties keep discovery order
    """
    # sorted() is stable, so equal sources stay in discovery order
    return sorted(
        installations,
        key=cmp_to_key(lambda x, y: compare_sources(x.source, y.source)),
    )


def deduplicate(installations: Sequence[Installation], verbose: bool = False) -> list[Installation]:
    """
    Keep the first installation per canonical path.

    Args:
        installations: Ranked installations
        verbose: Enable verbose logging

    Returns:
        Installations with unique identities, order preserved
    """
    seen: dict[str, Installation] = {}
    result = []
    for inst in installations:
        kept = seen.get(inst.identity)
        if kept is not None:
            vlog(f"  Dropping duplicate {inst.path} ({inst.source}); same binary as {kept.path} ({kept.source})", verbose)
            continue
        seen[inst.identity] = inst
        result.append(inst)
    return result


def rank_and_deduplicate(installations: Sequence[Installation], verbose: bool = False) -> list[Installation]:
    """Rank by source priority, then drop lower-priority duplicates."""
    ranked = deduplicate(rank_installations(installations), verbose)

    if verbose and len(ranked) > 1:
        vlog("Ranked installations:", verbose)
        for idx, inst in enumerate(ranked, 1):
            vlog(f"  [{idx}] {inst.source}: {inst.path} ({inst.version or 'unknown version'})", verbose)

    return ranked
