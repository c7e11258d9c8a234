"""
Human-readable output for resolution results.
"""

from typing import Optional

from .common import color_enabled
from .installation import Installation, Source, SourceKind


USE_COLOR = color_enabled()

GREEN = "\033[32m"
YELLOW = "\033[33m"
DIM = "\033[2m"
RESET = "\033[0m"

SOURCE_LABELS = {
    SourceKind.SYSTEM_PATH: "System PATH",
    SourceKind.HOMEBREW: "Homebrew",
    SourceKind.SYSTEM: "System",
    SourceKind.LOCAL_BIN: "Local bin",
    SourceKind.ECOSYSTEM_LOCAL: "Local install",
    SourceKind.NPM_GLOBAL: "NPM global",
    SourceKind.YARN: "Yarn",
    SourceKind.YARN_GLOBAL: "Yarn",
    SourceKind.BUN: "Bun",
    SourceKind.MANUAL: "Manual Selection",
}


def colorize(text: str, color: str) -> str:
    """Apply color to text unless colors are disabled."""
    if not USE_COLOR or not text:
        return text
    return f"{color}{text}{RESET}"


def source_label(source: Source) -> str:
    """Display label for a source, e.g. "NVM v20.11.0" or "Homebrew"."""
    if source.kind is SourceKind.VERSION_MANAGER:
        return f"{(source.manager or '').upper()} {source.runtime_version}"
    return SOURCE_LABELS.get(source.kind, source.tag)


def format_installation(inst: Installation, selected: bool = False, index: Optional[int] = None) -> str:
    """One listing line: marker, index, label, version, path."""
    marker = colorize("●", GREEN) if selected else "○"
    prefix = f"{marker} [{index}]" if index is not None else marker
    version = f"v{inst.version}" if inst.version else "version unknown"
    line = f"{prefix} {source_label(inst.source):<18} {version:<16} {inst.path}"
    if not inst.validated:
        line += " " + colorize("(not verified)", YELLOW)
    return line


def render_result(result, show_rejected: bool = False) -> str:
    """
    Render a ResolutionResult as text.

    Args:
        result: ResolutionResult to render
        show_rejected: Include candidates that failed validation

    Returns:
        Multi-line string
    """
    lines = []
    if result.notice is not None:
        lines.append(colorize(result.notice.message, YELLOW))
        if result.notice.remediation:
            lines.append(f"  {result.notice.remediation}")

    if result.installations:
        has_discovered = any(i.source.kind is not SourceKind.MANUAL for i in result.installations)
        lines.append("Discovered Installations:" if has_discovered else "Selected Installation:")
        for idx, inst in enumerate(result.installations):
            lines.append("  " + format_installation(inst, inst == result.selected, idx))

    if show_rejected and result.rejected:
        lines.append("Rejected candidates:")
        for cand, err in result.rejected:
            lines.append("  " + colorize(f"✗ {cand.path}: {err.message}", DIM))

    return "\n".join(lines)
