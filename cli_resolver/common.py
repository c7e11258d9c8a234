"""
Common utilities shared across cli_resolver modules.
"""

from __future__ import annotations

import os
import sys


def debug_enabled() -> bool:
    """Check whether CLI_RESOLVER_DEBUG forces verbose output."""
    return os.environ.get("CLI_RESOLVER_DEBUG", "0") == "1"


def color_enabled() -> bool:
    """ANSI colours are on unless NO_COLOR is set or CLI_RESOLVER_COLOR=0."""
    if os.environ.get("NO_COLOR"):
        return False
    return os.environ.get("CLI_RESOLVER_COLOR", "1") == "1"


def vlog(msg: str, verbose: bool = False) -> None:
    """
    Log verbose message using structured logging.

    Args:
        msg: Message to log
        verbose: Whether verbose mode is enabled
    """
    if verbose or debug_enabled():
        try:
            from .logging_config import get_logger
            get_logger().info(msg)
        except Exception:
            # Fallback to stderr if logging fails
            try:
                print(f"[cli_resolver] {msg}", file=sys.stderr)
            except Exception:
                pass
