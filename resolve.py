#!/usr/bin/env python3
"""
cli-resolver - find, validate and choose a CLI binary installation.

Usage:
    resolve.py list [--json]     # Discover installations and show the selection
    resolve.py pick N            # Select entry N from the list and remember it
    resolve.py use PATH          # Validate PATH, select it and remember it
    resolve.py show              # Print the selected binary path
"""

import argparse
import json
import os
import sys

# Add current directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from cli_resolver.config import Config, load_config
from cli_resolver.errors import NotExecutable, InvocationFailed, PersistenceFailed, ResolverError
from cli_resolver.logging_config import setup_logging
from cli_resolver.render import render_result, source_label
from cli_resolver.store import ResolutionStore


def _build_store(args: argparse.Namespace) -> ResolutionStore:
    config: Config = load_config(args.config, verbose=args.verbose)
    return ResolutionStore(binary_name=args.binary, config=config, verbose=args.verbose)


def _save(store: ResolutionStore) -> int:
    try:
        store.save_selection()
    except PersistenceFailed as e:
        print(f"Warning: {e.message}", file=sys.stderr)
        if e.remediation:
            print(f"  {e.remediation}", file=sys.stderr)
        return 1
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """Discover installations and print them."""
    store = _build_store(args)
    result = store.discover()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(render_result(result, show_rejected=args.verbose))

    if result.auto_selected and args.save:
        return _save(store)
    return 0 if result.installations else 1


def cmd_pick(args: argparse.Namespace) -> int:
    """Select an entry from the discovered list by index."""
    store = _build_store(args)
    result = store.discover()
    if not 0 <= args.index < len(result.installations):
        print(f"No installation with index {args.index}", file=sys.stderr)
        return 1

    installation = result.installations[args.index]
    store.select(installation)
    print(f"Selected {installation.path} ({source_label(installation.source)})")
    return _save(store)


def cmd_use(args: argparse.Namespace) -> int:
    """Validate a manual path and select it."""
    store = _build_store(args)
    try:
        installation = store.set_manual_path(args.path)
    except NotExecutable as e:
        print(f"Not found or not executable: {e.message}", file=sys.stderr)
        return 1
    except InvocationFailed as e:
        print(f"Binary failed to run: {e.message}", file=sys.stderr)
        return 1

    version = f" v{installation.version}" if installation.version else ""
    print(f"Using {installation.path}{version}")
    return _save(store)


def cmd_show(args: argparse.Namespace) -> int:
    """Print the path of the selected binary."""
    store = _build_store(args)
    store.discover()
    try:
        installation = store.resolve_selected()
    except ResolverError as e:
        print(f"Saved selection is no longer usable: {e.message}", file=sys.stderr)
        return 1
    if installation is None:
        print(f"No installation of {store.binary_name} selected", file=sys.stderr)
        return 1
    print(installation.path)
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Find, validate and choose a CLI binary installation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--binary", "-b", help="Binary name to resolve (default from config: claude)")
    parser.add_argument("--config", "-c", help="Path to a configuration file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only print warnings and errors")
    parser.add_argument("--log-file", help="Also write logs to this file")

    sub = parser.add_subparsers(dest="command")

    p_list = sub.add_parser("list", help="Discover installations")
    p_list.add_argument("--json", action="store_true", help="JSON output")
    p_list.add_argument("--save", action="store_true", help="Remember an auto-selected default")
    p_list.set_defaults(func=cmd_list)

    p_pick = sub.add_parser("pick", help="Select a discovered installation by index")
    p_pick.add_argument("index", type=int)
    p_pick.set_defaults(func=cmd_pick)

    p_use = sub.add_parser("use", help="Select a binary by path")
    p_use.add_argument("path")
    p_use.set_defaults(func=cmd_use)

    p_show = sub.add_parser("show", help="Print the selected binary path")
    p_show.set_defaults(func=cmd_show)

    # No subcommand: behave like "list"
    parser.set_defaults(func=cmd_list, json=False, save=False)

    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose, quiet=args.quiet, log_file=args.log_file)

    try:
        return args.func(args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
