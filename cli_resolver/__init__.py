"""
cli-resolver - Discovery, validation and selection of CLI binary installations.

Core Modules:
- Discovery: candidate enumerators, validator, ranking, fan-out/fan-in pass
- Resolution: selection store, manual override validation, persisted choice
- Foundation: host environment snapshot, config, logging, error taxonomy
"""

__version__ = "1.0.0"
__author__ = "cli-resolver Contributors"

VERSION = __version__

# Data model
from .installation import (
    SourceKind,
    Source,
    Candidate,
    Installation,
    MANUAL,
    canonical_path,
)

# Errors
from .errors import (
    ResolverError,
    SourceUnavailable,
    NotExecutable,
    InvocationFailed,
    NoInstallationsFound,
    PersistenceFailed,
    DiscoveryCancelled,
)

# Foundation
from .environment import HostEnvironment, detect_environment
from .config import Config, Preferences, load_config, load_config_file

# Discovery
from .enumerators import Enumerator, default_enumerators, detect_runtime_versions
from .validator import ProcessOutput, run_process, parse_version, validate_candidate
from .ranking import compare_sources, rank_installations, deduplicate, rank_and_deduplicate
from .discovery import DiscoveryReport, discover_installations

# Resolution
from .manual import validate_manual_path
from .local_state import LocalState, LocalStateStore, SelectedBinary, load_local_state, write_local_state
from .store import ResolutionResult, ResolutionStore

# Logging configuration
from .logging_config import setup_logging, get_logger

__all__ = [
    # Version
    "__version__",
    "VERSION",
    # Data model
    "SourceKind",
    "Source",
    "Candidate",
    "Installation",
    "MANUAL",
    "canonical_path",
    # Errors
    "ResolverError",
    "SourceUnavailable",
    "NotExecutable",
    "InvocationFailed",
    "NoInstallationsFound",
    "PersistenceFailed",
    "DiscoveryCancelled",
    # Foundation
    "HostEnvironment",
    "detect_environment",
    "Config",
    "Preferences",
    "load_config",
    "load_config_file",
    # Discovery
    "Enumerator",
    "default_enumerators",
    "detect_runtime_versions",
    "ProcessOutput",
    "run_process",
    "parse_version",
    "validate_candidate",
    "compare_sources",
    "rank_installations",
    "deduplicate",
    "rank_and_deduplicate",
    "DiscoveryReport",
    "discover_installations",
    # Resolution
    "validate_manual_path",
    "LocalState",
    "LocalStateStore",
    "SelectedBinary",
    "load_local_state",
    "write_local_state",
    "ResolutionResult",
    "ResolutionStore",
    # Logging
    "setup_logging",
    "get_logger",
]
