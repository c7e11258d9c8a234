"""
Resolution store.

Single owner of the discovered installation list and the Selected
Installation. Discovery results are reconciled against the previous choice
(in memory, else persisted); selection changes go through select() and
set_manual_path(). Persisting the selection is an explicit, separate step.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable

from .common import vlog
from .config import Config
from .discovery import ValidateFunc, discover_installations
from .enumerators import Enumerator, default_enumerators
from .environment import HostEnvironment, detect_environment
from .errors import NoInstallationsFound, PersistenceFailed, ResolverError
from .installation import MANUAL, Candidate, Installation, SourceKind
from .local_state import LocalStateStore, get_local_state_path
from .logging_config import get_logger
from .manual import validate_manual_path
from .validator import validate_candidate


@dataclass(frozen=True)
class ResolutionResult:
    """
    Ordered installations from one discovery pass plus the current selection.

    Attributes:
        installations: Installations, best first (a synthesized manual entry may lead)
        selected: Currently selected installation, if any
        auto_selected: The store picked ``selected`` itself because nothing was chosen before
        notice: Set when discovery found no installations at all
        rejected: Candidates that failed validation, for diagnostics
        duration_seconds: Wall time of the discovery pass
    """
    installations: tuple[Installation, ...] = ()
    selected: Installation | None = None
    auto_selected: bool = False
    notice: NoInstallationsFound | None = None
    rejected: tuple[tuple[Candidate, ResolverError], ...] = ()
    duration_seconds: float = 0.0

    @property
    def best(self) -> Installation | None:
        return self.installations[0] if self.installations else None

    @property
    def selected_index(self) -> int | None:
        if self.selected is None:
            return None
        for idx, inst in enumerate(self.installations):
            if inst == self.selected:
                return idx
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "installations": [i.to_dict() for i in self.installations],
            "selected": self.selected.to_dict() if self.selected else None,
            "auto_selected": self.auto_selected,
            "notice": self.notice.message if self.notice else None,
            "rejected": [
                {"path": cand.path, "source": cand.source.tag, "error": err.message}
                for cand, err in self.rejected
            ],
            "duration_seconds": self.duration_seconds,
        }


class ResolutionStore:
    """
    Owns discovery results and the Selected Installation.

    Args:
        binary_name: Binary to resolve (defaults to config.binary_name)
        config: Resolver configuration
        state: Configuration collaborator with load_selected_path()/save_selected_path()
        enumerators: Fixed enumerator list (default: built from the environment per pass)
        env: Fixed environment snapshot (default: captured per pass)
        validate: Candidate validator used by discovery
        manual_validate: Validator for manual paths
        on_auto_select: Called with the installation the store picked by default
        verbose: Enable verbose logging
    """

    def __init__(
        self,
        binary_name: str | None = None,
        config: Config | None = None,
        state=None,
        enumerators: list[Enumerator] | None = None,
        env: HostEnvironment | None = None,
        validate: ValidateFunc = validate_candidate,
        manual_validate: Callable[..., Installation] = validate_manual_path,
        on_auto_select: Callable[[Installation], None] | None = None,
        verbose: bool = False,
    ):
        self.config = config or Config()
        self.binary_name = binary_name or self.config.binary_name
        if state is None:
            state = LocalStateStore(self.binary_name, get_local_state_path(self.config.preferences.state_file))
        self.state = state
        self.on_auto_select = on_auto_select
        self.verbose = verbose

        self._enumerators = enumerators
        self._env = env
        self._validate = validate
        self._manual_validate = manual_validate

        self._lock = threading.RLock()
        self._installations: list[Installation] = []
        self._selected: Installation | None = None
        self._last_result = ResolutionResult()
        self._issued = 0
        self._applied = 0
        self._inflight: set[threading.Event] = set()

    # -- read access -------------------------------------------------------

    @property
    def installations(self) -> tuple[Installation, ...]:
        with self._lock:
            return tuple(self._installations)

    @property
    def selected(self) -> Installation | None:
        with self._lock:
            return self._selected

    def current(self) -> ResolutionResult:
        """Current list and selection, without running discovery."""
        with self._lock:
            return ResolutionResult(
                installations=tuple(self._installations),
                selected=self._selected,
                notice=self._last_result.notice,
                rejected=self._last_result.rejected,
                duration_seconds=self._last_result.duration_seconds,
            )

    # -- discovery ---------------------------------------------------------

    def discover(self, cancel_event: threading.Event | None = None) -> ResolutionResult:
        """
        Run a discovery pass and reconcile it with the previous selection.

        Args:
            cancel_event: Set to abandon the pass (cancel() does this for all passes)

        Returns:
            ResolutionResult; if a newer pass completed first, its view is returned

        Raises:
            DiscoveryCancelled: The pass was abandoned; store state is unchanged
        """
        if cancel_event is None:
            cancel_event = threading.Event()
        with self._lock:
            self._issued += 1
            generation = self._issued
            self._inflight.add(cancel_event)

        preferences = self.config.preferences
        try:
            env = self._env or detect_environment(verbose=self.verbose)
            enumerators = self._enumerators
            if enumerators is None:
                enumerators = default_enumerators(env, preferences.disabled_sources)
            report = discover_installations(
                env,
                self.binary_name,
                enumerators,
                validate=self._validate,
                version_arg=preferences.version_arg,
                timeout=preferences.timeout_seconds,
                max_workers=preferences.max_workers,
                cancel_event=cancel_event,
                verbose=self.verbose,
            )
        finally:
            with self._lock:
                self._inflight.discard(cancel_event)

        persisted = None
        if self.selected is None:
            persisted = self._load_persisted_path()

        with self._lock:
            if generation < self._applied:
                vlog(f"Discarding stale discovery pass #{generation} (pass #{self._applied} already applied)", self.verbose)
                return self.current()
            self._applied = generation
            result = self._reconcile(report, persisted)

        if result.auto_selected:
            get_logger().info(f"Auto-selected {result.selected.path} ({result.selected.source})")
            if self.on_auto_select is not None:
                self.on_auto_select(result.selected)
        return result

    def _load_persisted_path(self) -> str | None:
        try:
            return self.state.load_selected_path()
        except Exception as e:
            get_logger().warning(f"Could not read saved selection: {e}")
            return None

    def _reconcile(self, report, persisted: str | None) -> ResolutionResult:
        """Apply a discovery report. Caller holds the lock."""
        installations = list(report.installations)
        notice = None
        if not installations:
            notice = NoInstallationsFound(self.binary_name)
            get_logger().warning(notice.message)

        previous = self._selected
        prior_path = previous.path if previous is not None else persisted
        auto_selected = False
        selected = None

        if prior_path:
            selected = next((i for i in installations if i.matches_path(prior_path)), None)
            if selected is None:
                if previous is not None and previous.source.kind is SourceKind.MANUAL:
                    selected = previous
                else:
                    # Display-only continuity entry; resolve_selected() re-validates it
                    selected = Installation(path=prior_path, version=None, source=MANUAL, validated=False)
                installations.insert(0, selected)
                vlog(f"Keeping previous selection {prior_path} outside auto-discovery", self.verbose)
        elif installations:
            selected = installations[0]
            auto_selected = True

        self._installations = installations
        self._selected = selected
        self._last_result = ResolutionResult(
            installations=tuple(installations),
            selected=selected,
            auto_selected=auto_selected,
            notice=notice,
            rejected=report.rejected,
            duration_seconds=report.duration_seconds,
        )
        return self._last_result

    def cancel(self) -> None:
        """Abandon every in-flight discovery pass, killing their child processes."""
        with self._lock:
            events = list(self._inflight)
        for event in events:
            event.set()

    # -- selection ---------------------------------------------------------

    def select(self, installation: Installation) -> None:
        """Make ``installation`` the Selected Installation. No re-validation."""
        if not isinstance(installation, Installation):
            raise TypeError(f"Expected Installation, got {type(installation).__name__}")
        with self._lock:
            self._selected = installation
        vlog(f"Selected {installation.path} ({installation.source})", self.verbose)

    def set_manual_path(self, raw_path: str) -> Installation:
        """
        Validate a user-supplied path and select it.

        The new manual entry replaces any entry for the same binary and is
        placed first. On failure nothing changes.

        Raises:
            NotExecutable: Path missing or not an executable file
            InvocationFailed: Binary failed its version query
        """
        preferences = self.config.preferences
        installation = self._manual_validate(
            raw_path,
            version_arg=preferences.version_arg,
            timeout=preferences.timeout_seconds,
            verbose=self.verbose,
        )
        with self._lock:
            self._installations = [installation] + [
                i for i in self._installations if not i.same_binary(installation)
            ]
            self._selected = installation
        get_logger().info(f"Using manual binary {installation.path}")
        return installation

    def resolve_selected(self) -> Installation | None:
        """
        Return the selection, re-validating it first if it was never validated.

        Raises:
            NotExecutable, InvocationFailed: The remembered path no longer works
        """
        selected = self.selected
        if selected is None or selected.validated:
            return selected

        vlog(f"Re-validating remembered path {selected.path}", self.verbose)
        preferences = self.config.preferences
        validated = self._manual_validate(
            selected.path,
            version_arg=preferences.version_arg,
            timeout=preferences.timeout_seconds,
            verbose=self.verbose,
        )
        with self._lock:
            self._installations = [validated if i == selected else i for i in self._installations]
            if self._selected == selected:
                self._selected = validated
        return validated

    def save_selection(self) -> Installation | None:
        """
        Persist the selected path via the configuration collaborator.

        The in-memory selection stays active when saving fails.

        Returns:
            The installation that was saved, or None if nothing is selected

        Raises:
            PersistenceFailed: The selection could not be written
        """
        selected = self.selected
        if selected is None:
            return None
        try:
            self.state.save_selected_path(selected.path, source=selected.source.tag, version=selected.version)
        except PersistenceFailed as e:
            get_logger().error(e.message)
            raise
        except OSError as e:
            get_logger().error(f"Failed to save selection: {e}")
            raise PersistenceFailed(str(getattr(self.state, "path", "")), e) from e
        vlog(f"Saved selection {selected.path}", self.verbose)
        return selected
