"""
Tests for the discovery pass (cli_resolver/discovery.py).
"""

from __future__ import annotations

import os
import random
import threading
import time

import pytest

from cli_resolver.discovery import discover_installations
from cli_resolver.enumerators import Enumerator, search_local_bin, search_system_path
from cli_resolver.environment import HostEnvironment
from cli_resolver.errors import DiscoveryCancelled, InvocationFailed, NotExecutable, SourceUnavailable
from cli_resolver.installation import Source, SourceKind

from conftest import TOOL, fake_validator, skip_on_windows, static_enumerator


@pytest.fixture
def env(tmp_path):
    return HostEnvironment(home=str(tmp_path))


class TestDiscoverInstallations:
    """Tests for discover_installations() with injected validators."""

    def test_ranked_by_source_priority(self, env):
        enumerators = [
            static_enumerator(SourceKind.BUN, "/bun/tool"),
            static_enumerator(SourceKind.SYSTEM_PATH, "/usr/bin/tool"),
            static_enumerator(SourceKind.HOMEBREW, "/opt/homebrew/bin/tool"),
        ]
        report = discover_installations(env, TOOL, enumerators, validate=fake_validator())
        assert [i.path for i in report.installations] == [
            "/usr/bin/tool", "/opt/homebrew/bin/tool", "/bun/tool",
        ]

    def test_failing_candidates_excluded(self, env):
        failures = {"/broken/tool": InvocationFailed("/broken/tool", "exited with code 1", exit_code=1)}
        enumerators = [static_enumerator(SourceKind.SYSTEM_PATH, "/broken/tool", "/good/tool")]

        report = discover_installations(env, TOOL, enumerators, validate=fake_validator(failures=failures))

        assert [i.path for i in report.installations] == ["/good/tool"]
        assert len(report.rejected) == 1
        cand, err = report.rejected[0]
        assert cand.path == "/broken/tool"
        assert err.exit_code == 1

    def test_unexpected_validator_error_is_rejection(self, env):
        failures = {"/odd/tool": RuntimeError("boom")}
        enumerators = [static_enumerator(SourceKind.SYSTEM_PATH, "/odd/tool")]

        report = discover_installations(env, TOOL, enumerators, validate=fake_validator(failures=failures))

        assert report.installations == ()
        assert isinstance(report.rejected[0][1], InvocationFailed)

    def test_empty_result(self, env):
        report = discover_installations(env, TOOL, [], validate=fake_validator())
        assert report.installations == ()
        assert report.rejected == ()

    def test_enumerator_failure_is_isolated(self, env):
        def explode(env, name):
            raise RuntimeError("corrupt directory")

        def unavailable(env, name):
            raise SourceUnavailable("not installed")

        enumerators = [
            Enumerator("broken", SourceKind.HOMEBREW, explode),
            Enumerator("absent", SourceKind.SYSTEM, unavailable),
            static_enumerator(SourceKind.BUN, "/bun/tool"),
        ]
        report = discover_installations(env, TOOL, enumerators, validate=fake_validator())
        assert [i.path for i in report.installations] == ["/bun/tool"]

    def test_same_path_from_two_sources_validated_once(self, env):
        validate = fake_validator()
        enumerators = [
            static_enumerator(SourceKind.SYSTEM_PATH, "/usr/local/bin/tool"),
            static_enumerator(SourceKind.HOMEBREW, "/usr/local/bin/tool"),
        ]

        report = discover_installations(env, TOOL, enumerators, validate=validate)

        assert validate.calls == ["/usr/local/bin/tool"]
        assert len(report.installations) == 1
        assert report.installations[0].source.kind is SourceKind.SYSTEM_PATH

    def test_validator_receives_options(self, env):
        seen = {}

        def validate(path, source, version_arg, timeout, cancel_event, verbose):
            seen.update(version_arg=version_arg, timeout=timeout)
            return fake_validator()(path, source)

        enumerators = [static_enumerator(SourceKind.SYSTEM_PATH, "/usr/bin/tool")]
        discover_installations(env, TOOL, enumerators, validate=validate, version_arg="-V", timeout=2.5)

        assert seen == {"version_arg": "-V", "timeout": 2.5}

    def test_order_is_deterministic_under_random_delays(self, env):
        paths = [f"/p{i}/tool" for i in range(12)]
        versions = {
            "/nvm20/tool": "1.0.0",
            "/nvm18/tool": "1.0.0",
        }
        enumerators = [
            static_enumerator(SourceKind.SYSTEM_PATH, *paths[:4]),
            static_enumerator(SourceKind.HOMEBREW, *paths[4:6]),
            static_enumerator(SourceKind.VERSION_MANAGER, "/nvm18/tool",
                              source=Source.version_manager("nvm", "v18.0.0")),
            static_enumerator(SourceKind.VERSION_MANAGER, "/nvm20/tool",
                              source=Source.version_manager("nvm", "v20.0.0")),
            static_enumerator(SourceKind.NPM_GLOBAL, *paths[6:9]),
            static_enumerator(SourceKind.BUN, *paths[9:]),
        ]
        inner = fake_validator(versions)
        rng = random.Random(42)
        rng_lock = threading.Lock()

        def slow_validate(path, source, **kwargs):
            with rng_lock:
                delay = rng.uniform(0, 0.02)
            time.sleep(delay)
            return inner(path, source, **kwargs)

        expected = paths[:6] + ["/nvm20/tool", "/nvm18/tool"] + paths[6:]
        for _ in range(5):
            report = discover_installations(env, TOOL, enumerators, validate=slow_validate, max_workers=6)
            assert [i.path for i in report.installations] == expected

    def test_cancellation_raises(self, env):
        started = threading.Event()

        def blocking_validate(path, source, cancel_event=None, **kwargs):
            started.set()
            cancel_event.wait(10)
            raise DiscoveryCancelled()

        cancel = threading.Event()
        enumerators = [static_enumerator(SourceKind.SYSTEM_PATH, "/usr/bin/tool")]

        def cancel_when_started():
            started.wait(10)
            cancel.set()

        threading.Thread(target=cancel_when_started).start()
        start = time.monotonic()
        with pytest.raises(DiscoveryCancelled):
            discover_installations(env, TOOL, enumerators, validate=blocking_validate, cancel_event=cancel)
        assert time.monotonic() - start < 5

    def test_already_cancelled(self, env):
        cancel = threading.Event()
        cancel.set()
        validate = fake_validator()
        with pytest.raises(DiscoveryCancelled):
            discover_installations(
                env, TOOL, [static_enumerator(SourceKind.SYSTEM_PATH, "/usr/bin/tool")],
                validate=validate, cancel_event=cancel,
            )
        assert validate.calls == []


@skip_on_windows
class TestDiscoveryWithRealBinaries:
    """Discovery against fake binaries on disk."""

    def test_symlink_on_path_deduplicated(self, tmp_path, make_script):
        home = tmp_path / "home"
        real = make_script(TOOL, 'echo "1.2.0"', directory=home / ".local" / "bin")
        path_dir = tmp_path / "path"
        path_dir.mkdir()
        os.symlink(real, path_dir / TOOL)

        env = HostEnvironment(home=str(home), path_dirs=(str(path_dir),))
        enumerators = [
            Enumerator("system-path", SourceKind.SYSTEM_PATH, search_system_path),
            Enumerator("local-bin", SourceKind.LOCAL_BIN, search_local_bin),
        ]

        report = discover_installations(env, TOOL, enumerators)

        assert len(report.installations) == 1
        inst = report.installations[0]
        assert inst.source.kind is SourceKind.SYSTEM_PATH
        assert inst.path == str(path_dir / TOOL)
        assert inst.canonical_path == os.path.realpath(real)
        assert inst.version == "1.2.0"

    def test_hanging_candidate_times_out(self, tmp_path, make_script):
        good = make_script(TOOL, 'echo "1.0.0"', directory=tmp_path / "good")
        hang = make_script(TOOL, "exec sleep 30", directory=tmp_path / "hang")
        env = HostEnvironment(home=str(tmp_path), path_dirs=(str(tmp_path / "hang"), str(tmp_path / "good")))
        enumerators = [Enumerator("system-path", SourceKind.SYSTEM_PATH, search_system_path)]

        start = time.monotonic()
        report = discover_installations(env, TOOL, enumerators, timeout=0.5)

        assert time.monotonic() - start < 5
        assert [i.path for i in report.installations] == [good]
        assert report.rejected[0][0].path == hang
        assert "timed out" in report.rejected[0][1].message

    def test_non_executable_file_rejected(self, tmp_path, make_script):
        make_script(TOOL, 'echo "1.0.0"', directory=tmp_path / "p", mode=0o644)
        env = HostEnvironment(home=str(tmp_path), path_dirs=(str(tmp_path / "p"),))
        enumerators = [Enumerator("system-path", SourceKind.SYSTEM_PATH, search_system_path)]

        report = discover_installations(env, TOOL, enumerators)

        assert report.installations == ()
        assert isinstance(report.rejected[0][1], NotExecutable)

    def test_hanging_candidates_time_out_together(self, tmp_path, make_script):
        """More hung binaries than workers still finish within one timeout."""
        dirs = []
        for i in range(5):
            make_script(TOOL, "exec sleep 30", directory=tmp_path / f"hang{i}")
            dirs.append(str(tmp_path / f"hang{i}"))
        good = make_script(TOOL, 'echo "1.0.0"', directory=tmp_path / "good")
        dirs.append(str(tmp_path / "good"))
        env = HostEnvironment(home=str(tmp_path), path_dirs=tuple(dirs))
        enumerators = [Enumerator("system-path", SourceKind.SYSTEM_PATH, search_system_path)]

        start = time.monotonic()
        report = discover_installations(env, TOOL, enumerators, timeout=1.0, max_workers=2)

        assert time.monotonic() - start < 2.5
        assert [i.path for i in report.installations] == [good]
        assert len(report.rejected) == 5

    def test_symlink_retargeted_during_validation(self, tmp_path):
        """A rejected alias whose target changes mid-pass is still reported."""
        first = tmp_path / "first"
        second = tmp_path / "second"
        first.write_text("")
        second.write_text("")
        link = tmp_path / "link"
        os.symlink(first, link)

        def validate(path, source, **kwargs):
            if path == str(link):
                os.remove(link)
                os.symlink(second, link)
                raise InvocationFailed(path, "exited with code 1", exit_code=1)
            raise InvocationFailed(path, "exited with code 2", exit_code=2)

        enumerators = [static_enumerator(SourceKind.SYSTEM_PATH, str(link), "/other/tool")]
        env = HostEnvironment(home=str(tmp_path))

        report = discover_installations(env, TOOL, enumerators, validate=validate)

        assert report.installations == ()
        assert [(c.path, e.exit_code) for c, e in report.rejected] == [
            (str(link), 1), ("/other/tool", 2),
        ]
