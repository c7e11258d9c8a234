"""
End-to-end tests for the command-line entry point (resolve.py).

Discovery runs against the real default enumerators with HOME and PATH
pointed at a temporary directory.
"""

from __future__ import annotations

import json

import pytest

from resolve import main
from cli_resolver.logging_config import setup_logging

from conftest import TOOL, skip_on_windows


pytestmark = [pytest.mark.integration, skip_on_windows]


@pytest.fixture
def sandbox(tmp_path, monkeypatch):
    """Isolated HOME, PATH, state file and config search path."""
    home = tmp_path / "home"
    home.mkdir()
    path_dir = tmp_path / "path"
    path_dir.mkdir()
    state_file = tmp_path / "state" / "state.json"

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("PATH", str(path_dir))
    monkeypatch.setenv("CLI_RESOLVER_STATE_FILE", str(state_file))
    monkeypatch.setenv("CLI_RESOLVER_COLOR", "0")
    monkeypatch.delenv("CLI_RESOLVER_TIMEOUT_SECONDS", raising=False)
    monkeypatch.delenv("CLI_RESOLVER_DEBUG", raising=False)
    monkeypatch.setattr("cli_resolver.config.CONFIG_LOCATIONS", [])
    monkeypatch.setattr("cli_resolver.render.USE_COLOR", False)

    yield {"home": home, "path": path_dir, "state": state_file}

    setup_logging(quiet=True)


def _saved(state_file):
    return json.loads(state_file.read_text())["binaries"][TOOL]


class TestListCommand:
    """Tests for ``resolve.py list``."""

    def test_nothing_found(self, sandbox, capsys):
        assert main(["--binary", TOOL, "list"]) == 1
        assert f"No installations of '{TOOL}' found" in capsys.readouterr().out

    def test_default_command_is_list(self, sandbox, capsys):
        assert main(["--binary", TOOL]) == 1
        assert "No installations" in capsys.readouterr().out

    def test_json_output(self, sandbox, make_script, capsys):
        path = make_script(TOOL, 'echo "1.2.0"', directory=sandbox["path"])

        assert main(["--binary", TOOL, "list", "--json"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["selected"]["path"] == path
        assert data["selected"]["source"] == "system-path"
        assert data["selected"]["version"] == "1.2.0"
        assert data["auto_selected"] is True
        assert not sandbox["state"].exists()

    def test_save_remembers_auto_selection(self, sandbox, make_script):
        path = make_script(TOOL, 'echo "1.2.0"', directory=sandbox["path"])

        assert main(["--binary", TOOL, "list", "--save"]) == 0

        assert _saved(sandbox["state"])["path"] == path

    def test_broken_candidates_listed_when_verbose(self, sandbox, make_script, capsys):
        make_script(TOOL, "exit 1", directory=sandbox["path"])
        assert main(["--binary", TOOL, "--verbose", "list"]) == 1
        assert "Rejected candidates:" in capsys.readouterr().out


class TestPickCommand:
    """Tests for ``resolve.py pick``."""

    def test_pick_saves_selection(self, sandbox, make_script, capsys):
        make_script(TOOL, 'echo "1.0.0"', directory=sandbox["path"])
        local = make_script(TOOL, 'echo "2.0.0"', directory=sandbox["home"] / ".local" / "bin")

        assert main(["--binary", TOOL, "pick", "1"]) == 0

        assert "Local bin" in capsys.readouterr().out
        saved = _saved(sandbox["state"])
        assert saved["path"] == local
        assert saved["source"] == "local-bin"
        assert saved["version"] == "2.0.0"

    def test_pick_out_of_range(self, sandbox, capsys):
        assert main(["--binary", TOOL, "pick", "3"]) == 1
        assert "No installation with index 3" in capsys.readouterr().err


class TestUseAndShow:
    """Tests for ``resolve.py use`` and ``resolve.py show``."""

    def test_use_then_show(self, sandbox, make_script, capsys, tmp_path):
        path = make_script(TOOL, 'echo "3.1.4"', directory=tmp_path / "elsewhere")

        assert main(["--binary", TOOL, "use", path]) == 0
        assert f"Using {path} v3.1.4" in capsys.readouterr().out
        assert _saved(sandbox["state"])["source"] == "manual"

        assert main(["--binary", TOOL, "show"]) == 0
        assert capsys.readouterr().out.strip() == path

    def test_use_missing_path(self, sandbox, capsys, tmp_path):
        assert main(["--binary", TOOL, "use", str(tmp_path / "not-a-file")]) == 1
        assert "Not found or not executable" in capsys.readouterr().err
        assert not sandbox["state"].exists()

    def test_use_failing_binary(self, sandbox, make_script, capsys):
        path = make_script(TOOL, "exit 1")
        assert main(["--binary", TOOL, "use", path]) == 1
        assert "Binary failed to run" in capsys.readouterr().err

    def test_show_nothing_selected(self, sandbox, capsys):
        assert main(["--binary", TOOL, "show"]) == 1
        assert "selected" in capsys.readouterr().err

    def test_show_remembered_path_now_broken(self, sandbox, make_script, capsys, tmp_path):
        path = make_script(TOOL, 'echo "1.0.0"', directory=tmp_path / "elsewhere")
        assert main(["--binary", TOOL, "use", path]) == 0
        (tmp_path / "elsewhere" / TOOL).unlink()
        capsys.readouterr()

        assert main(["--binary", TOOL, "show"]) == 1
        assert "no longer usable" in capsys.readouterr().err

    def test_unwritable_state_keeps_going(self, sandbox, make_script, capsys, tmp_path, monkeypatch):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        monkeypatch.setenv("CLI_RESOLVER_STATE_FILE", str(blocker / "state.json"))
        path = make_script(TOOL, 'echo "1.0.0"')

        assert main(["--binary", TOOL, "use", path]) == 1

        captured = capsys.readouterr()
        assert f"Using {path}" in captured.out
        assert "Failed to save selection" in captured.err


class TestConfiguration:
    """Tests for configuration handling in the CLI."""

    def test_missing_config_file(self, sandbox, capsys, tmp_path):
        assert main(["--config", str(tmp_path / "missing.yml"), "list"]) == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_binary_name_from_config(self, sandbox, make_script, capsys, tmp_path):
        config = tmp_path / "config.yml"
        config.write_text(f"version: 1\nbinary_name: {TOOL}\n")
        path = make_script(TOOL, 'echo "1.0.0"', directory=sandbox["path"])

        assert main(["--config", str(config), "list", "--json"]) == 0
        assert json.loads(capsys.readouterr().out)["selected"]["path"] == path
