"""
Unit tests for the installation ledger.
"""

import json
from unittest.mock import patch

import pytest
from filelock import Timeout

from templatr_setup.core.exceptions import (
    InstallationNotFoundError,
    StateError,
    StateLockTimeout,
)
from templatr_setup.core.state import (
    METHOD_SHELL_RC,
    STATE_VERSION,
    EnvModification,
    PathModification,
    State,
    StateManager,
    undo_all,
    undo_installation,
)


def _install(state: State, root, runtime: str, version: str, with_env: bool = False):
    """Create an install directory and record it with its PATH entry."""
    path = root / runtime / version
    (path / "bin").mkdir(parents=True)
    state.add_installation(runtime, version, str(path), template="saas-starter")
    state.add_path_modification(
        PathModification(method=METHOD_SHELL_RC, value=str(path / "bin"), file="/home/me/.bashrc")
    )
    if with_env:
        state.add_env_modification(
            EnvModification(name=f"{runtime.upper()}_HOME", value=str(path), method=METHOD_SHELL_RC)
        )
    return path


class TestStateRecords:
    """Test State mutators and serialization."""

    def test_add_installation_stamps_time(self):
        """Test installation records get an RFC 3339 UTC timestamp."""
        state = State()

        record = state.add_installation("node", "20.11.1", "/r/node/20.11.1")

        assert record.installed_at.endswith("Z")
        assert state.installations == [record]

    def test_to_dict_and_from_dict(self):
        """Test a ledger survives a JSON round trip."""
        state = State()
        state.add_installation(
            "node",
            "22.1.0",
            "/r/node/22.1.0",
            action="upgrade",
            previous_version="18.17.0",
            previous_path="/usr/bin/node",
        )
        state.add_path_modification(PathModification(method=METHOD_SHELL_RC, value="/r/node/22.1.0/bin"))

        restored = State.from_dict(json.loads(json.dumps(state.to_dict())))

        assert restored == state

    def test_from_dict_ignores_unknown_fields(self):
        """Test unknown keys written by newer versions are ignored."""
        data = {
            "version": STATE_VERSION,
            "installations": [
                {"runtime": "go", "version": "1.22.1", "path": "/r/go", "future": True}
            ],
            "extra": {},
        }

        state = State.from_dict(data)

        assert state.installations[0].runtime == "go"

    def test_from_dict_rejects_non_object(self):
        """Test a non-object document raises StateError."""
        with pytest.raises(StateError):
            State.from_dict([])

    def test_find_installation_latest(self):
        """Test find_installation without version returns the newest record."""
        state = State()
        state.add_installation("python", "3.11.9", "/a")
        state.add_installation("python", "3.12.3", "/b")

        assert state.find_installation("python").version == "3.12.3"
        assert state.find_installation("python", "3.11.9").path == "/a"
        assert state.find_installation("go") is None


    def test_env_modification_replaces_same_name(self):
        """Test a newer value for a variable supersedes the older record."""
        state = State()
        state.add_env_modification(
            EnvModification(name="GOROOT", value="/r/go/1.22.5", method=METHOD_SHELL_RC)
        )
        state.add_env_modification(
            EnvModification(name="JAVA_HOME", value="/r/java/21", method=METHOD_SHELL_RC)
        )

        state.add_env_modification(
            EnvModification(name="GOROOT", value="/r/go/1.23.0", method=METHOD_SHELL_RC)
        )

        assert [(e.name, e.value) for e in state.env_modifications] == [
            ("JAVA_HOME", "/r/java/21"),
            ("GOROOT", "/r/go/1.23.0"),
        ]


class TestUndo:
    """Test undo_installation and undo_all."""

    def test_undo_removes_directory_and_records(self, tmp_path):
        """Test undo deletes the install dir and releases its PATH/env records."""
        state = State()
        path = _install(state, tmp_path, "go", "1.22.1", with_env=True)

        result = undo_installation(state, "go", "1.22.1", runtimes_dir=tmp_path)

        assert not path.exists()
        assert state.installations == []
        assert state.path_modifications == []
        assert state.env_modifications == []
        assert [p.value for p in result.path_modifications] == [str(path / "bin")]
        assert [e.name for e in result.env_modifications] == ["GO_HOME"]

    def test_undo_keeps_unrelated_records(self, tmp_path):
        """Test records of other installations are untouched."""
        state = State()
        _install(state, tmp_path, "go", "1.22.1")
        node_path = _install(state, tmp_path, "node", "20.11.1")

        undo_installation(state, "go", "1.22.1", runtimes_dir=tmp_path)

        assert [i.runtime for i in state.installations] == ["node"]
        assert [p.value for p in state.path_modifications] == [str(node_path / "bin")]
        assert node_path.exists()

    def test_undo_does_not_match_sibling_prefix(self, tmp_path):
        """Test /r/node/2 does not release records under /r/node/20."""
        state = State()
        _install(state, tmp_path, "node", "2")
        other = _install(state, tmp_path, "node", "20")

        undo_installation(state, "node", "2", runtimes_dir=tmp_path)

        assert [p.value for p in state.path_modifications] == [str(other / "bin")]

    def test_undo_reports_previous_version(self, tmp_path):
        """Test upgrade records report what becomes active again."""
        state = State()
        path = tmp_path / "node" / "22.1.0"
        path.mkdir(parents=True)
        state.add_installation(
            "node",
            "22.1.0",
            str(path),
            action="upgrade",
            previous_version="18.17.0",
            previous_path="/usr/bin/node",
        )

        result = undo_installation(state, "node", "22.1.0", runtimes_dir=tmp_path)

        assert result.previous_version == "18.17.0"
        assert result.previous_path == "/usr/bin/node"

    def test_undo_missing_directory_still_succeeds(self, tmp_path):
        """Test a directory deleted by hand does not block undo."""
        state = State()
        state.add_installation("go", "1.22.1", str(tmp_path / "gone"))

        undo_installation(state, "go", "1.22.1", runtimes_dir=tmp_path)

        assert state.installations == []

    def test_undo_unknown_installation(self):
        """Test undoing an unrecorded installation raises."""
        with pytest.raises(InstallationNotFoundError):
            undo_installation(State(), "go", "1.22.1")

    def test_undo_all_isolates_failures(self, tmp_path):
        """Test one failing undo does not stop the others."""
        state = State()
        blocked = tmp_path / "blocked"
        blocked.write_text("a file, not a directory")
        state.add_installation("ruby", "3.3.0", str(blocked))
        _install(state, tmp_path, "go", "1.22.1")
        _install(state, tmp_path, "node", "20.11.1")

        results, errors = undo_all(state, runtimes_dir=tmp_path)

        assert sorted(r.runtime for r in results) == ["go", "node"]
        assert len(errors) == 1
        assert [i.runtime for i in state.installations] == ["ruby"]

    def test_undo_refuses_path_outside_runtimes(self, tmp_path):
        """Test a ledger entry pointing elsewhere deletes nothing."""
        state = State()
        outside = tmp_path / "projects" / "important"
        outside.mkdir(parents=True)
        state.add_installation("go", "1.22.1", str(outside))

        with pytest.raises(ValueError, match="not under required prefix"):
            undo_installation(state, "go", "1.22.1", runtimes_dir=tmp_path / "runtimes")

        assert outside.exists()
        assert len(state.installations) == 1

    def test_undo_defaults_to_runtimes_dir(self, templatr_home):
        """Test installs under ~/.templatr/runtimes are removed by default."""
        state = State()
        path = _install(state, templatr_home / "runtimes", "go", "1.22.1")

        undo_installation(state, "go", "1.22.1")

        assert not path.exists()
        assert state.installations == []

    def test_undo_all_empty(self):
        """Test undo_all on an empty ledger."""
        assert undo_all(State()) == ([], [])


class TestStateManager:
    """Test StateManager persistence."""

    def test_load_missing_file_returns_empty(self, tmp_path):
        """Test a missing ledger loads as empty."""
        manager = StateManager(tmp_path / "state.json")

        assert manager.load().is_empty()

    def test_save_and_load(self, tmp_path):
        """Test saved ledger is loaded back."""
        manager = StateManager(tmp_path / "state.json")
        state = State()
        state.add_installation("go", "1.22.1", "/r/go/1.22.1", template="api")

        manager.save(state)
        loaded = manager.load()

        assert loaded.installations[0].template == "api"
        data = json.loads((tmp_path / "state.json").read_text())
        assert data["version"] == STATE_VERSION

    def test_default_location(self, templatr_home):
        """Test default ledger path honours TEMPLATR_HOME."""
        manager = StateManager()

        assert manager.state_file == templatr_home / "state.json"
        assert manager.lock_path == templatr_home / "state.json.lock"

    def test_corrupt_file_raises(self, tmp_path):
        """Test invalid JSON raises StateError."""
        (tmp_path / "state.json").write_text("{not json")
        manager = StateManager(tmp_path / "state.json")

        with pytest.raises(StateError):
            manager.load()

    def test_load_or_empty_recovers(self, tmp_path):
        """Test load_or_empty falls back to an empty ledger."""
        (tmp_path / "state.json").write_text("{not json")

        assert StateManager(tmp_path / "state.json").load_or_empty().is_empty()

    def test_lock_timeout(self, tmp_path):
        """Test lock contention raises StateLockTimeout."""
        manager = StateManager(tmp_path / "state.json", lock_timeout=0.1)

        with patch("templatr_setup.core.state.FileLock") as lock_cls:
            lock_cls.return_value.__enter__.side_effect = Timeout(str(manager.lock_path))
            with pytest.raises(StateLockTimeout):
                manager.save(State())

        assert not (tmp_path / "state.json").exists()
