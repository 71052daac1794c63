"""
Unit tests for user settings and directory layout.
"""

import pytest

from templatr_setup.core.directory import (
    get_base_dir,
    get_logs_dir,
    get_runtimes_dir,
    get_settings_file,
    runtime_install_dir,
)
from templatr_setup.core.exceptions import ConfigurationError
from templatr_setup.core.settings import Settings, load_settings, load_yaml_config


class TestDirectoryLayout:
    """Test directory helpers."""

    def test_templatr_home_override(self, templatr_home):
        """Test TEMPLATR_HOME replaces ~/.templatr."""
        assert get_base_dir() == templatr_home
        assert get_runtimes_dir() == templatr_home / "runtimes"
        assert get_logs_dir() == templatr_home / "logs"
        assert get_settings_file() == templatr_home / "config.yaml"

    def test_default_under_home(self, isolated_home, monkeypatch):
        """Test default base directory is ~/.templatr."""
        monkeypatch.delenv("TEMPLATR_HOME", raising=False)

        assert get_base_dir() == isolated_home / ".templatr"

    def test_runtime_install_dir(self, tmp_path):
        """Test <runtimes>/<runtime>/<version> layout."""
        assert runtime_install_dir(tmp_path, "node", "20.11.1") == tmp_path / "node" / "20.11.1"


class TestLoadSettings:
    """Test load_settings function."""

    def test_defaults_without_file(self, templatr_home):
        """Test every setting has a default."""
        settings = load_settings()

        assert settings.runtimes_dir == templatr_home / "runtimes"
        assert settings.probe_timeout == 10.0
        assert settings.metadata_timeout == 30.0
        assert settings.max_log_files == 10
        assert settings.lock_timeout == 10.0

    def test_values_from_yaml(self, tmp_path):
        """Test values in the YAML file override defaults."""
        config = tmp_path / "config.yaml"
        config.write_text(
            "runtimes_dir: " + str(tmp_path / "rt") + "\n"
            "probe_timeout: 5\n"
            "max_log_files: 3\n"
        )

        settings = load_settings(config)

        assert settings.runtimes_dir == tmp_path / "rt"
        assert settings.probe_timeout == 5.0
        assert settings.max_log_files == 3
        assert settings.metadata_timeout == 30.0

    def test_unknown_keys_ignored(self, tmp_path):
        """Test unknown keys are ignored."""
        config = tmp_path / "config.yaml"
        config.write_text("colour: blue\nlock_timeout: 2\n")

        assert load_settings(config).lock_timeout == 2.0

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML raises ConfigurationError."""
        config = tmp_path / "config.yaml"
        config.write_text("probe_timeout: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_settings(config)

    def test_wrong_value_type(self, tmp_path):
        """Test non-numeric timeout raises ConfigurationError."""
        config = tmp_path / "config.yaml"
        config.write_text("probe_timeout: soon\n")

        with pytest.raises(ConfigurationError, match="probe_timeout"):
            load_settings(config)

    def test_top_level_must_be_mapping(self, tmp_path):
        """Test a YAML list at top level is rejected."""
        config = tmp_path / "config.yaml"
        config.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError):
            load_yaml_config(config)

    def test_to_dict(self, tmp_path):
        """Test settings serialize for display."""
        data = Settings(runtimes_dir=tmp_path).to_dict()

        assert data["runtimes_dir"] == str(tmp_path)
        assert data["max_log_files"] == 10
