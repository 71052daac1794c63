"""
Unit tests for Windows user environment changes (PowerShell mocked).
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from templatr_setup.core.exceptions import EnvironmentMutationError
from templatr_setup.core.state import METHOD_WINDOWS_ENV, EnvModification, PathModification
from templatr_setup.environment import windows


class FakeUserEnvironment:
    """Stands in for powershell.exe and a user environment registry."""

    def __init__(self, **values):
        self.values = dict(values)
        self.scripts = []

    def __call__(self, command, **kwargs):
        script = command[-1]
        self.scripts.append(script)
        result = MagicMock(returncode=0, stderr="", stdout="")
        name = script.split('"')[1]
        if "GetEnvironmentVariable" in script:
            result.stdout = self.values.get(name, "") + "\r\n"
        elif "$null" in script:
            self.values.pop(name, None)
        else:
            self.values[name] = script.split('"')[3]
        return result


@pytest.fixture
def user_env(monkeypatch):
    monkeypatch.setenv("PATH", "C:\\Windows")
    fake = FakeUserEnvironment(PATH="C:\\Tools;C:\\Users\\me\\bin")
    with patch("subprocess.run", side_effect=fake):
        yield fake


class TestWindowsPath:
    """Test user PATH updates."""

    def test_add_prepends(self, user_env):
        """Test the directory is prepended to the user PATH."""
        mod = windows.add_to_path("C:\\templatr\\go\\bin")

        assert user_env.values["PATH"] == "C:\\templatr\\go\\bin;C:\\Tools;C:\\Users\\me\\bin"
        assert mod == PathModification(method=METHOD_WINDOWS_ENV, value="C:\\templatr\\go\\bin")

    def test_add_is_case_insensitive_idempotent(self, user_env):
        """Test an existing entry in different case is not added again."""
        assert windows.add_to_path("c:\\tools") is None
        assert user_env.values["PATH"] == "C:\\Tools;C:\\Users\\me\\bin"

    def test_remove(self, user_env):
        """Test removal drops only the matching entry."""
        windows.remove_from_path(PathModification(method=METHOD_WINDOWS_ENV, value="c:\\TOOLS"))

        assert user_env.values["PATH"] == "C:\\Users\\me\\bin"


class TestWindowsEnvVars:
    """Test user variable updates."""

    def test_set_and_remove(self, user_env, monkeypatch):
        """Test variables are written and deleted with $null."""
        monkeypatch.delenv("JAVA_HOME", raising=False)

        mod = windows.set_env_var("JAVA_HOME", "C:\\templatr\\java\\21")

        assert user_env.values["JAVA_HOME"] == "C:\\templatr\\java\\21"
        assert mod == EnvModification(
            name="JAVA_HOME", value="C:\\templatr\\java\\21", method=METHOD_WINDOWS_ENV
        )

        windows.remove_env_var(mod)

        assert "JAVA_HOME" not in user_env.values
        assert "$null" in user_env.scripts[-1]

    def test_quoting(self):
        """Test PowerShell special characters are escaped."""
        assert windows._quote('a"b$c`d') == '"a`"b`$c``d"'


class TestPowerShellFailures:
    """Test PowerShell error handling."""

    def test_non_zero_exit(self):
        """Test a failing PowerShell call raises EnvironmentMutationError."""
        failed = MagicMock(returncode=1, stdout="", stderr="Access denied")
        with patch("subprocess.run", return_value=failed):
            with pytest.raises(EnvironmentMutationError, match="Access denied"):
                windows.set_user_env("PATH", "C:\\x")

    def test_missing_powershell(self):
        """Test a missing executable raises EnvironmentMutationError."""
        with patch("subprocess.run", side_effect=FileNotFoundError("powershell")):
            with pytest.raises(EnvironmentMutationError):
                windows.get_user_env("PATH")

    def test_timeout(self):
        """Test a hung PowerShell raises EnvironmentMutationError."""
        with patch(
            "subprocess.run", side_effect=subprocess.TimeoutExpired("powershell", 30)
        ):
            with pytest.raises(EnvironmentMutationError):
                windows.get_user_env("PATH")
