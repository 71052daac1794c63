"""
Unit tests for manifest loading and validation.
"""

import pytest

from templatr_setup.core.exceptions import ManifestError, ManifestValidationError
from templatr_setup.manifest.loader import (
    find_manifest,
    load_and_validate,
    load_manifest,
    parse_manifest,
    validate_manifest,
)
from templatr_setup.manifest.schema import MANIFEST_FILENAME

FULL_MANIFEST = """
[template]
name = "SaaS Starter"
version = "1.2.0"
tier = "pro"
category = "web"
slug = "saas-starter"

[runtimes]
python = ">=3.11"
node = ">=20.0.0"
go = "1.22"

[packages]
manager = "npm"
install_command = "npm install"
global = ["typescript", "turbo"]

[[env]]
key = "DATABASE_URL"
label = "Database URL"
type = "url"
required = true

[[env]]
key = "PORT"
default = 3000
type = "number"

[[env]]
key = "DEBUG"
default = false
type = "boolean"

[[config]]
file = "config/app.json"
label = "App settings"

[[config.fields]]
path = "server.port"
type = "number"
default = 8080

[post_setup]
commands = ["npm run build"]
message = "Run `npm run dev` to start."

[meta]
min_tool_version = "0.1.0"
docs = "https://example.com/docs"
unknown_key = "ignored"
"""


@pytest.fixture
def manifest_file(tmp_path):
    path = tmp_path / MANIFEST_FILENAME
    path.write_text(FULL_MANIFEST)
    return path


class TestLoadManifest:
    """Test load_manifest function."""

    def test_full_manifest(self, manifest_file):
        """Test every section is parsed."""
        manifest = load_manifest(manifest_file)

        assert manifest.template.name == "SaaS Starter"
        assert manifest.template.identifier == "saas-starter"
        assert list(manifest.runtimes) == ["python", "node", "go"]
        assert manifest.packages.global_packages == ["typescript", "turbo"]
        assert manifest.post_setup.commands == ["npm run build"]
        assert manifest.meta.docs == "https://example.com/docs"

    def test_env_defaults_become_strings(self, manifest_file):
        """Test non-string defaults are normalized."""
        env = {f.key: f for f in load_manifest(manifest_file).env}

        assert env["DATABASE_URL"].required is True
        assert env["PORT"].default == "3000"
        assert env["PORT"].required is False
        assert env["DEBUG"].default == "false"
        assert env["DEBUG"].file == ".env"

    def test_config_fields(self, manifest_file):
        """Test config file fields are parsed."""
        config = load_manifest(manifest_file).config

        assert config[0].file == "config/app.json"
        assert config[0].fields[0].path == "server.port"
        assert config[0].fields[0].default == "8080"

    def test_missing_file(self, tmp_path):
        """Test a missing manifest raises ManifestError."""
        with pytest.raises(ManifestError, match="not found"):
            load_manifest(tmp_path / MANIFEST_FILENAME)

    def test_invalid_toml(self, tmp_path):
        """Test TOML syntax errors raise ManifestError."""
        path = tmp_path / MANIFEST_FILENAME
        path.write_text("[template\nname = ")

        with pytest.raises(ManifestError, match="Invalid TOML"):
            load_manifest(path)

    def test_wrong_section_type(self, tmp_path):
        """Test a section of the wrong shape raises ManifestError."""
        path = tmp_path / MANIFEST_FILENAME
        path.write_text('runtimes = "node"\n')

        with pytest.raises(ManifestError, match="Malformed"):
            load_manifest(path)

    def test_no_packages_section(self):
        """Test packages is None when absent."""
        manifest = parse_manifest({"template": {"name": "x", "version": "1"}})

        assert manifest.packages is None
        assert manifest.runtimes == {}


class TestFindManifest:
    """Test find_manifest function."""

    def test_found(self, manifest_file):
        """Test the manifest is found in a directory."""
        assert find_manifest(manifest_file.parent) == manifest_file

    def test_not_found(self, tmp_path):
        """Test None when the directory has no manifest."""
        assert find_manifest(tmp_path) is None


class TestValidateManifest:
    """Test validate_manifest function."""

    def test_valid(self, manifest_file):
        """Test the full example validates cleanly."""
        assert validate_manifest(load_manifest(manifest_file)) == []

    def test_reports_every_issue(self):
        """Test all problems are reported at once."""
        manifest = parse_manifest(
            {
                "template": {},
                "runtimes": {"node": "", "cobol": "85"},
                "packages": {"manager": "maven"},
                "env": [
                    {"key": "A"},
                    {"key": "A", "type": "color"},
                    {"label": "no key"},
                ],
                "config": [{"fields": [{"type": "text"}]}],
            }
        )

        locations = [issue.location for issue in validate_manifest(manifest)]

        assert locations == [
            "template.name",
            "template.version",
            "runtimes.node",
            "runtimes.cobol",
            "packages.manager",
            "env[1].key",
            "env[1].type",
            "env[2].key",
            "config[0].file",
            "config[0].fields[0].path",
        ]

    def test_missing_manager(self):
        """Test a packages section needs a manager."""
        manifest = parse_manifest(
            {"template": {"name": "x", "version": "1"}, "packages": {"install_command": "make"}}
        )

        issues = validate_manifest(manifest)

        assert [str(i) for i in issues] == ["packages.manager: is required"]

    def test_load_and_validate_raises(self, tmp_path):
        """Test load_and_validate raises with the issue list."""
        path = tmp_path / MANIFEST_FILENAME
        path.write_text('[template]\nname = "x"\n\n[runtimes]\nperl = "5"\n')

        with pytest.raises(ManifestValidationError) as exc:
            load_and_validate(path)

        assert len(exc.value.issues) == 2
        assert "runtimes.perl" in str(exc.value)
