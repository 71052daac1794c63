"""
Loading and validation of ``.templatr.toml`` manifests.

Parsing turns TOML into the dataclasses in :mod:`templatr_setup.manifest.schema`.
Validation then checks the result against the known runtime, manager and
field-type sets and reports every problem at once.
"""

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from templatr_setup.core.exceptions import ManifestError, ManifestValidationError
from templatr_setup.manifest.schema import (
    MANIFEST_FILENAME,
    VALID_FIELD_TYPES,
    VALID_MANAGERS,
    VALID_RUNTIMES,
    ConfigField,
    ConfigFile,
    EnvField,
    Manifest,
    Meta,
    PackagesConfig,
    PostSetup,
    TemplateInfo,
)

logger = logging.getLogger(__name__)


@dataclass
class ValidationIssue:
    """A single validation problem, addressed by its location in the file."""

    location: str
    message: str

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"


def find_manifest(directory: Optional[Path] = None) -> Optional[Path]:
    """
    Look for ``.templatr.toml`` in directory (default: current directory).

    Returns:
        Path to the manifest, or None if it does not exist
    """
    candidate = Path(directory or Path.cwd()) / MANIFEST_FILENAME
    return candidate if candidate.is_file() else None


def load_manifest(path: Path) -> Manifest:
    """
    Parse a manifest file.

    Args:
        path: Path to a TOML manifest

    Returns:
        Parsed Manifest (not yet validated)

    Raises:
        ManifestError: If the file is missing, not valid TOML, or has
            sections of the wrong type
    """
    path = Path(path)
    if not path.is_file():
        raise ManifestError(f"Manifest not found: {path}")

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ManifestError(f"Invalid TOML in {path}: {e}") from e

    try:
        manifest = parse_manifest(data)
    except (TypeError, AttributeError) as e:
        raise ManifestError(f"Malformed manifest {path}: {e}") from e

    logger.debug(
        f"Loaded manifest '{manifest.template.name}' with "
        f"{len(manifest.runtimes)} runtime(s) from {path}"
    )
    return manifest


def parse_manifest(data: Dict[str, Any]) -> Manifest:
    """Build a Manifest from decoded TOML."""
    template = TemplateInfo(**_pick(data.get("template", {}), TemplateInfo))

    runtimes = {str(k): str(v) for k, v in data.get("runtimes", {}).items()}

    packages = None
    raw_packages = data.get("packages")
    if raw_packages:
        packages = PackagesConfig(
            manager=str(raw_packages.get("manager", "")),
            install_command=str(raw_packages.get("install_command", "")),
            global_packages=[str(p) for p in raw_packages.get("global", [])],
        )

    env = [_parse_env_field(item) for item in data.get("env", [])]

    config = []
    for item in data.get("config", []):
        fields_ = [
            ConfigField(**{"path": "", **_pick(f, ConfigField, stringify=("default",))})
            for f in item.get("fields", [])
        ]
        config.append(
            ConfigFile(
                file=str(item.get("file", "")),
                label=str(item.get("label", "")),
                description=str(item.get("description", "")),
                fields=fields_,
            )
        )

    raw_post = data.get("post_setup", {})
    post_setup = PostSetup(
        commands=[str(c) for c in raw_post.get("commands", [])],
        message=str(raw_post.get("message", "")),
    )

    meta = Meta(**_pick(data.get("meta", {}), Meta))

    return Manifest(
        template=template,
        runtimes=runtimes,
        packages=packages,
        env=env,
        config=config,
        post_setup=post_setup,
        meta=meta,
    )


def _parse_env_field(item: Dict[str, Any]) -> EnvField:
    values = _pick(item, EnvField, stringify=("default",))
    values["required"] = bool(item.get("required", False))
    values.setdefault("key", "")
    return EnvField(**values)


def _pick(raw: Dict[str, Any], cls, stringify=()) -> Dict[str, Any]:
    """Keep only keys the dataclass knows; coerce selected values to str."""
    names = set(cls.__dataclass_fields__)
    picked = {}
    for key, value in raw.items():
        if key not in names:
            continue
        if key in stringify and isinstance(value, bool):
            value = "true" if value else "false"
        elif key in stringify or isinstance(value, (int, float)):
            value = str(value)
        picked[key] = value
    return picked


def validate_manifest(manifest: Manifest) -> List[ValidationIssue]:
    """
    Check a manifest against the known runtime, manager and field-type sets.

    Returns:
        Every issue found (empty list if the manifest is valid)
    """
    issues: List[ValidationIssue] = []

    if not manifest.template.name:
        issues.append(ValidationIssue("template.name", "is required"))
    if not manifest.template.version:
        issues.append(ValidationIssue("template.version", "is required"))

    for key, requirement in manifest.runtimes.items():
        if key not in VALID_RUNTIMES:
            issues.append(
                ValidationIssue(
                    f"runtimes.{key}",
                    f"unknown runtime (valid: {', '.join(VALID_RUNTIMES)})",
                )
            )
        if not requirement.strip():
            issues.append(ValidationIssue(f"runtimes.{key}", "version is empty"))

    if manifest.packages is not None:
        manager = manifest.packages.manager
        if not manager:
            issues.append(ValidationIssue("packages.manager", "is required"))
        elif manager not in VALID_MANAGERS:
            issues.append(
                ValidationIssue(
                    "packages.manager",
                    f"unknown manager '{manager}' (valid: {', '.join(VALID_MANAGERS)})",
                )
            )

    seen_keys = set()
    for i, env_field in enumerate(manifest.env):
        location = f"env[{i}]"
        if not env_field.key:
            issues.append(ValidationIssue(f"{location}.key", "is required"))
        elif env_field.key in seen_keys:
            issues.append(
                ValidationIssue(f"{location}.key", f"duplicate key '{env_field.key}'")
            )
        seen_keys.add(env_field.key)
        if env_field.type not in VALID_FIELD_TYPES:
            issues.append(
                ValidationIssue(f"{location}.type", f"unknown type '{env_field.type}'")
            )

    for i, config_file in enumerate(manifest.config):
        location = f"config[{i}]"
        if not config_file.file:
            issues.append(ValidationIssue(f"{location}.file", "is required"))
        for j, config_field in enumerate(config_file.fields):
            field_location = f"{location}.fields[{j}]"
            if not config_field.path:
                issues.append(ValidationIssue(f"{field_location}.path", "is required"))
            if config_field.type not in VALID_FIELD_TYPES:
                issues.append(
                    ValidationIssue(
                        f"{field_location}.type", f"unknown type '{config_field.type}'"
                    )
                )

    return issues


def load_and_validate(path: Path) -> Manifest:
    """
    Load a manifest and reject it if validation finds any issue.

    Raises:
        ManifestError: If the file cannot be parsed
        ManifestValidationError: If validation finds issues
    """
    manifest = load_manifest(path)
    issues = validate_manifest(manifest)
    if issues:
        raise ManifestValidationError(issues)
    return manifest


__all__ = [
    "ValidationIssue",
    "find_manifest",
    "load_manifest",
    "parse_manifest",
    "validate_manifest",
    "load_and_validate",
]
