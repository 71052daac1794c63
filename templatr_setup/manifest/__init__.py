"""
Template manifest model and loader.

Example:
    >>> from templatr_setup.manifest import load_and_validate
    >>> manifest = load_and_validate(Path(".templatr.toml"))
    >>> manifest.runtimes
    {'node': '>=20.0.0'}
"""

from templatr_setup.manifest.loader import (
    ValidationIssue,
    find_manifest,
    load_and_validate,
    load_manifest,
    parse_manifest,
    validate_manifest,
)
from templatr_setup.manifest.schema import (
    MANIFEST_FILENAME,
    ConfigField,
    ConfigFile,
    EnvField,
    Manifest,
    PackagesConfig,
    PostSetup,
    TemplateInfo,
)

__all__ = [
    "MANIFEST_FILENAME",
    "ConfigField",
    "ConfigFile",
    "EnvField",
    "Manifest",
    "PackagesConfig",
    "PostSetup",
    "TemplateInfo",
    "ValidationIssue",
    "find_manifest",
    "load_and_validate",
    "load_manifest",
    "parse_manifest",
    "validate_manifest",
]
