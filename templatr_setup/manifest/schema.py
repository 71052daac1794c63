"""
Manifest data model.

A manifest (``.templatr.toml``) declares what a project template needs:

    [template]
    name = "Next.js Starter"
    version = "1.2.0"
    slug = "nextjs-starter"

    [runtimes]
    node = ">=20.0.0"

    [packages]
    manager = "npm"
    install_command = "npm install"
    global = ["typescript"]

    [[env]]
    key = "DATABASE_URL"
    label = "Database URL"
    type = "url"
    required = true

    [post_setup]
    commands = ["npm run build"]
    message = "Run `npm run dev` to start."

The dataclasses here are treated as read-only once loaded.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

VALID_RUNTIMES = (
    "node",
    "python",
    "flutter",
    "java",
    "go",
    "rust",
    "ruby",
    "php",
    "dotnet",
)

VALID_MANAGERS = ("npm", "pnpm", "yarn", "bun", "pip", "pub", "composer", "cargo", "go")

VALID_FIELD_TYPES = ("text", "url", "email", "secret", "number", "boolean")

MANIFEST_FILENAME = ".templatr.toml"


@dataclass
class TemplateInfo:
    """Template identity."""

    name: str = ""
    version: str = ""
    tier: str = ""
    category: str = ""
    slug: str = ""

    @property
    def identifier(self) -> str:
        """Slug if set, otherwise the name. Stored in installation records."""
        return self.slug or self.name


@dataclass
class PackagesConfig:
    """Package manager section."""

    manager: str = ""
    install_command: str = ""
    global_packages: List[str] = field(default_factory=list)


@dataclass
class EnvField:
    """One environment variable the template asks the user for."""

    key: str
    label: str = ""
    description: str = ""
    default: str = ""
    required: bool = False
    type: str = "text"
    docs_url: str = ""
    file: str = ".env"


@dataclass
class ConfigField:
    """One dotted-path field inside a config file."""

    path: str
    label: str = ""
    description: str = ""
    type: str = "text"
    default: str = ""


@dataclass
class ConfigFile:
    """A config file and the fields the template asks the user for."""

    file: str
    label: str = ""
    description: str = ""
    fields: List[ConfigField] = field(default_factory=list)


@dataclass
class PostSetup:
    """Commands run after installation, and a closing message."""

    commands: List[str] = field(default_factory=list)
    message: str = ""


@dataclass
class Meta:
    min_tool_version: str = ""
    docs: str = ""


@dataclass
class Manifest:
    """
    A parsed template manifest.

    Attributes:
        template: Template identity
        runtimes: Runtime key -> requirement string, in file order
        packages: Package manager section (None if absent)
        env: Environment variable fields, in file order
        config: Config file definitions, in file order
        post_setup: Post-setup commands and message
        meta: Tool metadata
    """

    template: TemplateInfo = field(default_factory=TemplateInfo)
    runtimes: Dict[str, str] = field(default_factory=dict)
    packages: Optional[PackagesConfig] = None
    env: List[EnvField] = field(default_factory=list)
    config: List[ConfigFile] = field(default_factory=list)
    post_setup: PostSetup = field(default_factory=PostSetup)
    meta: Meta = field(default_factory=Meta)


__all__ = [
    "VALID_RUNTIMES",
    "VALID_MANAGERS",
    "VALID_FIELD_TYPES",
    "MANIFEST_FILENAME",
    "TemplateInfo",
    "PackagesConfig",
    "EnvField",
    "ConfigField",
    "ConfigFile",
    "PostSetup",
    "Meta",
    "Manifest",
]
