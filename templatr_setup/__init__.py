"""
templatr-setup: install the language runtimes a project template needs.

Reads a template manifest, detects what is already installed, plans the
missing work, installs runtimes from official sources and records every
change so it can be undone.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("templatr-setup")
except PackageNotFoundError:
    __version__ = "0.0.0"
