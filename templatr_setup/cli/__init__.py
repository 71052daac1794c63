"""
templatr-setup CLI module.

This module provides the command-line interface for templatr-setup.
"""

from .parser import CLI, main
from . import utils

__all__ = ["CLI", "main", "utils"]
