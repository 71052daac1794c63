"""
Entry point for running the templatr-setup CLI as a module.

Usage: python -m templatr_setup.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
