"""
Entry point for running templatr-setup as a module.

Usage: python -m templatr_setup [command] [options]
"""

from templatr_setup.cli.parser import main

if __name__ == "__main__":
    main()
